from roster_santa.services.assignment import (
    MAX_DERANGEMENT_ATTEMPTS,
    AssignmentStore,
    generate_derangement,
)
from roster_santa.services.errors import RosterSantaError
from roster_santa.services.roster import Member, RosterStore
from roster_santa.services.store import SantaStore

__all__ = [
    "MAX_DERANGEMENT_ATTEMPTS",
    "AssignmentStore",
    "generate_derangement",
    "RosterSantaError",
    "Member",
    "RosterStore",
    "SantaStore",
]
