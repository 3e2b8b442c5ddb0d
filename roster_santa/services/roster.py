from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from loguru import logger

from roster_santa.services.errors import DuplicateIdentifier, InvalidMember, NotFound

RemovalListener = Callable[[int], None]

SAMPLE_NAMES = [
    "Rajesh Kumar", "Priya Sharma", "Amit Patel", "Sneha Reddy", "Vikram Singh",
    "Anjali Mehta", "Rahul Gupta", "Kavita Desai", "Suresh Iyer", "Meera Joshi",
    "Arjun Nair", "Divya Menon", "Kiran Rao", "Pooja Shah", "Manoj Verma",
    "Swati Agarwal", "Nikhil Malhotra", "Ritu Kapoor", "Deepak Chawla", "Shilpa Jain",
    "Ravi Thakur", "Neha Bansal", "Sandeep Khanna", "Anita Chopra", "Vivek Dutta",
    "Kavya Srinivasan", "Rohit Agarwal", "Sunita Reddy", "Gaurav Mishra", "Lakshmi Nair",
    "Pankaj Singh", "Radha Iyer", "Harsh Shah", "Sarika Deshmukh", "Yash Mehta",
    "Ananya Krishnan", "Karan Malhotra", "Jyoti Sharma", "Tarun Patel", "Sonia Gupta",
    "Aditya Joshi", "Preeti Rao", "Varun Kumar", "Madhuri Nair", "Abhishek Reddy",
    "Shruti Iyer", "Rishabh Agarwal", "Deepika Menon", "Siddharth Shah", "Aishwarya Rao",
    "Kunal Verma", "Nisha Kapoor", "Akash Chawla", "Tanvi Jain", "Mohit Thakur",
    "Isha Bansal", "Rohan Khanna", "Pallavi Chopra", "Dev Dutta", "Anushka Srinivasan",
    "Sahil Agarwal", "Riya Reddy", "Kartik Mishra", "Snehal Nair", "Jayesh Iyer",
    "Trisha Mehta", "Dhruv Krishnan", "Ishita Malhotra", "Arnav Sharma", "Maya Patel",
    "Vedant Gupta", "Zara Joshi", "Reyansh Rao", "Avni Kumar", "Aarav Reddy",
    "Kiara Iyer", "Aryan Agarwal", "Anika Menon", "Vihaan Shah", "Saanvi Rao",
    "Advik Verma", "Aadhya Kapoor", "Arhaan Chawla", "Anvi Jain", "Ayaan Thakur",
    "Ira Bansal", "Ahaan Khanna", "Myra Chopra", "Aarush Dutta", "Aaradhya Srinivasan",
    "Vivaan Agarwal", "Anaya Reddy", "Atharv Mishra", "Avyaan Nair", "Akshara Iyer",
    "Reyaan Mehta", "Aariz Krishnan", "Aarohi Malhotra", "Arin Sharma", "Aryahi Patel",
    "Ahaan Gupta", "Aaradhya Joshi", "Ayaansh Rao", "Avishi Kumar", "Aaravya Reddy",
]


@dataclass(frozen=True)
class Member:
    id: int
    external_code: str
    display_name: str
    notes: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _clean(value: Optional[str]) -> str:
    return value.strip() if value else ""


def _code_key(external_code: str) -> str:
    return external_code.strip().lower()


def _parse_id(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return None
    if isinstance(value, float) and value != parsed:
        return None
    return parsed if parsed > 0 else None


class RosterStore:
    """Ordered, deduplicated set of members plus the next-id counter.

    External codes are unique under case-insensitive comparison and
    ``next_id`` is always greater than every id present. Every mutating
    method validates before it changes anything, so a raised error leaves
    the roster as it was.
    """

    def __init__(self, members: Iterable[Member] = (), next_id: int = 1) -> None:
        self._members: List[Member] = []
        self._next_id = 1
        self._listeners: List[RemovalListener] = []
        self.load_snapshot([member.to_dict() for member in members], next_id)

    @property
    def members(self) -> List[Member]:
        return list(self._members)

    @property
    def next_id(self) -> int:
        return self._next_id

    def __len__(self) -> int:
        return len(self._members)

    def __contains__(self, member_id: object) -> bool:
        return any(member.id == member_id for member in self._members)

    def ids(self) -> List[int]:
        return [member.id for member in self._members]

    def get(self, member_id: int) -> Optional[Member]:
        for member in self._members:
            if member.id == member_id:
                return member
        return None

    def require(self, member_id: int) -> Member:
        member = self.get(member_id)
        if member is None:
            raise NotFound(member_id)
        return member

    def find_by_code(self, external_code: str) -> Optional[Member]:
        key = _code_key(external_code)
        for member in self._members:
            if _code_key(member.external_code) == key:
                return member
        return None

    def code_keys(self) -> set[str]:
        return {_code_key(member.external_code) for member in self._members}

    def add_removal_listener(self, listener: RemovalListener) -> None:
        self._listeners.append(listener)

    def checkpoint(self) -> Tuple[List[Member], int]:
        return list(self._members), self._next_id

    def restore(self, checkpoint: Tuple[List[Member], int]) -> None:
        """Put back members and counter captured by :meth:`checkpoint`."""
        members, next_id = checkpoint
        self._members = list(members)
        self._next_id = next_id

    def _validated_fields(
        self, external_code: Optional[str], display_name: Optional[str], notes: Optional[str]
    ) -> tuple[str, str, str]:
        code = _clean(external_code)
        name = _clean(display_name)
        if not code:
            raise InvalidMember("Employee ID is required")
        if not name:
            raise InvalidMember("Employee Name is required")
        return code, name, _clean(notes)

    def create(
        self, external_code: str, display_name: str, notes: Optional[str] = None
    ) -> Member:
        code, name, cleaned_notes = self._validated_fields(external_code, display_name, notes)
        if self.find_by_code(code) is not None:
            raise DuplicateIdentifier(code)

        member = Member(id=self._next_id, external_code=code, display_name=name, notes=cleaned_notes)
        self._members.append(member)
        self._next_id += 1
        logger.bind(member_id=member.id, code=code).debug("Member created")
        return member

    def update(
        self,
        member_id: int,
        external_code: str,
        display_name: str,
        notes: Optional[str] = None,
    ) -> Member:
        current = self.require(member_id)
        code, name, cleaned_notes = self._validated_fields(external_code, display_name, notes)
        clash = self.find_by_code(code)
        if clash is not None and clash.id != member_id:
            raise DuplicateIdentifier(code)

        updated = Member(id=current.id, external_code=code, display_name=name, notes=cleaned_notes)
        index = self._members.index(current)
        self._members[index] = updated
        logger.bind(member_id=member_id, code=code).debug("Member updated")
        return updated

    def delete(self, member_id: int) -> Member:
        member = self.require(member_id)
        self._members.remove(member)
        for listener in self._listeners:
            listener(member_id)
        logger.bind(member_id=member_id).debug("Member deleted")
        return member

    def merge(self, candidates: Sequence[Member]) -> List[Member]:
        """Insert a batch of candidates atomically.

        Ids are reallocated from the current counter in batch order, which
        keeps provisional ids intact when the roster did not change since
        they were handed out.
        """
        seen = self.code_keys()
        prepared = []
        for candidate in candidates:
            code, name, notes = self._validated_fields(
                candidate.external_code, candidate.display_name, candidate.notes
            )
            key = _code_key(code)
            if key in seen:
                raise DuplicateIdentifier(code)
            seen.add(key)
            prepared.append((code, name, notes))

        added = [
            Member(id=self._next_id + offset, external_code=code, display_name=name, notes=notes)
            for offset, (code, name, notes) in enumerate(prepared)
        ]
        self._members.extend(added)
        self._next_id += len(added)
        return added

    def search(self, query: Optional[str]) -> List[Member]:
        needle = _clean(query).lower()
        if not needle:
            return self.members
        return [
            member
            for member in self._members
            if needle in member.display_name.lower()
            or needle in member.external_code.lower()
            or needle in str(member.id)
            or needle in member.notes.lower()
        ]

    def generate_samples(self, count: int = 100) -> List[Member]:
        if count < 1:
            raise InvalidMember("Sample count must be positive")
        taken = self.code_keys()
        samples = []
        for index in range(1, count + 1):
            base = f"EMP{index:03d}"
            code = base
            suffix = 1
            while code.lower() in taken:
                code = f"{base}-{suffix}"
                suffix += 1
            taken.add(code.lower())
            name = SAMPLE_NAMES[index - 1] if index <= len(SAMPLE_NAMES) else f"Employee {index}"
            samples.append(Member(id=0, external_code=code, display_name=name))
        return self.merge(samples)

    def load_snapshot(self, raw_records: Iterable[Any], persisted_next_id: Any = 0) -> List[Member]:
        """Rebuild the roster from possibly corrupt persisted records.

        Records lacking an id, code or name are dropped, later duplicates of
        a code lose to the first occurrence, survivors are ordered by id and
        the counter ends up above every id without going below the persisted
        value. Feeding ``snapshot()`` back in is a no-op.
        """
        seen: set[str] = set()
        seen_ids: set[int] = set()
        survivors: List[Member] = []
        dropped = 0
        for record in raw_records:
            if not isinstance(record, dict):
                dropped += 1
                continue
            member_id = _parse_id(record.get("id"))
            code = record.get("external_code")
            name = record.get("display_name")
            if member_id is None or not isinstance(code, str) or not isinstance(name, str):
                dropped += 1
                continue
            code, name = code.strip(), name.strip()
            if not code or not name or _code_key(code) in seen or member_id in seen_ids:
                dropped += 1
                continue
            notes = record.get("notes")
            seen.add(_code_key(code))
            seen_ids.add(member_id)
            survivors.append(
                Member(
                    id=member_id,
                    external_code=code,
                    display_name=name,
                    notes=notes.strip() if isinstance(notes, str) else "",
                )
            )

        survivors.sort(key=lambda member: member.id)
        max_id = survivors[-1].id if survivors else 0
        counter = _parse_id(persisted_next_id) or 0
        self._members = survivors
        self._next_id = max(counter, max_id + 1, self._next_id, 1)
        if dropped:
            logger.bind(dropped=dropped, kept=len(survivors)).warning(
                "Discarded invalid or duplicate roster records"
            )
        return self.members

    def snapshot(self) -> List[Dict[str, Any]]:
        return [member.to_dict() for member in self._members]
