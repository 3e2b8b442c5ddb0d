from __future__ import annotations

from typing import Callable, ContextManager, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from roster_santa.db.models import StateBlob
from roster_santa.db.session import get_session


def get_blob(session, key: str) -> Optional[StateBlob]:
    return session.scalar(select(StateBlob).where(StateBlob.key == key))


def put_blob(session, key: str, value: str) -> StateBlob:
    blob = get_blob(session, key)
    if blob:
        blob.value = value
        return blob
    blob = StateBlob(key=key, value=value)
    session.add(blob)
    session.flush()
    return blob


class SqlBlobStore:
    """Key -> text store on top of the ``state_blobs`` table.

    Each call runs in its own committed session, so every save is durable
    as soon as it returns.
    """

    def __init__(self, sessions: Callable[[], ContextManager[Session]] = get_session) -> None:
        self._sessions = sessions

    def load(self, key: str) -> Optional[str]:
        with self._sessions() as session:
            blob = get_blob(session, key)
            return blob.value if blob else None

    def save(self, key: str, value: str) -> None:
        with self._sessions() as session:
            put_blob(session, key, value)
