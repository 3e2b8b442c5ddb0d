from roster_santa.db.models import Base, StateBlob
from roster_santa.db.repo import SqlBlobStore
from roster_santa.db.session import SessionLocal, create_schema, get_session, init_engine, session_scope

__all__ = [
    "Base",
    "StateBlob",
    "SqlBlobStore",
    "SessionLocal",
    "create_schema",
    "get_session",
    "init_engine",
    "session_scope",
]
