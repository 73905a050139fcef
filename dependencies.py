from collections.abc import Callable, Generator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from db import SessionLocal
from state import AppState


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_state(request: Request, db: Session = Depends(get_db)) -> AppState:
    """The process-wide store, caught up with writes made outside this process."""
    store = request.app.state.store
    store.sync(db)
    return store


def query_confirmation(confirm: bool = False) -> Callable[[str], bool]:
    """Delete confirmation for API callers: the ``?confirm=true`` flag."""
    return lambda _message: confirm
