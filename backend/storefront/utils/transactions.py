from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session


@contextmanager
def unit_of_work(session: Session) -> Iterator[Session]:
    """
    Run a block of DB work as one unit: commit when the block finishes,
    roll back everything when it raises.
    Usage:
        with unit_of_work(db):
            ... DB work ...
    """
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
