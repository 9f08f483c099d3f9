import logging
from contextlib import contextmanager
from typing import Optional

from sqlalchemy.orm import Session

from fitledger.db.session import SessionLocal

logger = logging.getLogger(__name__)


@contextmanager
def db_transaction(db: Optional[Session] = None):
    """
    Run a unit of work and commit it, or roll back everything on error.
    Opens (and closes) its own session when none is passed in.
    """
    if db is None:
        db = SessionLocal()
        should_close = True
    else:
        should_close = False
    try:
        yield db
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Transaction rolled back: {e}", exc_info=True)
        raise
    finally:
        if should_close:
            db.close()
