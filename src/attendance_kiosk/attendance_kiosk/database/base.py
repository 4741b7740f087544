from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import InvariantViolation, StorageError
from .connection import LocalDatabase

logger = logging.getLogger(__name__)


@contextmanager
def db_session(database: LocalDatabase) -> Iterator[Session]:
    """One transaction: commit on success, rollback on any error.

    Driver errors surface as StorageError; constraint violations as
    InvariantViolation.
    """
    session = database.session_factory()
    try:
        yield session
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise InvariantViolation(str(e.orig)) from e
    except SQLAlchemyError as e:
        session.rollback()
        logger.error("Local cache operation failed: %s", e)
        raise StorageError(str(e)) from e
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
