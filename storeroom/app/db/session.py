from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from storeroom.app.core.config import settings
from storeroom.services.errors import PersistenceFailure

engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """
    Unité de travail : commit si tout passe, rollback sinon.

    Erreur driver/ORM -> PersistenceFailure ; les erreurs métier
    (StoreError) remontent telles quelles.
    """
    try:
        yield db
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceFailure(str(exc.__class__.__name__)) from exc
    except BaseException:
        db.rollback()
        raise
