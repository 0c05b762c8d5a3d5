# backend/tutorhub/repositories/base_repository.py
"""
Base repository for the scheduling engine.

Repositories flush and never commit; the owning service decides the
transaction scope. Driver failures become RepositoryException, except
IntegrityError, which is re-raised untouched so the booking service can map
overlap-guard violations to conflicts.
"""

from __future__ import annotations

from contextlib import contextmanager
import logging
from typing import Any, Dict, Generic, Iterator, List, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException

T = TypeVar("T")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[T]):
    """Data access for one mapped model."""

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    @contextmanager
    def _guard(self, action: str) -> Iterator[None]:
        try:
            yield
        except IntegrityError:
            self.logger.warning("Integrity error while %s %s", action, self.model.__name__)
            raise
        except SQLAlchemyError as e:
            self.logger.error("Error while %s %s: %s", action, self.model.__name__, e)
            raise RepositoryException(f"Failed while {action} {self.model.__name__}: {e}")

    def get_by_id(self, id: str, load_relationships: bool = True) -> Optional[T]:
        """Primary-key lookup; relationships are eager-loaded on request."""
        with self._guard("loading"):
            query = self.db.query(self.model).filter(self.model.id == id)
            if load_relationships:
                query = self._apply_eager_loading(query)
            return query.first()

    def find_one_by(self, **criteria: Any) -> Optional[T]:
        with self._guard("looking up"):
            return self.db.query(self.model).filter_by(**criteria).first()

    def create(self, **fields: Any) -> T:
        """Add and flush one row so its generated id is available."""
        with self._guard("creating"):
            entity = self.model(**fields)
            self.db.add(entity)
            self.db.flush()
            return entity

    def bulk_create(self, rows: List[Dict[str, Any]]) -> List[T]:
        """Add every row and flush once; entities come back in input order."""
        with self._guard("bulk creating"):
            entities = [self.model(**row) for row in rows]
            self.db.add_all(entities)
            self.db.flush()
            return entities

    def flush(self) -> None:
        with self._guard("flushing"):
            self.db.flush()

    def _apply_eager_loading(self, query: Query) -> Query:
        """Override to eager-load relationships in get_by_id."""
        return query

    def _execute_query(self, query: Query) -> List[T]:
        with self._guard("querying"):
            return query.all()

    def _execute_scalar(self, query: Query) -> Any:
        with self._guard("aggregating"):
            return query.scalar()
