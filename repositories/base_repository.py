"""
Base Repository - Common base class for all repositories
"""

from typing import TypeVar, Generic, List, Optional, Dict, Any, Type
from sqlalchemy.orm import Session, Query
from sqlalchemy.exc import SQLAlchemyError
import logging

logger = logging.getLogger(__name__)

T = TypeVar('T')


class BaseRepository(Generic[T]):
    """
    CRUD helpers shared by the model repositories.

    Writes flush but never commit; the owning service decides when a unit of
    work is complete and calls commit() or rollback(). Database errors are
    logged and re-raised so services can turn them into failure Results.
    """

    def __init__(self, session: Session, model_class: Type[T]):
        self.session = session
        self.model_class = model_class

    @property
    def _name(self) -> str:
        return self.model_class.__name__

    def create(self, **kwargs) -> T:
        """Add a row and flush so its id is available."""
        try:
            entity = self.model_class(**kwargs)
            self.session.add(entity)
            self.session.flush()
            logger.debug(f"Created {self._name} {entity.id}")
            return entity
        except SQLAlchemyError as e:
            logger.error(f"Error creating {self._name}: {e}")
            self.session.rollback()
            raise

    def create_many(self, rows: List[Dict[str, Any]]) -> List[T]:
        if not rows:
            return []
        try:
            entities = [self.model_class(**row) for row in rows]
            self.session.add_all(entities)
            self.session.flush()
            return entities
        except SQLAlchemyError as e:
            logger.error(f"Error creating {len(rows)} {self._name} rows: {e}")
            self.session.rollback()
            raise

    def get_by_id(self, entity_id: int) -> Optional[T]:
        try:
            return self.session.get(self.model_class, entity_id)
        except SQLAlchemyError as e:
            logger.error(f"Error loading {self._name} {entity_id}: {e}")
            raise

    def find_by(self, **filters) -> List[T]:
        """
        Rows matching column == value filters.

        List values become IN clauses and None becomes IS NULL.
        """
        try:
            return self._filtered(filters).all()
        except SQLAlchemyError as e:
            logger.error(f"Error querying {self._name}: {e}")
            raise

    def find_one_by(self, **filters) -> Optional[T]:
        try:
            return self._filtered(filters).first()
        except SQLAlchemyError as e:
            logger.error(f"Error querying {self._name}: {e}")
            raise

    def update(self, entity: T, **updates) -> T:
        """Set the given attributes and flush. Unknown attribute names are ignored."""
        try:
            for field, value in updates.items():
                if hasattr(entity, field):
                    setattr(entity, field, value)
            self.session.flush()
            return entity
        except SQLAlchemyError as e:
            logger.error(f"Error updating {self._name}: {e}")
            self.session.rollback()
            raise

    def delete(self, entity: T) -> None:
        try:
            self.session.delete(entity)
            self.session.flush()
        except SQLAlchemyError as e:
            logger.error(f"Error deleting {self._name}: {e}")
            self.session.rollback()
            raise

    def delete_many(self, filters: Dict[str, Any]) -> int:
        """Bulk delete; returns the number of rows removed."""
        try:
            removed = self._filtered(filters).delete(synchronize_session=False)
            self.session.flush()
            return removed
        except SQLAlchemyError as e:
            logger.error(f"Error deleting {self._name} rows: {e}")
            self.session.rollback()
            raise

    def commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error committing transaction: {e}")
            self.session.rollback()
            raise

    def rollback(self) -> None:
        self.session.rollback()

    def _filtered(self, filters: Optional[Dict[str, Any]] = None) -> Query:
        query = self.session.query(self.model_class)
        for field, value in (filters or {}).items():
            column = getattr(self.model_class, field, None)
            if column is None:
                continue
            if isinstance(value, (list, tuple, set)):
                query = query.filter(column.in_(list(value)))
            elif value is None:
                query = query.filter(column.is_(None))
            else:
                query = query.filter(column == value)
        return query
