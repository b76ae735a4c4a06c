"""
Base Repository - Shared data access behaviour for the analytics repositories
Implements common database operations following the Repository Pattern
"""

from abc import ABC
from typing import TypeVar, Generic, List, Dict, Any, Type
from sqlalchemy.orm import Session, Query
from sqlalchemy.exc import SQLAlchemyError
from dataclasses import dataclass
import logging

logger = logging.getLogger(__name__)

# Type variable for model classes
T = TypeVar('T')


@dataclass
class PaginationParams:
    """Parameters for pagination"""
    page: int = 1
    per_page: int = 20

    def __post_init__(self):
        self.page = max(1, int(self.page))
        self.per_page = min(max(1, int(self.per_page)), 200)

    @property
    def offset(self) -> int:
        """Calculate offset for query"""
        return (self.page - 1) * self.per_page

    @property
    def limit(self) -> int:
        return self.per_page


@dataclass
class PaginatedResult(Generic[T]):
    """Result of a paginated query"""
    items: List[T]
    total: int
    page: int
    per_page: int

    @property
    def pages(self) -> int:
        """Calculate total number of pages"""
        return (self.total + self.per_page - 1) // self.per_page if self.per_page > 0 else 0

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.pages

    def pagination_dict(self) -> Dict[str, Any]:
        """Pagination block for JSON responses"""
        return {
            'page': self.page,
            'per_page': self.per_page,
            'total': self.total,
            'pages': self.pages,
            'has_prev': self.has_prev,
            'has_next': self.has_next,
        }


class BaseRepository(ABC, Generic[T]):
    """
    Abstract base repository with common write and pagination operations.

    Writes flush but never commit; the calling service owns the transaction
    and calls commit() once its unit of work is complete.
    """

    def __init__(self, session: Session, model_class: Type[T]):
        """
        Initialize repository with database session and model class.

        Args:
            session: SQLAlchemy database session
            model_class: The model class this repository manages
        """
        self.session = session
        self.model_class = model_class

    def create(self, **kwargs) -> T:
        """
        Create a new entity.

        Raises:
            SQLAlchemyError: If database operation fails
        """
        try:
            entity = self.model_class(**kwargs)
            self.session.add(entity)
            self.session.flush()  # Flush to get ID without committing
            logger.debug(f"Created {self.model_class.__name__} with id {entity.id}")
            return entity
        except SQLAlchemyError as e:
            logger.error(f"Error creating {self.model_class.__name__}: {e}")
            self.session.rollback()
            raise

    def update(self, entity: T, **updates) -> T:
        """
        Update entity attributes in place.

        Raises:
            SQLAlchemyError: If database operation fails
        """
        try:
            for key, value in updates.items():
                if hasattr(entity, key):
                    setattr(entity, key, value)
            self.session.flush()
            return entity
        except SQLAlchemyError as e:
            logger.error(f"Error updating {self.model_class.__name__}: {e}")
            self.session.rollback()
            raise

    def paginate(self, query: Query, pagination: PaginationParams) -> PaginatedResult[T]:
        """Apply offset/limit to an already filtered and ordered query"""
        total = query.order_by(None).count()
        items = query.offset(pagination.offset).limit(pagination.limit).all()
        return PaginatedResult(
            items=items,
            total=total,
            page=pagination.page,
            per_page=pagination.per_page
        )

    # Transaction Management

    def commit(self):
        """
        Commit the current transaction.

        Raises:
            SQLAlchemyError: If commit fails
        """
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error committing transaction: {e}")
            self.session.rollback()
            raise

    def rollback(self):
        self.session.rollback()
