"""
Repository pattern implementation for the Lending Ledger.

Repositories are the read side of the system: they turn rows into pydantic
models for collaborators (reporting views, billing, the tool layer). Writes
to loans and copy counters go through the circulation engine instead.
"""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from pydantic import BaseModel
from sqlalchemy import Select, asc, desc, func, select
from sqlalchemy.orm import Session

from .schema import Base

ModelType = TypeVar("ModelType", bound=Base)
ResponseSchemaType = TypeVar("ResponseSchemaType", bound=BaseModel)


class RepositoryException(Exception):
    """Base exception for repository and circulation operations."""


class NotFoundError(RepositoryException):
    """Raised when an entity is not found."""


class PaginationParams(BaseModel):
    """Standard pagination parameters for list operations."""

    page: int = 1
    page_size: int = 20

    @property
    def offset(self) -> int:
        """Calculate offset for SQL queries."""
        return (self.page - 1) * self.page_size

    def validate_params(self) -> None:
        """Validate pagination parameters."""
        if self.page < 1:
            raise ValueError("Page must be >= 1")
        if self.page_size < 1 or self.page_size > 100:
            raise ValueError("Page size must be between 1 and 100")


class PaginatedResponse(BaseModel, Generic[ResponseSchemaType]):
    """Standard paginated response for list operations."""

    items: list[ResponseSchemaType]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_previous: bool


class BaseRepository(ABC, Generic[ModelType, ResponseSchemaType]):
    """
    Abstract read-only repository.

    Subclasses name their SQLAlchemy model and pydantic response schema;
    lookups and paging come for free.
    """

    def __init__(self, session: Session):
        """Initialize repository with database session."""
        self.session = session

    @property
    @abstractmethod
    def model_class(self) -> type[ModelType]:
        """Return the SQLAlchemy model class."""

    @property
    @abstractmethod
    def response_schema(self) -> type[ResponseSchemaType]:
        """Return the Pydantic response schema."""

    def _to_response_model(self, db_obj: ModelType) -> ResponseSchemaType:
        """Convert database model to Pydantic response model."""
        return self.response_schema.model_validate(db_obj, from_attributes=True)

    def get_by_id(self, id: int) -> ResponseSchemaType | None:
        """
        Get entity by ID.

        Returns:
            Pydantic model or None if not found
        """
        db_obj = self.session.get(self.model_class, id)
        if db_obj is None:
            return None
        return self._to_response_model(db_obj)

    def require(self, id: int) -> ResponseSchemaType:
        """Get entity by ID, raising NotFoundError when it is missing."""
        found = self.get_by_id(id)
        if found is None:
            raise NotFoundError(f"{self.model_class.__name__} {id} not found")
        return found

    def get_all(
        self,
        pagination: PaginationParams | None = None,
        order_by: str | None = None,
        order_desc: bool = False,
    ) -> list[ResponseSchemaType] | PaginatedResponse[ResponseSchemaType]:
        """
        Get all entities with optional pagination and sorting.

        Args:
            pagination: Pagination parameters
            order_by: Field name to order by
            order_desc: Whether to order descending

        Returns:
            List of entities, or a paginated response when pagination is given
        """
        query = select(self.model_class)

        if order_by and hasattr(self.model_class, order_by):
            order_field = getattr(self.model_class, order_by)
            query = query.order_by(desc(order_field) if order_desc else asc(order_field))
        else:
            query = query.order_by(self.model_class.id)

        if pagination:
            return self._paginate(query, pagination)

        results = self.session.execute(query).scalars().all()
        return [self._to_response_model(item) for item in results]

    def exists(self, id: int) -> bool:
        """Check if entity exists by ID."""
        query = select(func.count()).select_from(self.model_class).where(self.model_class.id == id)
        return (self.session.execute(query).scalar() or 0) > 0

    def _paginate(
        self, query: Select, pagination: PaginationParams
    ) -> PaginatedResponse[ResponseSchemaType]:
        """Helper to paginate any select over this repository's model."""
        pagination.validate_params()

        count_query = select(func.count()).select_from(query.subquery())
        total = self.session.execute(count_query).scalar() or 0

        query = query.offset(pagination.offset).limit(pagination.page_size)
        results = self.session.execute(query).unique().scalars().all()

        return PaginatedResponse(
            items=[self._to_response_model(item) for item in results],
            total=total,
            page=pagination.page,
            page_size=pagination.page_size,
            total_pages=(total + pagination.page_size - 1) // pagination.page_size,
            has_next=pagination.page * pagination.page_size < total,
            has_previous=pagination.page > 1,
        )
