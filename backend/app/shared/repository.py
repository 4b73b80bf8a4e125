"""
Base repository with common CRUD operations.

Provides generic database operations for all feature repositories.
Uses SQLAlchemy async session for non-blocking database access.

Usage:
    class UserRepository(BaseRepository[User]):
        def __init__(self, db: AsyncSession):
            super().__init__(db, User)

        async def get_by_athlete_id(self, athlete_id: int) -> User | None:
            return await self.get_by(strava_athlete_id=athlete_id)

Writes only flush; the unit of work decides when to call commit(), which
rolls back and raises PersistenceError on database failure.
"""

import logging
from typing import TypeVar, Generic, Type

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .exceptions import PersistenceError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Base repository for database operations.

    Provides common CRUD methods that can be inherited by feature repositories.
    All methods are async for use with AsyncSession.
    """

    def __init__(self, db: AsyncSession, model: Type[T]):
        """
        Initialize repository.

        Args:
            db: Async database session
            model: SQLAlchemy model class
        """
        self.db = db
        self.model = model

    async def get_by_id(self, id: int) -> T | None:
        """Get entity by primary key ID."""
        result = await self.db.execute(
            select(self.model).where(self.model.id == id)
        )
        return result.scalar_one_or_none()

    async def get_by(self, **kwargs) -> T | None:
        """
        Get single entity by arbitrary field values.

        Args:
            **kwargs: Field name-value pairs to filter by

        Returns:
            First matching entity or None
        """
        query = select(self.model)
        for key, value in kwargs.items():
            query = query.where(getattr(self.model, key) == value)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_all(self, **kwargs) -> list[T]:
        """Get all entities matching criteria, ordered by primary key."""
        query = select(self.model)
        for key, value in kwargs.items():
            query = query.where(getattr(self.model, key) == value)
        query = query.order_by(self.model.id)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def create(self, **kwargs) -> T:
        """
        Create new entity.

        Args:
            **kwargs: Field values for new entity

        Returns:
            Created entity with generated ID
        """
        entity = self.model(**kwargs)
        self.db.add(entity)
        await self.db.flush()
        await self.db.refresh(entity)
        return entity

    async def update(self, entity: T, **kwargs) -> T:
        """Set fields on an entity and flush."""
        for key, value in kwargs.items():
            setattr(entity, key, value)
        await self.db.flush()
        await self.db.refresh(entity)
        return entity

    async def delete(self, entity: T) -> None:
        await self.db.delete(entity)
        await self.db.flush()

    async def commit(self) -> None:
        """
        Commit the current unit of work.

        Raises:
            PersistenceError: If the database rejects the transaction
                (the session is rolled back first)
        """
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"{self.model.__name__} commit failed: {e}")
            raise PersistenceError(f"Commit failed for {self.model.__name__}") from e
