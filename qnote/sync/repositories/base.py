"""
Base Repository.

Base class for local cache repositories. Every cached row belongs to a
user, so lookups are always scoped by user id.
"""

from typing import Any, Generic, TypeVar

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from qnote.sync.core.exceptions import NotFoundError
from qnote.sync.core.logging import get_logger
from qnote.sync.models.base import Base

logger = get_logger(__name__)

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Base repository with common user-scoped operations.

    Subclasses should set the model class and its key column:

        class NoteRepository(BaseRepository[CachedNote]):
            model = CachedNote
            key_column = "id"
    """

    model: type[ModelType]
    key_column: str = "id"

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _scoped(self, user_id: str) -> Select:
        """Select statement restricted to one user's rows."""
        return select(self.model).where(self.model.user_id == user_id)

    def _key(self):
        return getattr(self.model, self.key_column)

    async def get_or_none(self, user_id: str, key: str) -> ModelType | None:
        """Get a single record by user and key, returning None if not found."""
        result = await self.session.execute(
            self._scoped(user_id).where(self._key() == key)
        )
        return result.scalar_one_or_none()

    async def get(self, user_id: str, key: str) -> ModelType:
        """
        Get a single record by user and key.

        Raises:
            NotFoundError: If record not found
        """
        instance = await self.get_or_none(user_id, key)
        if instance is None:
            raise NotFoundError(f"{self.model.__name__} not found")
        return instance

    async def list_for_user(self, user_id: str) -> list[ModelType]:
        """Get all records of one user."""
        result = await self.session.execute(self._scoped(user_id))
        return list(result.scalars().all())

    async def upsert(self, user_id: str, key: str, **values: Any) -> ModelType:
        """Insert a record or overwrite the fields of the existing one."""
        instance = await self.get_or_none(user_id, key)
        if instance is None:
            instance = self.model(user_id=user_id, **{self.key_column: key}, **values)
            self.session.add(instance)
        else:
            for field, value in values.items():
                setattr(instance, field, value)
        await self.session.flush()
        return instance

    async def delete(self, user_id: str, key: str) -> bool:
        """Delete a record. Returns False if there was nothing to delete."""
        instance = await self.get_or_none(user_id, key)
        if instance is None:
            return False
        await self.session.delete(instance)
        await self.session.flush()
        return True
