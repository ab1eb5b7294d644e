"""
Record store interface.

The lifecycle coordinator needs exactly four capabilities from durable
storage, each atomic at the single-row level:

  1. insert a record
  2. update named fields of a record by id (compare-and-swap on `version`)
  3. delete a record by id, or every record matching a predicate
  4. subscribe to insert/update/delete events for a table

Read helpers and a savepoint context complete the surface. Keeping this as an
interface lets tests inject a store whose dependent writes fail, which is how
cascade-failure handling is exercised.
"""

from abc import ABC, abstractmethod
from typing import Any, AsyncContextManager, Callable, Dict, List, Optional, Type, TypeVar

from app.services.notification_service import ChangeEvent, Subscription

ModelT = TypeVar("ModelT")


class RecordStore(ABC):

    @abstractmethod
    async def get(self, model: Type[ModelT], record_id: int) -> Optional[ModelT]:
        """Load one record by id, or None."""
        pass

    @abstractmethod
    async def get_or_raise(self, model: Type[ModelT], record_id: int) -> ModelT:
        """Load one record by id or raise NotFoundError."""
        pass

    @abstractmethod
    async def reload(self, model: Type[ModelT], record_id: int) -> ModelT:
        """Re-read one record from the database, overwriting any cached state."""
        pass

    @abstractmethod
    async def find(self, model: Type[ModelT], *criteria, order_by=None) -> List[ModelT]:
        """Load every record matching all `criteria`."""
        pass

    @abstractmethod
    async def insert(self, record: ModelT) -> ModelT:
        pass

    @abstractmethod
    async def update_fields(
        self,
        model: Type[ModelT],
        record_id: int,
        values: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> ModelT:
        """
        Update `values` on one record and bump its version.

        Raises:
            NotFoundError: no such record
            VersionConflictError: the record's version is not `expected_version`
        """
        pass

    @abstractmethod
    async def delete(self, model: Type[ModelT], record_id: int) -> None:
        pass

    @abstractmethod
    async def delete_where(self, model: Type[ModelT], *criteria) -> int:
        """Delete every record matching `criteria` (all rows if none). Returns the count."""
        pass

    @abstractmethod
    def subscribe(
        self,
        table: str,
        handler: Callable[[ChangeEvent], None],
        predicate: Optional[Callable[[ChangeEvent], bool]] = None,
    ) -> Subscription:
        pass

    @abstractmethod
    def savepoint(self) -> AsyncContextManager:
        """Nested transaction: rolled back on exception without touching the outer one."""
        pass
