"""
Remote store interface.

Row-oriented, keyed tables reached over the network. The sync coordinator
depends only on this interface; ``SupabaseStore`` is the production
implementation.
"""

import abc
from typing import List, Sequence, Type, TypeVar

from chargepal.app.schemas.remote import RemoteRow, RemoteTable

R = TypeVar("R", bound=RemoteRow)


class RemoteStoreError(Exception):
    """Transport or server failure of a remote store call."""


class RemoteStore(abc.ABC):

    @abc.abstractmethod
    async def upsert(self, table: RemoteTable, rows: Sequence[RemoteRow], on_conflict: str) -> None:
        """Insert rows, replacing existing rows with the same ``on_conflict`` key."""

    @abc.abstractmethod
    async def delete(self, table: RemoteTable, ids: Sequence[str]) -> None:
        """Delete rows whose ``id`` is in ``ids``."""

    @abc.abstractmethod
    async def select_all(self, table: RemoteTable) -> List[RemoteRow]:
        """Return every row of ``table`` as its full row model."""

    @abc.abstractmethod
    async def select_columns(self, table: RemoteTable, row_type: Type[R]) -> List[R]:
        """Return every row of ``table`` restricted to the columns of ``row_type``."""
