"""Abstract store interface.

The sync orchestrator and the CLI depend on BaseStore, not on a concrete
backend. The pipeline only needs three decisions from it: does a record
exist, create it, or replace it wholesale.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from prlog_store.models import FileChangeRecord, PullRequestRecord, StoreStats


class StoreError(Exception):
    """Raised when a store operation cannot be completed."""


class BaseStore(ABC):
    """Persistence layer for PR history.

    A store instance is not safe for concurrent writers: callers must
    serialize sync runs against one store.
    """

    @abstractmethod
    def get_pr(self, number: int) -> PullRequestRecord | None:
        """Return the record for a PR number, or None if absent."""

    @abstractmethod
    def insert_pr(self, record: PullRequestRecord) -> None:
        """Create a new record. Raises StoreError if the number already exists."""

    @abstractmethod
    def upsert_pr(self, record: PullRequestRecord) -> None:
        """Create the record, or replace it and its file changes wholesale."""

    @abstractmethod
    def get_file_changes(self, number: int) -> list[FileChangeRecord]:
        """Return the file changes of one PR ordered by path."""

    @abstractmethod
    def list_prs(
        self,
        author: str | None = None,
        since: str | None = None,
        until: str | None = None,
        file: str | None = None,
        area: str | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[PullRequestRecord]:
        """Return records newest first, optionally filtered.

        Returns an empty list when nothing matches — never raises.
        """

    @abstractmethod
    def list_prs_for_context(self) -> list[PullRequestRecord]:
        """Return every record with its file changes, most recently merged first."""

    @abstractmethod
    def stats(self) -> StoreStats:
        """Aggregate counts over the whole store."""

    def close(self) -> None:
        """Release any resources held by the store (connections, file handles).

        Default is a no-op so callers can always call close() safely.
        """
