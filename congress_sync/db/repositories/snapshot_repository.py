"""
Shared upsert-by-natural-key logic for snapshot tables.

Bills, members and hearings are all persisted the same way: look up the
stored row by natural key, compare the significant-field hash, and either
touch `last_synced_at` (unchanged) or write the row with a dialect-native
INSERT .. ON CONFLICT DO UPDATE (created/updated).

Responsibility: Generic snapshot persistence for resource repositories
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Generic, Optional, Sequence, Type, TypeVar
import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

logger = logging.getLogger(__name__)

D = TypeVar("D")  # Domain model
M = TypeVar("M")  # ORM model


class PersistenceStatus(Enum):
    """Outcome classification for snapshot persistence operations."""

    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


@dataclass(slots=True)
class PersistenceOutcome(Generic[D, M]):
    """Represents the result of persisting a single snapshot."""

    model: M
    status: PersistenceStatus
    content_hash: str
    previous: Optional[D] = None  # Stored snapshot before this write
    record: Optional[D] = None  # Snapshot as written (after merging with the stored one)


def dialect_insert(session: AsyncSession, table: Any):
    """
    Build an INSERT supporting ON CONFLICT for the session's dialect.

    PostgreSQL in production, SQLite in tests; both expose
    on_conflict_do_update(index_elements=..., set_=...).
    """
    dialect = session.get_bind().dialect.name

    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise NotImplementedError(f"Upsert not supported for dialect '{dialect}'")

    return insert(table)


class SnapshotRepository(Generic[D, M]):
    """
    Base repository for natural-key snapshot tables.

    Subclasses set `model` and `natural_key_columns` and implement the
    conversion/hash hooks.
    """

    model: Type[M]
    natural_key_columns: Sequence[str] = ()
    # Columns written on insert but never overwritten by a later upsert
    insert_only_columns: frozenset[str] = frozenset()

    def __init__(self, session: AsyncSession):
        """
        Initialize repository with database session.

        Args:
            session: Active database session
        """
        self.session = session

    # MARK: - Hooks

    def _compute_content_hash(self, record: D) -> str:
        raise NotImplementedError

    def _domain_to_dict(self, record: D, *, content_hash: str) -> Dict[str, Any]:
        raise NotImplementedError

    def _model_to_domain(self, model: M) -> D:
        raise NotImplementedError

    def _merge_with_stored(self, record: D, stored: D) -> D:
        """Fill fields the incoming record leaves out from the stored snapshot"""
        return record

    def _conflict_extras(self) -> Dict[str, Any]:
        """Extra SET clauses applied only when an existing row is overwritten"""
        return {}

    # MARK: - Queries

    async def get_by_id(self, record_id: int) -> Optional[M]:
        result = await self.session.execute(
            select(self.model).where(self.model.id == record_id)
        )
        return result.scalar_one_or_none()

    async def _get_model_by_natural_key(self, *key: Any) -> Optional[M]:
        """Load the ORM row for a natural key, refreshing any cached instance"""
        clauses = [
            getattr(self.model, column) == value
            for column, value in zip(self.natural_key_columns, key)
        ]
        result = await self.session.execute(
            select(self.model)
            .where(*clauses)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_natural_key(self, *key: Any) -> Optional[D]:
        """Get the stored snapshot for a natural key, as a domain object."""
        model = await self._get_model_by_natural_key(*key)
        return self._model_to_domain(model) if model else None

    # MARK: - Writes

    async def upsert(self, record: D) -> PersistenceOutcome[D, M]:
        """
        Insert or update a snapshot by natural key.

        An existing row first fills in whatever the incoming record does not
        carry (`_merge_with_stored`); the merged record is what gets hashed,
        written and returned. Unchanged snapshots (same significant-field
        hash) only get their `last_synced_at` refreshed.
        """
        key = record.natural_key()
        existing = await self._get_model_by_natural_key(*key)

        if existing is not None:
            previous = self._model_to_domain(existing)
            record = self._merge_with_stored(record, previous)
            content_hash = self._compute_content_hash(record)

            if existing.content_hash == content_hash:
                await self.touch(existing)
                logger.debug(
                    "Skipped update for %s %s (unchanged content)",
                    self.model.__tablename__,
                    key,
                )
                return PersistenceOutcome(
                    model=existing,
                    status=PersistenceStatus.UNCHANGED,
                    content_hash=content_hash,
                    previous=previous,
                    record=record,
                )

            model = await self._write(record, content_hash)
            logger.debug("Updated %s %s", self.model.__tablename__, key)
            return PersistenceOutcome(
                model=model,
                status=PersistenceStatus.UPDATED,
                content_hash=content_hash,
                previous=previous,
                record=record,
            )

        content_hash = self._compute_content_hash(record)
        model = await self._write(record, content_hash)
        logger.debug("Created %s %s", self.model.__tablename__, key)
        return PersistenceOutcome(
            model=model,
            status=PersistenceStatus.CREATED,
            content_hash=content_hash,
            record=record,
        )

    async def touch(self, model: M) -> None:
        """Refresh last_synced_at without writing any snapshot column."""
        now = datetime.utcnow()
        await self.session.execute(
            update(self.model)
            .where(self.model.id == model.id)
            # Pin updated_at so its onupdate default does not fire
            .values(last_synced_at=now, updated_at=model.updated_at)
        )
        set_committed_value(model, "last_synced_at", now)

    async def _write(self, record: D, content_hash: str) -> M:
        """Dialect-native INSERT .. ON CONFLICT (natural key) DO UPDATE."""
        values = self._domain_to_dict(record, content_hash=content_hash)
        values["last_synced_at"] = datetime.utcnow()

        stmt = dialect_insert(self.session, self.model).values(**values)

        set_ = {
            column: stmt.excluded[column]
            for column in values
            if column not in self.natural_key_columns
            and column not in self.insert_only_columns
        }
        set_["updated_at"] = datetime.utcnow()
        set_.update(self._conflict_extras())

        stmt = stmt.on_conflict_do_update(
            index_elements=list(self.natural_key_columns),
            set_=set_,
        )
        await self.session.execute(stmt)

        model = await self._get_model_by_natural_key(*record.natural_key())
        if model is None:
            raise RuntimeError(
                f"Upsert of {self.model.__tablename__} {record.natural_key()} returned no row"
            )
        return model
