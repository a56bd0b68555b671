"""
Read-only, tenant-scoped access to the four entity collections the
resolver searches (projects, contacts, wallets, categories).

``EntityStore`` is the port; ``SqlEntityStore`` reads the SQLAlchemy
models and ``InMemoryEntityStore`` serves fixed rows (tests, demos).
Implementations may raise; the resolver treats an error exactly like an
empty collection.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from nlpipe.schemas.entity import EntityCollection, EntityRecord
from nlpipe.sqlite.database import SessionLocal, get_db_context
from nlpipe.sqlite.models import Contact, MovementCategory, Project, Wallet
from nlpipe.utils.timing import timed


class EntityStore(ABC):
    """Port for tenant-scoped entity lookups."""

    @abstractmethod
    async def list_records(
        self,
        collection: EntityCollection,
        organization_id: str,
    ) -> list[EntityRecord]:
        """Every record of ``collection`` that belongs to ``organization_id``."""
        ...


class InMemoryEntityStore(EntityStore):
    """Dict-backed store: ``{(collection, organization_id): [records]}``."""

    def __init__(self) -> None:
        self._records: dict[tuple[str, str], list[EntityRecord]] = defaultdict(list)

    def add(
        self,
        collection: EntityCollection | str,
        organization_id: str,
        records: Iterable[EntityRecord | dict],
    ) -> None:
        key = (EntityCollection(collection).value, organization_id)
        for record in records:
            if isinstance(record, dict):
                record = EntityRecord(**record)
            self._records[key].append(record)

    async def list_records(
        self,
        collection: EntityCollection,
        organization_id: str,
    ) -> list[EntityRecord]:
        return list(self._records.get((EntityCollection(collection).value, organization_id), []))


_MODELS = {
    EntityCollection.PROJECTS: Project,
    EntityCollection.CONTACTS: Contact,
    EntityCollection.WALLETS: Wallet,
    EntityCollection.CATEGORIES: MovementCategory,
}


class SqlEntityStore(EntityStore):
    """
    Reads entity rows through the sync SQLAlchemy session factory.

    Each call opens its own session on a worker thread, so concurrent
    searches from one pipeline run never share a connection.
    """

    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self._session_factory = session_factory

    @timed("sql_entity_store.list_records")
    async def list_records(
        self,
        collection: EntityCollection,
        organization_id: str,
    ) -> list[EntityRecord]:
        return await asyncio.to_thread(
            self._query, EntityCollection(collection), organization_id,
        )

    def _query(self, collection: EntityCollection, organization_id: str) -> list[EntityRecord]:
        model = _MODELS[collection]
        stmt = select(model).where(model.organization_id == organization_id)
        with get_db_context(self._session_factory) as db:
            rows = db.execute(stmt).scalars().all()
            return [self._to_record(collection, row) for row in rows]

    @staticmethod
    def _to_record(collection: EntityCollection, row) -> EntityRecord:
        if collection == EntityCollection.CONTACTS:
            return EntityRecord(
                id=str(row.id),
                name=row.full_name,
                first_name=row.first_name,
                last_name=row.last_name,
            )
        return EntityRecord(id=str(row.id), name=row.name)
