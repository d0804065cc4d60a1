from typing import List, Optional

from sqlalchemy import delete
from sqlalchemy.future import select

from app.core.logger import get_logger
from app.memory.entity.memory import MemoryEntry
from app.memory.repository.sql_schema.memory import MemoryModel
from app.memory.service.service import IMemoryRepository
from pkg.db_util.postgres_conn import PostgresConnection

logger = get_logger(__name__)


def _to_entry(row: MemoryModel) -> MemoryEntry:
    return MemoryEntry(
        id=row.id,
        owner_id=row.owner_id,
        key=row.key,
        value=row.value,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class MemoryRepository(IMemoryRepository):
    def __init__(self, postgres: PostgresConnection):
        self.postgres = postgres

    async def add(self, entry: MemoryEntry) -> MemoryEntry:
        async with self.postgres.get_session() as session:
            session.add(MemoryModel(
                id=entry.id,
                owner_id=entry.owner_id,
                key=entry.key,
                value=entry.value,
                created_at=entry.created_at,
            ))
        return entry

    async def list_by_owner(self, owner_id: str) -> List[MemoryEntry]:
        async with self.postgres.get_session() as session:
            result = await session.execute(
                select(MemoryModel)
                .where(MemoryModel.owner_id == owner_id)
                .order_by(MemoryModel.created_at.asc())
            )
            return [_to_entry(r) for r in result.scalars().all()]

    async def get(self, owner_id: str, memory_id: str) -> Optional[MemoryEntry]:
        async with self.postgres.get_session() as session:
            result = await session.execute(
                select(MemoryModel).where(MemoryModel.id == memory_id, MemoryModel.owner_id == owner_id)
            )
            row = result.scalar_one_or_none()
            return _to_entry(row) if row else None

    async def update(self, entry: MemoryEntry) -> None:
        async with self.postgres.get_session() as session:
            row = await session.get(MemoryModel, entry.id)
            if row is None or row.owner_id != entry.owner_id:
                return
            row.key = entry.key
            row.value = entry.value
            row.updated_at = entry.updated_at

    async def delete(self, owner_id: str, memory_id: str) -> bool:
        async with self.postgres.get_session() as session:
            result = await session.execute(
                delete(MemoryModel).where(MemoryModel.id == memory_id, MemoryModel.owner_id == owner_id)
            )
        if result.rowcount:
            logger.info(f"Deleted memory {memory_id}")
        return result.rowcount > 0
