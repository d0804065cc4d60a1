from typing import List

from sqlalchemy.future import select

from app.upload.entity.upload import UploadRecord
from app.upload.repository.sql_schema.upload import UploadModel
from app.upload.service.service import IUploadRepository
from pkg.db_util.postgres_conn import PostgresConnection


class UploadRepository(IUploadRepository):
    def __init__(self, postgres: PostgresConnection):
        self.postgres = postgres

    async def add(self, record: UploadRecord) -> UploadRecord:
        async with self.postgres.get_session() as session:
            session.add(UploadModel(**record.model_dump()))
        return record

    async def list_by_owner(self, owner_id: str) -> List[UploadRecord]:
        async with self.postgres.get_session() as session:
            result = await session.execute(
                select(UploadModel)
                .where(UploadModel.owner_id == owner_id)
                .order_by(UploadModel.uploaded_at.desc())
            )
            return [
                UploadRecord(
                    id=r.id,
                    owner_id=r.owner_id,
                    file_name=r.file_name,
                    file_type=r.file_type,
                    file_size=r.file_size,
                    url=r.url,
                    storage_key=r.storage_key,
                    uploaded_at=r.uploaded_at,
                )
                for r in result.scalars().all()
            ]
