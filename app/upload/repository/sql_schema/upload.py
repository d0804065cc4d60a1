from sqlalchemy import Column, String, DateTime, BigInteger
from sqlalchemy.sql import func

from pkg.db_util.sql_alchemy.declarative_base import Base


class UploadModel(Base):
    __tablename__ = "uploads"

    id = Column(String(36), primary_key=True, index=True)
    owner_id = Column(String, nullable=False, index=True)
    file_name = Column(String, nullable=False)
    file_type = Column(String, nullable=False)
    file_size = Column(BigInteger, nullable=False)
    url = Column(String, nullable=False)
    storage_key = Column(String, nullable=False)
    uploaded_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
