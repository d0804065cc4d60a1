from sqlalchemy import Column, String, DateTime, Text
from sqlalchemy.sql import func

from pkg.db_util.sql_alchemy.declarative_base import Base


class MemoryModel(Base):
    __tablename__ = "memories"

    id = Column(String(36), primary_key=True, index=True)
    owner_id = Column(String, nullable=False, index=True)
    key = Column(String, nullable=False)
    value = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)
