from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from app.upload.entity.upload import UploadRecord


class UrlUploadDTO(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_url: str = Field(validation_alias=AliasChoices("fileUrl", "file_url"))
    file_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("fileName", "file_name"))
    file_type: Optional[str] = Field(default=None, validation_alias=AliasChoices("fileType", "file_type"))
    file_size: Optional[int] = Field(default=None, validation_alias=AliasChoices("fileSize", "file_size"))


class UploadResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    url: str
    file_name: str = Field(serialization_alias="fileName")
    file_type: str = Field(serialization_alias="fileType")
    file_size: int = Field(serialization_alias="fileSize")
    uploaded_at: datetime = Field(serialization_alias="uploadedAt")

    @classmethod
    def from_record(cls, record: UploadRecord) -> "UploadResponse":
        return cls(
            id=record.id,
            url=record.url,
            file_name=record.file_name,
            file_type=record.file_type,
            file_size=record.file_size,
            uploaded_at=record.uploaded_at,
        )
