from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError as PydanticValidationError
from starlette.datastructures import UploadFile

from app.auth.api.dependencies import get_current_user
from app.auth.api.dto import BaseResponse
from app.core.exceptions import ValidationError
from app.core.logger import get_logger
from app.upload.api.dto import UploadResponse, UrlUploadDTO
from app.upload.service.upload_service import UploadService

upload_router = APIRouter(prefix="/upload", tags=["Upload"])
logger = get_logger("UploadRouter")


def get_upload_service(request: Request) -> Optional[UploadService]:
    return getattr(request.app.state, "upload_service", None)


@upload_router.post("", response_model=BaseResponse)
async def upload_file(
    request: Request,
    current_user: dict = Depends(get_current_user),
    upload_service: Optional[UploadService] = Depends(get_upload_service),
):
    """
    Upload a file directly (multipart field `file`) or by URL
    (JSON `{fileUrl, fileName?, fileType?, fileSize?}`).
    """
    if not upload_service:
        raise HTTPException(status_code=503, detail="Upload service not available")

    owner_id = current_user["user_id"]
    content_type = request.headers.get("content-type", "")

    if "multipart/form-data" in content_type:
        form = await request.form()
        file = form.get("file")
        if not isinstance(file, UploadFile):
            raise ValidationError("No file provided")
        data = await file.read(upload_service.max_bytes + 1)
        record = await upload_service.upload_bytes(owner_id, file.filename or "", file.content_type, data)
    else:
        try:
            body = UrlUploadDTO.model_validate(await request.json())
        except (ValueError, PydanticValidationError):
            raise ValidationError("Missing fileUrl")
        record = await upload_service.upload_from_url(
            owner_id,
            body.file_url,
            file_name=body.file_name,
            file_type=body.file_type,
            file_size=body.file_size,
        )

    return BaseResponse(
        status=True,
        message="File uploaded successfully",
        data=UploadResponse.from_record(record).model_dump(mode="json", by_alias=True),
    )
