from pydantic import BaseModel


class BaseResponse(BaseModel):
    """Envelope for every JSON response."""

    status: bool
    message: str
    data: dict | None = None
