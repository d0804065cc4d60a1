"""
Error taxonomy shared by the API, the streaming relay and the client.

Every server-side error carries the HTTP status it maps to; the exception
handlers in main.py turn them into the standard response envelope.
"""


class ChatAppError(Exception):
    """Base class for all application errors."""

    status_code: int = 500
    public_message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message


class Unauthorized(ChatAppError):
    status_code = 401
    public_message = "Unauthorized"


class ValidationError(ChatAppError):
    status_code = 400
    public_message = "Missing required fields"


class EmptyConversationError(ValidationError):
    public_message = "Conversation has no content to send"


class NotFoundError(ChatAppError):
    status_code = 404
    public_message = "Not found"


class UpstreamError(ChatAppError):
    status_code = 502
    public_message = "Upstream model error"


class RateLimitedError(UpstreamError):
    status_code = 429
    public_message = "Rate limit exceeded. Please try again in a moment."


class AllModelsRateLimitedError(RateLimitedError):
    public_message = "All models are currently rate limited. Please try again later."

    def __init__(self, models: list[str], message: str | None = None):
        super().__init__(message or f"{self.public_message} Tried: {', '.join(models)}")
        self.models = list(models)


class FileProcessingError(ChatAppError):
    public_message = "Failed to process file"


class FileTooLargeError(FileProcessingError):
    """A fetched file passed the size limit; the download was stopped."""

    status_code = 400
    public_message = "File too large"


class PersistenceError(ChatAppError):
    public_message = "Failed to persist data"


# Client-side errors

class StreamProtocolError(ChatAppError):
    """A `data:` line of the SSE stream could not be decoded."""

    public_message = "Malformed stream event"


class StreamFailedError(ChatAppError):
    """The stream ended with an error event or without a terminal event."""

    public_message = "Stream failed"


class OperationInProgressError(ChatAppError):
    """A streaming operation was started while another one is active."""

    public_message = "Another operation is already in progress"


class MessageNotFoundError(ChatAppError):
    public_message = "Message not found in transcript"
