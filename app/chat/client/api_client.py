"""HTTP client for the chat service, including the SSE chat stream."""

from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from app.chat.stream.events import StreamEvent
from app.chat.stream.reader import read_events
from app.core.exceptions import (
    ChatAppError,
    NotFoundError,
    StreamFailedError,
    Unauthorized,
    ValidationError,
)

_ERRORS_BY_STATUS = {
    400: ValidationError,
    401: Unauthorized,
    404: NotFoundError,
}


def _error_for(response: httpx.Response, body: Optional[Dict[str, Any]] = None) -> ChatAppError:
    message = None
    if isinstance(body, dict):
        message = body.get("message")
    error_cls = _ERRORS_BY_STATUS.get(response.status_code, ChatAppError)
    return error_cls(message or f"Request failed with status {response.status_code}")


class ChatApiClient:
    def __init__(
        self,
        base_url: str = "http://localhost:8080",
        token: Optional[str] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self.client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        response = await self.client.request(method, path, **kwargs)
        try:
            body = response.json()
        except ValueError:
            body = None
        if response.status_code >= 400 or not isinstance(body, dict) or not body.get("status"):
            raise _error_for(response, body)
        return body.get("data") or {}

    # ----------------------------
    # Streaming
    # ----------------------------
    async def stream_chat(
        self,
        messages: List[Dict[str, Any]],
        model: Optional[str] = None,
    ) -> AsyncIterator[StreamEvent]:
        """
        Open `POST /chat/stream` and yield decoded stream events.

        A non-200 answer raises before any event is yielded.
        """
        payload: Dict[str, Any] = {"messages": messages}
        if model:
            payload["model"] = model

        async with self.client.stream("POST", "/chat/stream", json=payload) as response:
            if response.status_code != 200:
                await response.aread()
                try:
                    body = response.json()
                except ValueError:
                    body = None
                error = _error_for(response, body)
                raise StreamFailedError(error.message) from error
            async for event in read_events(response.aiter_bytes()):
                yield event

    # ----------------------------
    # Conversations & messages
    # ----------------------------
    async def list_conversations(self) -> List[Dict[str, Any]]:
        data = await self._request("GET", "/chat/conversations")
        return data.get("conversations", [])

    async def create_conversation(self, title: Optional[str] = None) -> Dict[str, Any]:
        return await self._request("POST", "/chat/conversations", json={"title": title})

    async def rename_conversation(self, conversation_id: str, title: str) -> Dict[str, Any]:
        return await self._request("PATCH", f"/chat/conversations/{conversation_id}", json={"title": title})

    async def delete_conversation(self, conversation_id: str) -> None:
        await self._request("DELETE", f"/chat/conversations/{conversation_id}")

    async def list_messages(self, conversation_id: str) -> List[Dict[str, Any]]:
        data = await self._request("GET", f"/chat/conversations/{conversation_id}/messages")
        return data.get("messages", [])

    async def save_message(
        self,
        role: str,
        content: str,
        conversation_id: Optional[str] = None,
        files: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        """Persist one message; the answer carries `message_id`, `conversation_id` and `title`."""
        return await self._request(
            "POST",
            "/chat/messages",
            json={
                "conversation_id": conversation_id,
                "role": role,
                "content": content,
                "files": files or [],
            },
        )

    async def update_message(self, message_id: str, content: str) -> Dict[str, Any]:
        return await self._request("PATCH", f"/chat/messages/{message_id}", json={"content": content})

    async def delete_message(self, message_id: str) -> None:
        await self._request("DELETE", f"/chat/messages/{message_id}")

    # ----------------------------
    # Memory & uploads
    # ----------------------------
    async def list_memories(self) -> List[Dict[str, Any]]:
        data = await self._request("GET", "/memory")
        return data.get("memories", [])

    async def add_memory(self, key: str, value: str) -> Dict[str, Any]:
        return await self._request("POST", "/memory", json={"key": key, "value": value})

    async def upload_file(self, file_name: str, data: bytes, content_type: str) -> Dict[str, Any]:
        return await self._request("POST", "/upload", files={"file": (file_name, data, content_type)})

    async def upload_from_url(
        self,
        file_url: str,
        file_name: Optional[str] = None,
        file_type: Optional[str] = None,
        file_size: Optional[int] = None,
    ) -> Dict[str, Any]:
        payload = {"fileUrl": file_url, "fileName": file_name, "fileType": file_type, "fileSize": file_size}
        return await self._request("POST", "/upload", json={k: v for k, v in payload.items() if v is not None})

    async def aclose(self):
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
