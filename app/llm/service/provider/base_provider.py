# app/llm/service/provider/base_provider.py
from abc import ABC, abstractmethod
from typing import AsyncIterator, List

from app.llm.entity.prompt import NormalizedMessage


class BaseProvider(ABC):
    """Abstract base provider for upstream model integrations."""

    name: str = "base"

    @abstractmethod
    def stream_text(self, model: str, messages: List[NormalizedMessage]) -> AsyncIterator[str]:
        """
        Return an async iterator of text fragments for the conversation.

        Failures (including rate limiting) surface as exceptions either when
        the first fragment is pulled or mid-stream.
        """
        pass
