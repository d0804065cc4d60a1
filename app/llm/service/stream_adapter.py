# app/llm/service/stream_adapter.py
import re
from typing import AsyncIterator, List, Optional, Sequence, Tuple

from app.core.exceptions import (
    AllModelsRateLimitedError,
    EmptyConversationError,
    UpstreamError,
)
from app.core.logger import get_logger
from app.llm.entity.prompt import NormalizedMessage, PromptFile, PromptMessage, PromptText
from app.llm.service.provider.base_provider import BaseProvider

logger = get_logger("TokenStreamAdapter")

_RATE_LIMIT_MARKERS = re.compile(
    r"429|quota|rate[ _-]?limit|resource_exhausted|too many requests",
    re.IGNORECASE,
)


def is_rate_limited(error: BaseException) -> bool:
    """True when the error carries a 429 code or a quota/rate-limit marker."""
    for attr in ("status_code", "code", "status"):
        value = getattr(error, attr, None)
        if value == 429 or value == "429":
            return True
    return bool(_RATE_LIMIT_MARKERS.search(str(error)))


def normalize_message(message: PromptMessage) -> Optional[NormalizedMessage]:
    """
    Collapse a text-only message to a plain string; keep ordered parts when
    any binary part is present. Returns None when nothing is left to send.
    """
    texts = [p.text for p in message.parts if isinstance(p, PromptText) and p.text.strip()]
    files = [p for p in message.parts if isinstance(p, PromptFile) and p.data]

    if files:
        parts = [PromptText(text=t) for t in texts] + files
        return NormalizedMessage(role=message.role, content=parts)

    text = "\n".join(texts)
    if not text.strip():
        return None
    return NormalizedMessage(role=message.role, content=text)


class TokenStreamAdapter:
    """
    Single entry point to the upstream model.

    Normalizes the conversation, opens a stream with the requested model and,
    when that model is rate limited, walks the fixed fallback chain. Callers
    get one async iterator of text fragments.
    """

    def __init__(self, provider: BaseProvider, fallback_models: Sequence[str], default_model: str):
        self.provider = provider
        self.fallback_models = list(fallback_models)
        self.default_model = default_model

    def candidate_models(self, model: str) -> List[str]:
        return [model] + [m for m in self.fallback_models if m != model]

    def stream(self, messages: Sequence[PromptMessage], model: Optional[str] = None) -> AsyncIterator[str]:
        """
        Validate eagerly, then return the fragment iterator.

        Raises EmptyConversationError before any upstream call when every
        message normalizes to empty.
        """
        normalized = [n for n in (normalize_message(m) for m in messages) if n is not None]
        if not normalized:
            raise EmptyConversationError()
        return self._relay(normalized, model or self.default_model)

    async def _open(self, messages: List[NormalizedMessage], model: str) -> Tuple[AsyncIterator[str], Optional[str]]:
        """Open a stream and pull its first fragment, falling back on rate limits."""
        tried: List[str] = []
        for candidate in self.candidate_models(model):
            tried.append(candidate)
            iterator = self.provider.stream_text(candidate, messages).__aiter__()
            try:
                first = await iterator.__anext__()
                if candidate != model:
                    logger.info(f"Fallback model {candidate} served request for {model}")
                return iterator, first
            except StopAsyncIteration:
                return iterator, None
            except Exception as e:
                await _close(iterator)
                if is_rate_limited(e):
                    logger.warning(f"Model {candidate} rate limited: {e}")
                    continue
                logger.error(f"Model {candidate} failed: {e}")
                raise UpstreamError(str(e)) from e
        raise AllModelsRateLimitedError(tried)

    async def _relay(self, messages: List[NormalizedMessage], model: str) -> AsyncIterator[str]:
        iterator, first = await self._open(messages, model)
        try:
            if first is None:
                return
            yield first
            async for fragment in iterator:
                yield fragment
        except UpstreamError:
            raise
        except Exception as e:
            logger.error(f"Upstream stream failed mid-response: {e}")
            raise UpstreamError(str(e)) from e
        finally:
            await _close(iterator)


async def _close(iterator: AsyncIterator[str]) -> None:
    aclose = getattr(iterator, "aclose", None)
    if aclose is None:
        return
    try:
        await aclose()
    except Exception as e:
        logger.debug(f"Ignoring error while closing upstream stream: {e}")
