# app/llm/service/context_window.py
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from app.core.logger import get_logger
from app.llm.entity.prompt import PromptMessage

logger = get_logger("ContextWindow")

MESSAGE_OVERHEAD_TOKENS = 4


@dataclass(frozen=True)
class ModelConfig:
    name: str
    max_tokens: int
    context_window: int


MODEL_CONFIGS: Dict[str, ModelConfig] = {
    "gemini-2.0-flash": ModelConfig("Gemini 2.0 Flash", 8192, 1_000_000),
    "gemini-1.5-flash": ModelConfig("Gemini 1.5 Flash", 8192, 1_000_000),
    "gemini-1.5-pro": ModelConfig("Gemini 1.5 Pro", 8192, 2_000_000),
    "gemini-pro": ModelConfig("Gemini Pro", 2048, 30720),
    "gpt-4o-mini": ModelConfig("GPT-4o Mini", 4096, 128_000),
    "gpt-4o": ModelConfig("GPT-4o", 4096, 128_000),
    "gpt-4-turbo": ModelConfig("GPT-4 Turbo", 4096, 128_000),
}


def get_model_config(model: str) -> Optional[ModelConfig]:
    return MODEL_CONFIGS.get(model)


def estimate_tokens(text: str) -> int:
    """Rough estimate: one token per four characters."""
    return math.ceil(len(text) / 4)


def message_tokens(message: PromptMessage) -> int:
    """Role, content and per-message framing. Both fits_in_context and trim_to_context count with this."""
    return estimate_tokens(message.role) + estimate_tokens(message.text_content()) + MESSAGE_OVERHEAD_TOKENS


def conversation_tokens(messages: Sequence[PromptMessage]) -> int:
    return sum(message_tokens(m) for m in messages)


def fits_in_context(messages: Sequence[PromptMessage], model: str, max_tokens: Optional[int] = None) -> bool:
    config = get_model_config(model)
    if config is None and max_tokens is None:
        return True
    return conversation_tokens(messages) <= (max_tokens or config.context_window)


def trim_to_context(
    messages: Sequence[PromptMessage],
    model: str,
    max_tokens: Optional[int] = None,
) -> List[PromptMessage]:
    """
    Keep every system message plus the most recent other messages that fit
    the model's context window. Order is preserved. Unknown models are passed
    through untouched.
    """
    config = get_model_config(model)
    if config is None and max_tokens is None:
        logger.debug(f"Unknown model {model}, skipping context trimming")
        return list(messages)

    limit = max_tokens or config.context_window
    system = [m for m in messages if m.role == "system"]
    used = sum(message_tokens(m) for m in system)

    kept: List[PromptMessage] = []
    for message in reversed([m for m in messages if m.role != "system"]):
        cost = message_tokens(message)
        if used + cost > limit:
            break
        kept.append(message)
        used += cost
    kept.reverse()

    dropped = len(messages) - len(system) - len(kept)
    if dropped:
        logger.info(f"Trimmed {dropped} oldest message(s) to fit {model} context window")
    return system + kept
