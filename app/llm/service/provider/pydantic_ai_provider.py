# app/llm/service/provider/pydantic_ai_provider.py
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple, Union

from pydantic_ai import Agent
from pydantic_ai.messages import (
    BinaryContent,
    ModelMessage,
    ModelRequest,
    ModelResponse,
    SystemPromptPart,
    TextPart,
    UserPromptPart,
)

from app.core.logger import get_logger
from app.llm.entity.prompt import NormalizedMessage, PromptFile, PromptText
from .base_provider import BaseProvider

logger = get_logger("PydanticAIProvider")

# Bare model ids are mapped onto pydantic-ai provider prefixes
_PREFIX_MAP: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("gemini",), "google-gla"),
    (("gpt-", "o1", "o3", "o4"), "openai"),
    (("llama", "mixtral", "gemma", "qwen"), "groq"),
)


def resolve_model_name(model: str) -> str:
    """Map a bare model id (e.g. 'gemini-2.0-flash') to a pydantic-ai model name."""
    if ":" in model:
        return model
    for prefixes, provider in _PREFIX_MAP:
        if model.startswith(prefixes):
            return f"{provider}:{model}"
    return f"google-gla:{model}"


def _user_content(message: NormalizedMessage) -> Union[str, List[Any]]:
    if isinstance(message.content, str):
        return message.content
    content: List[Any] = []
    for part in message.content:
        if isinstance(part, PromptText):
            content.append(part.text)
        elif isinstance(part, PromptFile):
            content.append(BinaryContent(data=part.data, media_type=part.media_type))
    return content


def _text_only(message: NormalizedMessage) -> str:
    if isinstance(message.content, str):
        return message.content
    return "\n".join(p.text for p in message.content if isinstance(p, PromptText))


def to_model_messages(
    messages: Sequence[NormalizedMessage],
) -> Tuple[Optional[Union[str, List[Any]]], List[ModelMessage]]:
    """
    Split normalized messages into (user_prompt, message_history).

    The trailing user message becomes the prompt; everything before it is
    history. When the conversation does not end with a user message the prompt
    is None and the whole list is history.
    """
    history: List[ModelMessage] = []
    for msg in messages:
        if msg.role == "system":
            history.append(ModelRequest(parts=[SystemPromptPart(content=_text_only(msg))]))
        elif msg.role == "user":
            history.append(ModelRequest(parts=[UserPromptPart(content=_user_content(msg))]))
        else:
            history.append(ModelResponse(parts=[TextPart(content=_text_only(msg))]))

    if messages and messages[-1].role == "user":
        return _user_content(messages[-1]), history[:-1]
    return None, history


class PydanticAIProvider(BaseProvider):
    """Streams text deltas through a pydantic-ai Agent, one agent per model."""

    name = "pydantic-ai"

    def __init__(self, system_prompt: str | Sequence[str] = ()):
        self.system_prompt = system_prompt
        self._agents: Dict[str, Agent] = {}

    def _get_agent(self, model: str) -> Agent:
        model_name = resolve_model_name(model)
        agent = self._agents.get(model_name)
        if agent is None:
            # Provider credentials are read from the environment here
            agent = Agent(model_name, system_prompt=self.system_prompt)
            self._agents[model_name] = agent
        return agent

    async def stream_text(self, model: str, messages: List[NormalizedMessage]) -> AsyncIterator[str]:
        prompt, history = to_model_messages(messages)
        agent = self._get_agent(model)
        logger.debug(f"run_stream model={model} history={len(history)} has_prompt={prompt is not None}")
        async with agent.run_stream(prompt, message_history=history or None) as result:
            async for delta in result.stream_text(delta=True):
                yield delta
