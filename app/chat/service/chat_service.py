import asyncio
from typing import AsyncIterator, List, Optional, Sequence

from app.chat.entity.chat import FileAttachment
from app.core.exceptions import EmptyConversationError
from app.core.logger import get_logger
from app.llm.entity.prompt import PromptFile, PromptMessage, PromptPart, PromptText, Role
from app.llm.service.context_window import trim_to_context
from app.llm.service.stream_adapter import TokenStreamAdapter
from app.memory.service.memory_service import MemoryService
from pkg.file_processor.processor import BinaryFile, ExtractedText, FileProcessor

logger = get_logger("ChatService")


class ChatService:
    """
    Prepares one streaming turn: memory context, file contents, context
    window, then hands the conversation to the stream adapter.
    """

    def __init__(self, adapter: TokenStreamAdapter, memory_service: MemoryService, file_processor: FileProcessor):
        self.adapter = adapter
        self.memory_service = memory_service
        self.file_processor = file_processor

    async def build_prompt(self, owner_id: str, messages: Sequence) -> List[PromptMessage]:
        """
        Messages are anything with `role`, `content` and `files` attributes.
        Memory entries become one leading system message.
        """
        prompt: List[PromptMessage] = []
        memory = await self.memory_service.build_context(owner_id)
        if memory:
            prompt.append(PromptMessage.text("system", memory))

        converted = await asyncio.gather(
            *(self._to_prompt_message(m.role, m.content, m.files) for m in messages)
        )
        prompt.extend(converted)
        return prompt

    async def _to_prompt_message(self, role: Role, content: str, files: Sequence[FileAttachment]) -> PromptMessage:
        if not files:
            return PromptMessage.text(role, content)

        results = await asyncio.gather(
            *(self.file_processor.process(f.url, f.name, f.media_type) for f in files),
            return_exceptions=True,
        )

        text = content
        binaries: List[PromptPart] = []
        for attachment, result in zip(files, results):
            if isinstance(result, Exception):
                logger.warning(f"Skipping file {attachment.name}: {result}")
                continue
            if isinstance(result, BaseException):
                raise result
            if isinstance(result, ExtractedText):
                text += f"\n\n--- Content from {attachment.name} ---\n{result.text}"
            elif isinstance(result, BinaryFile):
                binaries.append(PromptFile(data=result.data, media_type=result.media_type, name=attachment.name))

        return PromptMessage(role=role, parts=[PromptText(text=text), *binaries])

    async def stream_reply(self, owner_id: str, messages: Sequence, model: Optional[str] = None) -> AsyncIterator[str]:
        """
        Build the prompt and open the adapter stream.

        Raises EmptyConversationError before streaming starts when nothing
        is left to send.
        """
        if not any((m.content or "").strip() or m.files for m in messages):
            raise EmptyConversationError()

        model = model or self.adapter.default_model
        prompt = await self.build_prompt(owner_id, messages)
        prompt = trim_to_context(prompt, model)
        logger.info(f"Streaming reply for owner {owner_id} with {len(prompt)} message(s) on {model}")
        return self.adapter.stream(prompt, model)
