# app/llm/entity/prompt.py
"""
Provider-agnostic prompt models.

`PromptMessage` is what the chat gateway hands to the stream adapter: a role
plus ordered parts, each either text or a binary file with its media type.
`NormalizedMessage` is what the adapter hands to a provider after collapsing
text-only messages to a plain string.
"""

from typing import List, Literal, Union
from pydantic import BaseModel, Field


Role = Literal["user", "assistant", "system"]


class PromptText(BaseModel):
    type: Literal["text"] = "text"
    text: str


class PromptFile(BaseModel):
    type: Literal["file"] = "file"
    data: bytes
    media_type: str
    name: str | None = None


PromptPart = Union[PromptText, PromptFile]


class PromptMessage(BaseModel):
    role: Role
    parts: List[PromptPart] = Field(default_factory=list)

    @classmethod
    def text(cls, role: Role, content: str) -> "PromptMessage":
        return cls(role=role, parts=[PromptText(text=content)])

    def text_content(self) -> str:
        return "".join(p.text for p in self.parts if isinstance(p, PromptText))

    def has_files(self) -> bool:
        return any(isinstance(p, PromptFile) for p in self.parts)


class NormalizedMessage(BaseModel):
    """Plain string payload for text-only messages, ordered parts otherwise."""

    role: Role
    content: Union[str, List[PromptPart]]

    @property
    def is_multipart(self) -> bool:
        return not isinstance(self.content, str)
