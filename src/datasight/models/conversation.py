"""
Chat message models.

Messages serialize to the chat-completions wire format: ``content`` is
either plain text or an ordered list of typed parts.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Iterable, List, Literal, Union

from pydantic import BaseModel, Field


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class TextPart(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ImageUrl(BaseModel):
    url: str


class ImagePart(BaseModel):
    type: Literal["image_url"] = "image_url"
    image_url: ImageUrl

    @classmethod
    def from_data_url(cls, data_url: str) -> "ImagePart":
        return cls(image_url=ImageUrl(url=data_url))


ContentPart = Annotated[Union[TextPart, ImagePart], Field(discriminator="type")]


class Message(BaseModel):
    """
    A single role-tagged conversation entry.

    Attributes:
        role: Author of the message.
        content: Plain text, or ordered text/image parts.
    """

    role: Role
    content: Union[str, List[ContentPart]]

    @classmethod
    def system(cls, text: str) -> "Message":
        return cls(role=Role.SYSTEM, content=text)

    @classmethod
    def user(cls, content: Union[str, List[ContentPart]]) -> "Message":
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, text: str) -> "Message":
        return cls(role=Role.ASSISTANT, content=text)

    @property
    def is_system(self) -> bool:
        return self.role is Role.SYSTEM

    def display_text(self) -> str:
        """Return the text shown in the message log (first text part for multi-part content)."""
        if isinstance(self.content, str):
            return self.content
        for part in self.content:
            if isinstance(part, TextPart):
                return part.text
        return ""

    def to_payload(self) -> dict:
        return self.model_dump(mode="json")


def non_system_messages(messages: Iterable[Message]) -> List[Message]:
    """Return the dialogue entries of a conversation, leaving out the persona."""
    return [message for message in messages if not message.is_system]
