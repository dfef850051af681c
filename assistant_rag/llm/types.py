"""Message and option types shared by generation providers."""

from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ConfigDict

Role = Literal["user", "assistant", "system"]


class ChatMessage(BaseModel):
    """A role-tagged chat message."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str


@dataclass(frozen=True)
class GenerationOptions:
    """Sampling options forwarded to every provider."""

    temperature: float = 0.7
    max_tokens: int = 1024


@dataclass(frozen=True)
class GenerationResult:
    """Text produced by the fallback chain and the provider that produced it."""

    text: str
    provider: str
