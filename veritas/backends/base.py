"""Base protocol for the LLM backends behind the evidence pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


@dataclass
class Attachment:
    """Binary evidence sent inline with a prompt (audio, PDF, image)."""

    mime_type: str
    data: bytes


@dataclass
class GenerationRequest:
    """A single prompt with optional system instruction and attachments."""

    prompt: str
    system: str = ""
    attachments: list[Attachment] = field(default_factory=list)
    temperature: float = 0.2


@runtime_checkable
class LLMBackend(Protocol):
    """Interface the processor, analyzer and chat use to reach a model."""

    name: str

    async def generate(self, request: GenerationRequest) -> str:
        """Run the request and return the model's raw text answer."""
        ...
