"""LLM Port - interface for language model providers."""

from typing import Protocol

from pydantic import BaseModel


class ImageInput(BaseModel):
    """Inline image: raw base64 (no data: prefix) and its MIME type."""

    mime_type: str = "image/png"
    data: str

    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


class LLMMessage(BaseModel):
    """Single message in a conversation."""

    role: str  # "system" | "user" | "assistant"
    content: str
    images: list[ImageInput] | None = None


class LLMResponse(BaseModel):
    """Response from LLM (non-streaming)."""

    content: str
    model: str
    done: bool = True


class LLMPort(Protocol):
    """Interface for LLM providers (Ollama, LM Studio, etc.)."""

    async def generate(
        self,
        messages: list[LLMMessage],
        model: str | None = None,
        temperature: float = 0.7,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Generate a single response. json_mode asks the provider for a JSON object."""
        ...

    async def is_available(self) -> bool:
        """Check if the LLM provider is available."""
        ...

    async def list_models(self) -> list[str]:
        """List available models."""
        ...
