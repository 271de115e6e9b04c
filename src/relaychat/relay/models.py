from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ChatMessage(BaseModel):
    role: str
    content: Any  # str in practice; forwarded untouched.

    model_config = ConfigDict(extra="ignore")

    def upstream(self) -> dict[str, Any]:
        return {"role": self.role, "content": self.content}


class RelayChatRequest(BaseModel):
    """Body accepted by the relay chat endpoint."""

    api_key: Optional[str] = Field(None, alias="apiKey")
    base_url: Optional[str] = Field(None, alias="baseUrl")
    model: str
    temperature: Optional[float] = None
    messages: List[ChatMessage]

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("temperature", mode="before")
    @classmethod
    def _numeric_temperature(cls, value: Any) -> Any:
        # Anything that is not a real number falls back to the default.
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return value

    def upstream_payload(self, default_temperature: float) -> dict[str, Any]:
        temperature = (
            self.temperature if self.temperature is not None else default_temperature
        )
        return {
            "model": self.model,
            "temperature": temperature,
            "stream": True,
            "messages": [m.upstream() for m in self.messages],
        }
