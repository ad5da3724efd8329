"""
Core data models for Model Router.

Defines the vendor-neutral chat request/response structures shared by the
classifier, the router, the provider adapters and the HTTP layer. Field
names follow the OpenAI chat-completions wire format.
"""

import time
import uuid
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator


class MessageRole(str, Enum):
    """Roles accepted in a chat conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    FUNCTION = "function"


class RoutingTier(str, Enum):
    """
    Routing outcome of classification, ordered by capability and cost.

    ECO       - cheapest models for simple queries
    BALANCED  - mid-tier models
    PREMIUM   - most capable models for complex tasks
    """

    ECO = "ECO"
    BALANCED = "BALANCED"
    PREMIUM = "PREMIUM"


class ChatMessage(BaseModel):
    """
    A single message in a chat conversation.

    Content must be non-empty; an unknown role is a validation error.
    """

    role: MessageRole = Field(..., description="system, user, assistant or function")
    content: str = Field(..., min_length=1, description="Message content")
    name: Optional[str] = Field(None, description="Optional author name")

    model_config = ConfigDict(use_enum_values=True, frozen=True)


class DeltaMessage(BaseModel):
    """Partial message carried by a streaming chunk. Content may be empty."""

    role: MessageRole = Field(MessageRole.ASSISTANT)
    content: str = Field("")

    model_config = ConfigDict(use_enum_values=True, frozen=True)


class ChatRequest(BaseModel):
    """
    Chat completion request in the gateway's wire format.

    Optional sampling fields take their defaults once, at construction.
    The core only reads the messages; everything else is passed through
    to the provider untouched.
    """

    model: Optional[str] = Field(None, description="Model hint; routing decides the actual model")
    messages: List[ChatMessage] = Field(..., min_length=1)
    stream: bool = Field(False)
    temperature: float = Field(1.0, ge=0.0, le=2.0)
    top_p: float = Field(1.0, ge=0.0, le=1.0)
    max_tokens: Optional[int] = Field(None, gt=0)
    frequency_penalty: float = Field(0.0, ge=-2.0, le=2.0)
    presence_penalty: float = Field(0.0, ge=-2.0, le=2.0)
    stop: Optional[List[str]] = Field(None)
    user: Optional[str] = Field(None, description="End-user identifier for tracking and rate limiting")
    metadata: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(use_enum_values=True, frozen=True)

    @property
    def conversation_text(self) -> str:
        """All message contents joined with single spaces."""
        return " ".join(msg.content for msg in self.messages).strip()

    @property
    def last_user_message(self) -> str:
        """Content of the most recent user message, or '' if there is none."""
        for msg in reversed(self.messages):
            if msg.role == MessageRole.USER.value:
                return msg.content
        return ""

    def with_messages(self, messages: List[ChatMessage]) -> "ChatRequest":
        return self.model_copy(update={"messages": messages})


class Usage(BaseModel):
    """
    Token usage for one response.

    total_tokens may be omitted and is then derived; when given it must
    equal prompt_tokens + completion_tokens.
    """

    prompt_tokens: int = Field(..., ge=0)
    completion_tokens: int = Field(..., ge=0)
    total_tokens: int = Field(..., ge=0)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="before")
    @classmethod
    def _derive_total(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("total_tokens") is None:
            prompt = data.get("prompt_tokens")
            completion = data.get("completion_tokens")
            if isinstance(prompt, int) and isinstance(completion, int):
                data = {**data, "total_tokens": prompt + completion}
        return data

    @model_validator(mode="after")
    def _check_total(self) -> "Usage":
        if self.total_tokens != self.prompt_tokens + self.completion_tokens:
            raise ValueError(
                f"total_tokens ({self.total_tokens}) must equal prompt_tokens "
                f"({self.prompt_tokens}) + completion_tokens ({self.completion_tokens})"
            )
        return self

    @classmethod
    def of(cls, prompt_tokens: int, completion_tokens: int) -> "Usage":
        return cls(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens)


class Choice(BaseModel):
    """One completion choice: a full message, or a delta for streaming."""

    index: int = Field(0, ge=0)
    message: Optional[ChatMessage] = None
    delta: Optional[DeltaMessage] = None
    finish_reason: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _one_payload(self) -> "Choice":
        if (self.message is None) == (self.delta is None):
            raise ValueError("Choice must carry exactly one of 'message' or 'delta'")
        return self


def new_completion_id() -> str:
    return f"chatcmpl-{uuid.uuid4().hex[:24]}"


class ChatResponse(BaseModel):
    """
    Chat completion response, complete or a single streaming chunk.

    'provider' is internal bookkeeping and is not part of the wire format.
    """

    id: str = Field(default_factory=new_completion_id)
    object: str = Field("chat.completion")
    created: int = Field(default_factory=lambda: int(time.time()))
    model: str
    choices: List[Choice] = Field(default_factory=list)
    usage: Optional[Usage] = None
    system_fingerprint: Optional[str] = None
    provider: Optional[str] = Field(None, exclude=True)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def completion(
        cls,
        model: str,
        content: str,
        usage: Usage,
        provider: Optional[str] = None,
        finish_reason: str = "stop",
    ) -> "ChatResponse":
        """Build a non-streaming response with a single assistant message."""
        # An empty upstream answer is still a well-formed response.
        message = ChatMessage.model_construct(
            role=MessageRole.ASSISTANT.value, content=content, name=None
        )
        return cls(
            object="chat.completion",
            model=model,
            choices=[Choice(index=0, message=message, finish_reason=finish_reason)],
            usage=usage,
            provider=provider,
        )

    @classmethod
    def chunk(
        cls,
        model: str,
        content: str,
        finish_reason: Optional[str] = None,
        completion_id: Optional[str] = None,
        provider: Optional[str] = None,
    ) -> "ChatResponse":
        """Build one streaming chunk. A chunk with a finish_reason is terminal."""
        return cls(
            id=completion_id or new_completion_id(),
            object="chat.completion.chunk",
            model=model,
            choices=[
                Choice(index=0, delta=DeltaMessage(content=content), finish_reason=finish_reason)
            ],
            provider=provider,
        )

    @property
    def is_chunk(self) -> bool:
        return self.object == "chat.completion.chunk"

    @property
    def content(self) -> str:
        """Text of the first choice, whether message or delta."""
        if not self.choices:
            return ""
        choice = self.choices[0]
        if choice.message is not None:
            return choice.message.content
        return choice.delta.content if choice.delta is not None else ""

    @property
    def finish_reason(self) -> Optional[str]:
        return self.choices[0].finish_reason if self.choices else None

    def with_content(self, content: str) -> "ChatResponse":
        """Copy of this response with the first choice's text replaced."""
        if not self.choices:
            return self
        first = self.choices[0]
        if first.message is not None:
            message = ChatMessage.model_construct(
                role=first.message.role, content=content, name=first.message.name
            )
            replaced = first.model_copy(update={"message": message})
        else:
            replaced = first.model_copy(update={"delta": DeltaMessage(content=content)})
        return self.model_copy(update={"choices": [replaced, *self.choices[1:]]})

    def to_wire(self) -> Dict[str, Any]:
        """
        Serialize for the HTTP layer.

        None-valued optional fields are dropped, except finish_reason which
        is always present (null on non-terminal chunks).
        """
        data = self.model_dump(mode="json", exclude_none=True)
        for wire_choice, choice in zip(data["choices"], self.choices):
            wire_choice["finish_reason"] = choice.finish_reason
        return data


class ModelChain(BaseModel):
    """
    Ordered fallback list of model names for one tier, highest priority first.
    """

    tier: RoutingTier
    models: Tuple[str, ...] = Field(..., min_length=1)

    model_config = ConfigDict(frozen=True)

    @property
    def primary(self) -> str:
        return self.models[0]
