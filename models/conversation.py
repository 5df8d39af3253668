# FILE: models/conversation.py
from dataclasses import dataclass, replace
from typing import List, Literal, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from configurations.config import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE

# -----------------------------
# Messages
# -----------------------------
class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant", "system"]
    content: str

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Message content cannot be empty")
        return v


# -----------------------------
# Chat Request (HTTP -> Router)
# -----------------------------
class ChatRequest(BaseModel):
    messages: List[Message] = Field(..., min_length=1)
    userId: str = Field(..., min_length=1, description="Owner of every record written this turn")
    conversationId: Optional[str] = None
    currency: Optional[str] = Field(None, description="Client-asserted currency code")
    entitlement: Optional[Literal["free", "premium"]] = Field(
        None, description="Client-asserted tier; 'premium' is always re-verified"
    )
    maxTokens: int = Field(default=DEFAULT_MAX_TOKENS, gt=0, le=4000)
    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0, le=2)

    @field_validator("messages")
    @classmethod
    def last_message_from_user(cls, v: List[Message]) -> List[Message]:
        if not any(m.role == "user" for m in v):
            raise ValueError("messages must contain at least one user message")
        return v

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().upper() if v and v.strip() else None


# -----------------------------
# Chat Reply (Router -> HTTP)
# -----------------------------
class ChatReply(BaseModel):
    replyText: str
    requiresUpgrade: bool = False
    createdRecordId: Optional[str] = None
    createdRecordType: Optional[Literal["transaction", "savings", "budget"]] = None
    createdRecordIds: List[str] = Field(default_factory=list)


# -----------------------------
# Turn Context (read-only view over history)
# -----------------------------
@dataclass(frozen=True)
class TurnContext:
    """
    Read-only view of the conversation used by classifiers and extractors.
    `reply` is the model's text once the completion call has happened.
    """

    messages: Tuple[Message, ...]
    reply: Optional[str] = None

    @classmethod
    def from_messages(cls, messages: Sequence[Message], reply: Optional[str] = None) -> "TurnContext":
        return cls(messages=tuple(messages), reply=reply)

    def with_reply(self, reply: Optional[str]) -> "TurnContext":
        return replace(self, reply=reply)

    def _last_user_index(self) -> Optional[int]:
        for i in range(len(self.messages) - 1, -1, -1):
            if self.messages[i].role == "user":
                return i
        return None

    @property
    def last_user_text(self) -> str:
        i = self._last_user_index()
        return self.messages[i].content.strip() if i is not None else ""

    @property
    def previous_assistant_text(self) -> Optional[str]:
        """The assistant message the latest user turn is answering."""
        i = self._last_user_index()
        if i is None:
            return None
        for j in range(i - 1, -1, -1):
            if self.messages[j].role == "assistant":
                return self.messages[j].content
            if self.messages[j].role == "user":
                return None
        return None

    @property
    def user_texts(self) -> List[str]:
        return [m.content.strip() for m in self.messages if m.role == "user"]

    def recent_user_texts(self, n: int = 2) -> List[str]:
        return self.user_texts[-n:]

    def tail(self, n: int = 6) -> Tuple[Message, ...]:
        return tuple(m for m in self.messages if m.role != "system")[-n:]
