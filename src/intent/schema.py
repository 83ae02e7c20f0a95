"""Quick-add data model (Pydantic models).

`ParsedIntent` is the contract between the parsers (smart rules / LLM / rules fallback) and the
caller. Every parser must produce an object that validates against it; cross-field invariants are
enforced here so that a parser bug surfaces as a validation error instead of a malformed record.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class IntentKind(StrEnum):
    """What the sentence asks to create."""

    task = "TASK"
    event = "EVENT"
    transaction = "TRANSACTION"


class Direction(StrEnum):
    """Money flow of a transaction."""

    income = "INCOME"
    expense = "EXPENSE"


ParseSource = Literal["smart_rule", "llm", "fallback"]


class ParsedIntent(BaseModel):
    """A fully resolved quick-add intent."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    kind: IntentKind
    title: str = Field(min_length=1)
    occurs_at: datetime
    due_or_end_at: datetime | None = None
    amount: Decimal | None = None
    direction: Direction | None = None
    category: str | None = None
    tags: set[str] = Field(default_factory=set)
    confidence_notes: list[str] = Field(default_factory=list)
    source: ParseSource

    @model_validator(mode="after")
    def validate_money_fields(self) -> ParsedIntent:
        """Money fields belong to transactions only, and amounts are positive magnitudes."""

        if self.kind == IntentKind.transaction:
            if self.direction is None:
                raise ValueError("direction is required for transactions")
            if self.amount is None:
                # A user-taught rule may force a transaction for text without a number.
                if self.source != "smart_rule":
                    raise ValueError("amount is required for transactions")
            elif self.amount <= 0:
                raise ValueError("amount must be positive")
        else:
            if self.amount is not None or self.direction is not None:
                raise ValueError("amount/direction are only allowed for transactions")
        return self


class SmartRule(BaseModel):
    """A user-taught keyword override."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    id: int | None = None
    keyword: str = Field(min_length=1)
    mapped_type: IntentKind
    mapped_category: str | None = None
    user_id: str = Field(min_length=1)

    @field_validator("mapped_category")
    @classmethod
    def blank_category_is_none(cls, value: str | None) -> str | None:
        """Treat an empty category as "not set"."""

        if value is not None and not value.strip():
            return None
        return value


class UsageCounter(BaseModel):
    """Daily LLM usage of one user."""

    model_config = ConfigDict(extra="forbid")

    user_id: str
    date: str
    count: int = Field(ge=0)


class UsageSnapshot(BaseModel):
    """Point-in-time view of a user's daily budget."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    date: str
    count: int = Field(ge=0)
    limit: int = Field(ge=0)

    @property
    def remaining(self) -> int:
        return max(self.limit - self.count, 0)


class QuotaExhausted(BaseModel):
    """Terminal outcome when the daily AI budget is spent (not an error)."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    date: str
    count: int
    limit: int
    remaining: Literal[0] = 0
    message: str = "Đã đạt giới hạn sử dụng AI hôm nay. Vui lòng thử lại vào ngày mai."

    @classmethod
    def from_snapshot(cls, snapshot: UsageSnapshot) -> QuotaExhausted:
        return cls(date=snapshot.date, count=snapshot.count, limit=snapshot.limit)


class AIIntentPayload(BaseModel):
    """The JSON object the LLM is instructed to return.

    Any shape mismatch is a validation error; partial or extra data is never merged silently.
    """

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    type: IntentKind
    title: str | None = None
    date: str | None = None
    amount: Decimal | None = Field(default=None, ge=0)
    category: str | None = None
    tags: list[str] = Field(default_factory=list)
    isEvent: bool = False
    description: str | None = None

    @field_validator("type", mode="before")
    @classmethod
    def upper_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value


def ai_payload_from_obj(obj: Any) -> AIIntentPayload:
    """Validate and parse the LLM payload from an arbitrary decoded JSON object."""

    return AIIntentPayload.model_validate(obj)
