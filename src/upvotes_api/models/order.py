"""Models for orders and status-check results."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


@dataclass(frozen=True)
class OrderKind:
    """An order table together with the BuyUpvotes endpoint that reports on it."""

    name: str
    table: str
    status_path: str
    tracks_delivery: bool


class OrderRecord(BaseModel):
    """Order row as read from the store (PostgREST JSON or ORM instance)."""

    model_config = ConfigDict(from_attributes=True, extra="ignore")

    id: int
    external_order_id: Optional[str] = None
    status: str
    last_status_check: Optional[datetime] = None
    created_at: Optional[datetime] = None
    votes_delivered: Optional[int] = None

    @field_validator("last_status_check", "created_at")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # SQLite and some drivers hand back naive timestamps
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


@dataclass
class StatusUpdate:
    """Values written back to an order after a successful poll."""

    status: str
    votes_delivered: int
    checked_at: datetime


class OrderStatusResponse(BaseModel):
    """Success payload of the BuyUpvotes status endpoints."""

    model_config = ConfigDict(extra="allow")

    status: str = Field(min_length=1)
    votes_delivered: Optional[int] = Field(default=None, ge=0)


@dataclass(frozen=True)
class StatusCheckOk:
    """The external API answered with a usable status."""

    order_number: str
    status: str
    votes_delivered: Optional[int] = None

    ok = True


@dataclass(frozen=True)
class StatusCheckError:
    """The status call failed; reason is timeout, network, http_status or malformed_response."""

    order_number: str
    reason: str
    status_code: Optional[int] = None
    detail: Optional[str] = None

    ok = False

    def describe(self) -> str:
        if self.status_code is not None:
            return f"{self.reason} (HTTP {self.status_code}): {self.detail}"
        return f"{self.reason}: {self.detail}"


StatusCheckResult = Union[StatusCheckOk, StatusCheckError]
