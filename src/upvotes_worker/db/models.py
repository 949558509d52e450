"""SQLAlchemy models for order tables."""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UpvoteOrder(Base):
    """
    An upvote order placed by a user and fulfilled by BuyUpvotes.

    status, votes_delivered and last_status_check are refreshed by the
    reconciliation job; everything else is written by the submission flow.
    """

    __tablename__ = "upvote_orders"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    link: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    service: Mapped[int] = mapped_column(Integer, nullable=False)
    speed: Mapped[float] = mapped_column(Float, nullable=False)

    status: Mapped[str] = mapped_column(String(50), default="Pending", nullable=False)
    external_order_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    votes_delivered: Mapped[Optional[int]] = mapped_column(Integer, default=0, nullable=True)
    last_status_check: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class CommentOrder(Base):
    """A comment order; BuyUpvotes reports status only, no delivered count."""

    __tablename__ = "comment_orders"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    link: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)

    status: Mapped[str] = mapped_column(String(50), default="Pending", nullable=False)
    external_order_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    last_status_check: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


_MODELS_BY_TABLE = {model.__tablename__: model for model in (UpvoteOrder, CommentOrder)}


def model_for_table(table: str):
    """Return the ORM model mapped to an order table name."""
    try:
        return _MODELS_BY_TABLE[table]
    except KeyError:
        raise ValueError(f"No ORM model for table {table!r}") from None
