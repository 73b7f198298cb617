from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import String, Text, Integer, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column

from loyalty.database import Base


class MessageStatus(str, Enum):
    """Delivery status of a queued message."""
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


class MessageQueue(Base):
    """
    Outbound SMS waiting for the message worker.

    Rows are written by the messaging jobs and consumed in created_at order.
    """
    __tablename__ = "message_queue"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    customer_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)

    phone_number: Mapped[str] = mapped_column(String(15), nullable=False)
    message_text: Mapped[str] = mapped_column(Text, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=MessageStatus.PENDING.value,
        nullable=False,
        comment="PENDING, SENT, FAILED"
    )
    scheduled_for: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="NULL = send as soon as possible"
    )
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    __table_args__ = (
        Index("ix_message_queue_status_created", "status", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<MessageQueue(id={self.id}, status='{self.status}', retries={self.retry_count})>"
