"""
Message Queue Service

Reads and updates the message_queue table on behalf of the message
worker, and lets the messaging jobs enqueue new messages.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from loyalty.models.message_queue import MessageQueue, MessageStatus

logger = logging.getLogger(__name__)


class MessageQueueService:
    """
    Service for message queue operations.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def enqueue(
        self,
        phone_number: str,
        message_text: str,
        customer_id: Optional[int] = None,
        scheduled_for: Optional[datetime] = None,
    ) -> MessageQueue:
        message = MessageQueue(
            customer_id=customer_id,
            phone_number=phone_number,
            message_text=message_text,
            status=MessageStatus.PENDING.value,
            scheduled_for=scheduled_for,
            retry_count=0,
        )
        self.db.add(message)
        await self.db.flush()
        return message

    async def get_pending(self, limit: int = 10, now: Optional[datetime] = None) -> List[MessageQueue]:
        """Pending messages that are due, oldest first."""
        now = now or datetime.now(timezone.utc)
        result = await self.db.execute(
            select(MessageQueue)
            .where(
                MessageQueue.status == MessageStatus.PENDING.value,
                or_(
                    MessageQueue.scheduled_for.is_(None),
                    MessageQueue.scheduled_for <= now,
                ),
            )
            .order_by(MessageQueue.created_at.asc(), MessageQueue.id.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def mark_sent(self, message: MessageQueue, sent_at: Optional[datetime] = None) -> None:
        message.status = MessageStatus.SENT.value
        message.sent_at = sent_at or datetime.now(timezone.utc)
        message.error_message = None
        await self.db.commit()

    async def schedule_retry(self, message: MessageQueue, retry_count: int, error: str) -> None:
        message.retry_count = retry_count
        message.error_message = error
        await self.db.commit()

    async def mark_failed(self, message: MessageQueue, retry_count: int, error: str) -> None:
        message.status = MessageStatus.FAILED.value
        message.retry_count = retry_count
        message.error_message = error
        await self.db.commit()
