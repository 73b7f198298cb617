"""
Message Queue Worker

Polls the message_queue table and delivers due messages through the
configured SMS provider.

- Polls immediately on start, then every MESSAGE_WORKER_POLL_SECONDS
- Up to MESSAGE_WORKER_BATCH_SIZE messages per poll, oldest first
- Messages are sent one at a time with a short delay between sends
- A failed send is retried on later polls until MESSAGE_WORKER_MAX_RETRIES
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from loyalty.config import settings
from loyalty.jobs.registry import ScheduledJobHandle
from loyalty.jobs.scheduler import schedule_interval
from loyalty.models.message_queue import MessageQueue
from loyalty.services.message_queue_service import MessageQueueService
from loyalty.services.sms_service import SMSProvider, get_sms_provider

logger = logging.getLogger(__name__)


class MessageWorker:
    """Delivers queued messages with bounded retries."""

    def __init__(
        self,
        session_factory: Optional[Callable] = None,
        provider: Optional[SMSProvider] = None,
        batch_size: int = 10,
        max_retries: int = 3,
        send_delay: float = 0.5,
    ):
        if session_factory is None:
            from loyalty.database import get_db_session
            session_factory = get_db_session
        self._session_factory = session_factory
        self._provider = provider
        self.batch_size = batch_size
        self.max_retries = max_retries
        self.send_delay = send_delay

    @property
    def provider(self) -> SMSProvider:
        if self._provider is None:
            self._provider = get_sms_provider()
        return self._provider

    async def process_queue(self, now: Optional[datetime] = None) -> int:
        """
        Deliver one batch of due messages.

        Returns:
            Number of messages processed (sent or not)
        """
        now = now or datetime.now(timezone.utc)
        try:
            async with self._session_factory() as session:
                service = MessageQueueService(session)
                messages = await service.get_pending(limit=self.batch_size, now=now)
                if not messages:
                    return 0

                logger.info(f"Processing {len(messages)} messages from queue")
                for index, message in enumerate(messages):
                    await self.process_message(message, service)
                    if self.send_delay and index < len(messages) - 1:
                        await asyncio.sleep(self.send_delay)
                return len(messages)
        except Exception as e:
            logger.error(f"Error processing message queue: {e}")
            return 0

    async def process_message(self, message: MessageQueue, service: MessageQueueService) -> None:
        try:
            result = await self.provider.send_sms(message.phone_number, message.message_text)
        except Exception as e:
            logger.error(f"Error processing message {message.id}: {e}")
            await self._record_failure(message, service, str(e) or None, "Unknown error", "Unknown error")
            return

        if result.success:
            await service.mark_sent(message, datetime.now(timezone.utc))
            logger.info(f"Message {message.id} sent successfully")
            return

        await self._record_failure(message, service, result.error, "Max retries exceeded", "SMS send failed")

    async def _record_failure(
        self,
        message: MessageQueue,
        service: MessageQueueService,
        error: Optional[str],
        final_default: str,
        retry_default: str,
    ) -> None:
        retry_count = (message.retry_count or 0) + 1

        if retry_count >= self.max_retries:
            await service.mark_failed(message, retry_count, error or final_default)
            logger.error(f"Message {message.id} failed after {retry_count} retries")
        else:
            await service.schedule_retry(message, retry_count, error or retry_default)
            logger.warning(f"Message {message.id} failed, retry {retry_count}/{self.max_retries}")


def start_message_worker() -> ScheduledJobHandle:
    """Start the message queue worker on the shared scheduler."""
    logger.info("Starting message queue worker...")

    worker = MessageWorker(
        batch_size=settings.MESSAGE_WORKER_BATCH_SIZE,
        max_retries=settings.MESSAGE_WORKER_MAX_RETRIES,
        send_delay=settings.MESSAGE_WORKER_SEND_DELAY,
    )
    handle = schedule_interval(
        "message_worker",
        "Message Queue Worker",
        settings.MESSAGE_WORKER_POLL_SECONDS,
        worker.process_queue,
        run_immediately=True,
    )

    logger.info(f"Message queue worker started (polling every {settings.MESSAGE_WORKER_POLL_SECONDS}s)")
    return handle
