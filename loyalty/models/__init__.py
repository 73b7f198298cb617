from loyalty.models.message_queue import MessageQueue, MessageStatus

__all__ = [
    "MessageQueue",
    "MessageStatus",
]
