from loyalty.workers.message_worker import MessageWorker, start_message_worker

__all__ = [
    "MessageWorker",
    "start_message_worker",
]
