from loyalty.services.message_queue_service import MessageQueueService
from loyalty.services.sms_service import SMSProvider, SMSResult, get_sms_provider

__all__ = [
    "MessageQueueService",
    "SMSProvider",
    "SMSResult",
    "get_sms_provider",
]
