"""
Notification Services - customer SMS and checkout phone verification.
"""

from .sms import (
    SmsClient,
    SmsResult,
    format_egyptian_phone,
    order_placed_message,
    order_status_message,
    send_order_placed_sms,
    send_order_status_sms,
    send_sms_best_effort,
)
from .otp import (
    CodeDelivery,
    PhoneVerificationService,
    normalize_mobile,
    verification_message,
)

__all__ = [
    "SmsClient",
    "SmsResult",
    "format_egyptian_phone",
    "order_placed_message",
    "order_status_message",
    "send_order_placed_sms",
    "send_order_status_sms",
    "send_sms_best_effort",
    "CodeDelivery",
    "PhoneVerificationService",
    "normalize_mobile",
    "verification_message",
]
