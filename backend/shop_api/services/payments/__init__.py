"""
Payment Services - Paymob integration.

Provides:
- Paymob client (auth, order, payment key, callback HMAC)
- Payment workflow around committed orders and the webhook
- Circuit breakers for outbound gateway calls
"""

from .circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerError,
    CircuitState,
    get_all_breaker_stats,
    paymob_breaker,
    sms_breaker,
)
from .paymob import (
    PaymentGateway,
    PaymentLink,
    PaymobClient,
    PaymobError,
    compute_hmac,
    verify_hmac,
)
from .payment_service import PaymentService, get_payment_gateway

__all__ = [
    # Circuit breaker
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerError",
    "CircuitState",
    "get_all_breaker_stats",
    "paymob_breaker",
    "sms_breaker",
    # Paymob
    "PaymentGateway",
    "PaymentLink",
    "PaymobClient",
    "PaymobError",
    "compute_hmac",
    "verify_hmac",
    # Workflow
    "PaymentService",
    "get_payment_gateway",
]
