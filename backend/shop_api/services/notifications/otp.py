"""
Checkout phone verification.

A 6-digit code is stored with a 10 minute expiry and sent by SMS. Only the
newest code for a phone counts, and it accepts a limited number of wrong
guesses. A phone verified within the last half hour may check out.
"""

import hmac
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from shared.config.constants import Limits
from shared.config.logging import get_logger, mask_phone
from shared.infrastructure.db import transaction
from shared.utils.exceptions import InvalidInputError, TransactionConflictError
from shop_api.models import PhoneVerification
from shop_api.models.base import as_utc, utcnow
from .sms import BRAND, SmsClient, format_egyptian_phone, send_sms_best_effort

logger = get_logger(__name__)

EGYPTIAN_MOBILE = re.compile(r"^01[0125][0-9]{8}$")


def verification_message(code: str) -> str:
    return (
        f"Your {BRAND} verification code is: {code}. "
        f"Valid for {Limits.OTP_TTL_MINUTES} minutes. Do not share this code with anyone."
    )


def normalize_mobile(phone: str) -> str:
    """
    Local 11-digit form of an Egyptian mobile number.

    Raises:
        InvalidInputError: not a Vodafone/Etisalat/Orange/WE mobile number
    """
    local = format_egyptian_phone(phone)
    if not EGYPTIAN_MOBILE.match(local):
        raise InvalidInputError("Invalid Egyptian mobile number", phone=mask_phone(local))
    return local


def generate_code() -> str:
    return f"{secrets.randbelow(10 ** Limits.OTP_LENGTH):0{Limits.OTP_LENGTH}d}"


@dataclass(frozen=True)
class CodeDelivery:
    phone: str
    code: str
    expires_at: datetime
    sent: bool
    live: bool

    @property
    def failed(self) -> bool:
        """The gateway was supposed to deliver the code and did not."""
        return self.live and not self.sent


class PhoneVerificationService:
    def __init__(self, db: Session):
        self._db = db

    def _latest(self, phone: str) -> PhoneVerification | None:
        return self._db.scalar(
            select(PhoneVerification)
            .where(PhoneVerification.phone == phone)
            .order_by(PhoneVerification.id.desc())
            .limit(1)
        )

    def issue(self, phone: str, now: datetime | None = None) -> PhoneVerification:
        """Store a fresh code for the phone. Earlier codes stop counting."""
        now = now or utcnow()
        local = normalize_mobile(phone)
        record = PhoneVerification(
            phone=local,
            code=generate_code(),
            expires_at=now + timedelta(minutes=Limits.OTP_TTL_MINUTES),
            attempts=0,
            is_verified=False,
            created_at=now,
        )
        with transaction(self._db):
            self._db.add(record)
        logger.info("Verification code issued", phone=mask_phone(local), verification_id=record.id)
        return record

    async def request_code(self, phone: str, client: SmsClient | None = None) -> CodeDelivery:
        client = client or SmsClient()
        record = self.issue(phone)
        sent = await send_sms_best_effort(record.phone, verification_message(record.code), client)
        return CodeDelivery(
            phone=record.phone,
            code=record.code,
            expires_at=as_utc(record.expires_at),
            sent=sent,
            live=client.live,
        )

    def verify(self, phone: str, code: str, now: datetime | None = None) -> PhoneVerification:
        """
        Check a code against the newest one sent to the phone.

        Raises:
            InvalidInputError: wrong, expired or exhausted code
            TransactionConflictError: the code was used concurrently
        """
        now = now or utcnow()
        local = normalize_mobile(phone)
        record = self._latest(local)

        if record is None or record.is_verified or as_utc(record.expires_at) <= now:
            raise InvalidInputError("Invalid or expired verification code", phone=mask_phone(local))
        if record.attempts >= Limits.OTP_MAX_ATTEMPTS:
            raise InvalidInputError(
                "Too many attempts, request a new verification code",
                phone=mask_phone(local),
                verification_id=record.id,
            )

        if not hmac.compare_digest(record.code, code.strip()):
            attempts_left = Limits.OTP_MAX_ATTEMPTS - record.attempts - 1
            with transaction(self._db):
                self._db.execute(
                    update(PhoneVerification)
                    .where(PhoneVerification.id == record.id)
                    .values(attempts=PhoneVerification.attempts + 1)
                    .execution_options(synchronize_session=False)
                )
            raise InvalidInputError(
                "Invalid or expired verification code",
                extra={"attempts_left": max(0, attempts_left)},
                phone=mask_phone(local),
                verification_id=record.id,
            )

        with transaction(self._db):
            result = self._db.execute(
                update(PhoneVerification)
                .where(
                    PhoneVerification.id == record.id,
                    PhoneVerification.is_verified.is_(False),
                    PhoneVerification.attempts < Limits.OTP_MAX_ATTEMPTS,
                )
                .values(is_verified=True, verified_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise TransactionConflictError("phone_verification", verification_id=record.id)

        self._db.refresh(record)
        logger.info("Phone verified", phone=mask_phone(local), verification_id=record.id)
        return record

    def is_verified(self, phone: str, now: datetime | None = None) -> bool:
        now = now or utcnow()
        local = format_egyptian_phone(phone)
        record = self._db.scalar(
            select(PhoneVerification)
            .where(PhoneVerification.phone == local, PhoneVerification.is_verified.is_(True))
            .order_by(PhoneVerification.id.desc())
            .limit(1)
        )
        if record is None or record.verified_at is None:
            return False
        return as_utc(record.verified_at) >= now - timedelta(minutes=Limits.OTP_VERIFIED_WINDOW_MINUTES)
