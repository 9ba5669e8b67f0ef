"""Verification of signed webhook deliveries."""

import hashlib
import hmac
import json
import time
from typing import Any, Mapping, Optional, Tuple, Union

from .exceptions import SignatureVerificationError
from .utils import get_header

SIGNATURE_HEADER = "x-attio-signature"
TIMESTAMP_HEADER = "x-attio-timestamp"
TOLERANCE_SECONDS = 300


class WebhookSignature:
    """HMAC-SHA256 signatures over ``"{timestamp}.{payload}"``, formatted ``v1=<hex>``."""

    @staticmethod
    def sign(payload: Union[str, bytes, Any], timestamp: Union[str, int], secret: str) -> str:
        if isinstance(payload, bytes):
            payload = payload.decode('utf-8')
        elif not isinstance(payload, str):
            payload = json.dumps(payload, separators=(',', ':'))

        signed_payload = f"{timestamp}.{payload}"
        digest = hmac.new(secret.encode('utf-8'), signed_payload.encode('utf-8'), hashlib.sha256)
        return f"v1={digest.hexdigest()}"

    @classmethod
    def verify_or_raise(cls, payload: Union[str, bytes, Any], signature: Optional[str],
                        timestamp: Union[str, int, None], secret: Optional[str],
                        tolerance: int = TOLERANCE_SECONDS, now: Optional[float] = None):
        if payload is None:
            raise SignatureVerificationError("Payload cannot be empty")
        if not signature:
            raise SignatureVerificationError("Signature cannot be empty")
        if timestamp is None or str(timestamp) == "":
            raise SignatureVerificationError("Timestamp cannot be empty")
        if not secret:
            raise SignatureVerificationError("Secret cannot be empty")

        try:
            timestamp_int = int(str(timestamp))
        except ValueError:
            raise SignatureVerificationError(f"Invalid timestamp: {timestamp}") from None

        current_time = int(time.time() if now is None else now)
        if timestamp_int < current_time - tolerance:
            raise SignatureVerificationError("Timestamp too old")
        if timestamp_int > current_time + tolerance:
            raise SignatureVerificationError("Timestamp too far in the future")

        expected = cls.sign(payload, timestamp, secret)
        if not hmac.compare_digest(signature.encode('utf-8'), expected.encode('utf-8')):
            raise SignatureVerificationError("Invalid signature")

    @classmethod
    def verify(cls, payload: Union[str, bytes, Any], signature: Optional[str],
               timestamp: Union[str, int, None], secret: Optional[str],
               tolerance: int = TOLERANCE_SECONDS, now: Optional[float] = None) -> bool:
        try:
            cls.verify_or_raise(payload, signature, timestamp, secret, tolerance, now)
        except SignatureVerificationError:
            return False
        return True

    @staticmethod
    def extract_from_headers(headers: Mapping[str, str]) -> Tuple[str, str]:
        """Return (signature, timestamp) from webhook request headers."""
        signature = get_header(headers, SIGNATURE_HEADER, SIGNATURE_HEADER.replace('-', '_'))
        timestamp = get_header(headers, TIMESTAMP_HEADER, TIMESTAMP_HEADER.replace('-', '_'))

        if not signature:
            raise SignatureVerificationError(f"Missing signature header: {SIGNATURE_HEADER}")
        if not timestamp:
            raise SignatureVerificationError(f"Missing timestamp header: {TIMESTAMP_HEADER}")
        return signature, timestamp
