import hashlib
import hmac

import pytest

from AttioConnect.exceptions import SignatureVerificationError
from AttioConnect.webhook import WebhookSignature

SECRET = "whsec_test"
NOW = 1_700_000_000
PAYLOAD = '{"event_type":"record.created","id":{"record_id":"123"}}'


def test_sign_format():
    expected = hmac.new(SECRET.encode(), f"{NOW}.{PAYLOAD}".encode(), hashlib.sha256).hexdigest()
    assert WebhookSignature.sign(PAYLOAD, NOW, SECRET) == f"v1={expected}"


def test_sign_accepts_bytes_and_objects():
    signature = WebhookSignature.sign(PAYLOAD, NOW, SECRET)
    assert WebhookSignature.sign(PAYLOAD.encode(), NOW, SECRET) == signature
    obj = {'event_type': "record.created", 'id': {'record_id': "123"}}
    assert WebhookSignature.sign(obj, NOW, SECRET) == signature


def test_verify_valid_signature():
    signature = WebhookSignature.sign(PAYLOAD, NOW, SECRET)
    assert WebhookSignature.verify(PAYLOAD, signature, str(NOW), SECRET, now=NOW + 10)


def test_verify_rejects_wrong_secret_or_tampered_payload():
    signature = WebhookSignature.sign(PAYLOAD, NOW, SECRET)
    assert not WebhookSignature.verify(PAYLOAD, signature, NOW, "other", now=NOW)
    assert not WebhookSignature.verify(PAYLOAD + " ", signature, NOW, SECRET, now=NOW)
    with pytest.raises(SignatureVerificationError, match="Invalid signature"):
        WebhookSignature.verify_or_raise(PAYLOAD, "v1=deadbeef", NOW, SECRET, now=NOW)


@pytest.mark.parametrize("offset, message", [
    (301, "Timestamp too old"),
    (-301, "Timestamp too far in the future"),
])
def test_timestamp_outside_tolerance(offset, message):
    signature = WebhookSignature.sign(PAYLOAD, NOW, SECRET)
    with pytest.raises(SignatureVerificationError, match=message):
        WebhookSignature.verify_or_raise(PAYLOAD, signature, NOW, SECRET, now=NOW + offset)


def test_timestamp_at_tolerance_boundary_is_accepted():
    signature = WebhookSignature.sign(PAYLOAD, NOW, SECRET)
    assert WebhookSignature.verify(PAYLOAD, signature, NOW, SECRET, now=NOW + 300)
    assert WebhookSignature.verify(PAYLOAD, signature, NOW, SECRET, now=NOW - 300)


@pytest.mark.parametrize("payload, signature, timestamp, secret, message", [
    (None, "v1=x", NOW, SECRET, "Payload cannot be empty"),
    (PAYLOAD, "", NOW, SECRET, "Signature cannot be empty"),
    (PAYLOAD, "v1=x", None, SECRET, "Timestamp cannot be empty"),
    (PAYLOAD, "v1=x", NOW, "", "Secret cannot be empty"),
    (PAYLOAD, "v1=x", "yesterday", SECRET, "Invalid timestamp"),
])
def test_missing_inputs(payload, signature, timestamp, secret, message):
    with pytest.raises(SignatureVerificationError, match=message):
        WebhookSignature.verify_or_raise(payload, signature, timestamp, secret, now=NOW)


def test_extract_from_headers_ignores_case():
    headers = {'X-Attio-Signature': "v1=abc", 'X-Attio-Timestamp': str(NOW)}
    assert WebhookSignature.extract_from_headers(headers) == ("v1=abc", str(NOW))


def test_extract_from_headers_requires_both():
    with pytest.raises(SignatureVerificationError, match="Missing signature header"):
        WebhookSignature.extract_from_headers({'x-attio-timestamp': str(NOW)})
    with pytest.raises(SignatureVerificationError, match="Missing timestamp header"):
        WebhookSignature.extract_from_headers({'x-attio-signature': "v1=abc"})
