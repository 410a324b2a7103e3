"""
Tests for webhook verification.
"""

import hashlib
import hmac
import json

import pytest

from transactlab_sdk.exceptions import PayloadError, SignatureError
from transactlab_sdk.utils import webhook
from transactlab_sdk.utils.webhook import (
    WebhookVerifier,
    compute_signature,
    find_signature_header,
    generate_signature,
    parse_signature_header,
)

from .support import WEBHOOK_SECRET

PAYLOAD = b'{"type":"payment.completed","data":{"sessionId":"sess_1","amount":300000}}'


def sign(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


@pytest.fixture
def verifier():
    return WebhookVerifier(WEBHOOK_SECRET)


class TestSignatureHeader:
    """Header parsing and lookup."""

    def test_parse_signature_header(self):
        parts = parse_signature_header("t=1705420800,s=abc123def456")

        assert parts["t"] == "1705420800"
        assert parts["s"] == "abc123def456"

    def test_parse_signature_header_invalid(self):
        with pytest.raises(SignatureError, match="Missing signature header"):
            parse_signature_header("")

        with pytest.raises(SignatureError, match="Invalid signature header format"):
            parse_signature_header("t=1,invalid_format")

    def test_generate_signature(self):
        header = generate_signature(PAYLOAD, WEBHOOK_SECRET, timestamp=1705420800)
        assert header == f"t=1705420800,s={sign(PAYLOAD)}"

    def test_compute_signature_matches_hmac(self):
        assert compute_signature(PAYLOAD, WEBHOOK_SECRET) == sign(PAYLOAD)

    def test_header_lookup_is_case_insensitive(self):
        assert find_signature_header({"X-TL-SIGNATURE": "abc"}) == "abc"

    def test_header_order(self):
        headers = {"signature": "last", "x-webhook-signature": "third", "TL-Signature": "first"}
        assert find_signature_header(headers) == "first"

    def test_empty_header_value_skipped(self):
        assert find_signature_header({"tl-signature": "", "signature": "abc"}) == "abc"
        assert find_signature_header({"content-type": "application/json"}) is None


class TestWebhookVerifier:
    """Signature verification and event parsing."""

    @pytest.mark.parametrize(
        "name", ["TL-Signature", "tl-signature", "x-tl-signature", "x-webhook-signature", "signature"]
    )
    def test_bare_signature_in_each_header(self, verifier, name):
        event = verifier.verify(PAYLOAD, {name: sign(PAYLOAD)})

        assert event.type == "payment.completed"
        assert event.data == {"sessionId": "sess_1", "amount": 300000}

    def test_structured_signature(self, verifier):
        headers = {"TL-Signature": generate_signature(PAYLOAD, WEBHOOK_SECRET)}
        assert verifier.verify(PAYLOAD, headers).type == "payment.completed"

    def test_uppercase_hex_accepted(self, verifier):
        headers = {"TL-Signature": sign(PAYLOAD).upper()}
        assert verifier.verify(PAYLOAD, headers).type == "payment.completed"

    def test_str_body_accepted(self, verifier):
        event = verifier.verify(PAYLOAD.decode(), {"signature": sign(PAYLOAD)})
        assert event.type == "payment.completed"

    def test_unknown_fields_preserved(self, verifier):
        body = b'{"type":"refund.created","id":"evt_1","livemode":false}'
        event = verifier.verify(body, {"signature": sign(body)})

        assert event.to_dict() == {"type": "refund.created", "id": "evt_1", "livemode": False}

    def test_missing_header(self, verifier):
        with pytest.raises(SignatureError, match="Missing signature header"):
            verifier.verify(PAYLOAD, {"Content-Type": "application/json"})

    def test_wrong_secret(self, verifier):
        headers = {"TL-Signature": sign(PAYLOAD, "whsec_other")}
        with pytest.raises(SignatureError, match="Invalid webhook signature"):
            verifier.verify(PAYLOAD, headers)

    def test_structured_header_without_signature(self, verifier):
        with pytest.raises(SignatureError):
            verifier.verify(PAYLOAD, {"TL-Signature": "t=1705420800"})

    def test_any_body_bit_flip_rejected(self, verifier):
        headers = {"TL-Signature": sign(PAYLOAD)}
        for index in range(0, len(PAYLOAD), 7):
            tampered = bytearray(PAYLOAD)
            tampered[index] ^= 0x01
            with pytest.raises(SignatureError):
                verifier.verify(bytes(tampered), headers)

    def test_any_signature_change_rejected(self, verifier):
        good = sign(PAYLOAD)
        for index in range(len(good)):
            replacement = "0" if good[index] != "0" else "1"
            bad = good[:index] + replacement + good[index + 1 :]
            with pytest.raises(SignatureError):
                verifier.verify(PAYLOAD, {"TL-Signature": bad})

    def test_truncated_signature_rejected(self, verifier):
        with pytest.raises(SignatureError):
            verifier.verify(PAYLOAD, {"TL-Signature": sign(PAYLOAD)[:-2]})

    def test_comparison_is_constant_time(self, verifier, monkeypatch):
        calls = []
        real = webhook.hmac.compare_digest

        def spy(a, b):
            calls.append((a, b))
            return real(a, b)

        monkeypatch.setattr(webhook.hmac, "compare_digest", spy)
        with pytest.raises(SignatureError):
            verifier.verify(PAYLOAD, {"TL-Signature": "00" * 32})

        assert len(calls) == 1

    @pytest.mark.parametrize("body", [b"not json", b"[1, 2, 3]", b'"text"', b'{"type": 42}', b"\xff\xfe"])
    def test_valid_signature_bad_payload(self, verifier, body):
        with pytest.raises(PayloadError):
            verifier.verify(body, {"TL-Signature": sign(body)})

    def test_signature_checked_before_parsing(self, verifier):
        with pytest.raises(SignatureError):
            verifier.verify(b"not json", {"TL-Signature": sign(b"other")})

    def test_secret_required(self):
        with pytest.raises(SignatureError):
            WebhookVerifier("")

    def test_event_round_trips_through_json(self, verifier):
        event = verifier.verify(PAYLOAD, {"signature": sign(PAYLOAD)})
        assert json.loads(PAYLOAD) == event.to_dict()
