from __future__ import annotations

import time

import pytest

from order_sync.application.signature import (
    SignatureError,
    compute_signature,
    parse_timestamp,
    verify_signature,
)

SECRET = "s3cret"
BODY = b'{"event":"order.paid","order_id":"1"}'


class TestComputeSignature:
    def test_signature_is_deterministic(self) -> None:
        assert compute_signature(SECRET, BODY) == compute_signature(SECRET, BODY)

    def test_different_secrets_produce_different_sigs(self) -> None:
        assert compute_signature("a", BODY) != compute_signature("b", BODY)


class TestVerifySignature:
    def test_valid_plain_hex(self) -> None:
        assert verify_signature(SECRET, BODY, compute_signature(SECRET, BODY)) is True

    def test_valid_with_prefix(self) -> None:
        header = "sha256=" + compute_signature(SECRET, BODY)
        assert verify_signature(SECRET, BODY, header) is True

    def test_tampered_body(self) -> None:
        header = compute_signature(SECRET, BODY)
        with pytest.raises(SignatureError) as exc_info:
            verify_signature(SECRET, BODY + b" ", header)
        assert exc_info.value.reason == "invalid signature"

    def test_missing_header(self) -> None:
        with pytest.raises(SignatureError) as exc_info:
            verify_signature(SECRET, BODY, None)
        assert exc_info.value.reason == "missing signature"

    def test_no_secret_skips_verification(self) -> None:
        assert verify_signature(None, BODY, None) is False
        assert verify_signature("", BODY, "garbage") is False

    def test_stale_timestamp(self) -> None:
        now = time.time()
        header = compute_signature(SECRET, BODY)
        with pytest.raises(SignatureError) as exc_info:
            verify_signature(SECRET, BODY, header, str(int(now - 301)), now=now)
        assert exc_info.value.reason == "stale timestamp"

    def test_ten_minute_old_delivery_is_replay(self) -> None:
        now = time.time()
        header = compute_signature(SECRET, BODY)
        with pytest.raises(SignatureError):
            verify_signature(SECRET, BODY, header, str(int((now - 600) * 1000)), now=now)

    def test_fresh_timestamp(self) -> None:
        now = time.time()
        header = compute_signature(SECRET, BODY)
        assert verify_signature(SECRET, BODY, header, str(int(now - 60)), now=now) is True

    def test_future_timestamp_outside_tolerance(self) -> None:
        now = 1_700_000_000.0
        header = compute_signature(SECRET, BODY)
        with pytest.raises(SignatureError):
            verify_signature(SECRET, BODY, header, str(int(now + 600)), now=now)

    def test_unreadable_timestamp_is_not_stale(self) -> None:
        header = compute_signature(SECRET, BODY)
        assert verify_signature(SECRET, BODY, header, "yesterday") is True


class TestParseTimestamp:
    def test_seconds(self) -> None:
        assert parse_timestamp("1700000000") == 1_700_000_000.0

    def test_milliseconds(self) -> None:
        assert parse_timestamp("1700000000000") == 1_700_000_000.0

    def test_iso(self) -> None:
        assert parse_timestamp("2023-11-14T22:13:20Z") == 1_700_000_000.0

    def test_garbage(self) -> None:
        assert parse_timestamp("nope") is None
        assert parse_timestamp("  ") is None
