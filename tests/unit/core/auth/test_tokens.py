"""Tests for opaque token helpers."""

from datetime import UTC, datetime, timedelta

from aurora.core.auth.tokens import (
    generate_token,
    get_token_expiry,
    hash_token,
    is_token_expired,
    token_matches,
)


class TestHashToken:
    """Test refresh token hashing."""

    def test_hash_is_sha256_hex(self) -> None:
        """Hash should be 64 hex characters."""
        digest = hash_token("abc")
        assert len(digest) == 64
        assert digest == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"

    def test_token_matches(self) -> None:
        """Matching should accept the original token only."""
        stored = hash_token("refresh-token")
        assert token_matches("refresh-token", stored) is True
        assert token_matches("refresh-token-2", stored) is False

    def test_generate_token_unique(self) -> None:
        """Generated tokens should not repeat."""
        assert generate_token() != generate_token()


class TestExpiry:
    """Test expiry calculations."""

    def test_future_expiry_not_expired(self) -> None:
        assert is_token_expired(get_token_expiry(timedelta(minutes=5))) is False

    def test_past_expiry_expired(self) -> None:
        assert is_token_expired(datetime.now(UTC) - timedelta(seconds=1)) is True

    def test_naive_datetime_treated_as_utc(self) -> None:
        """Naive timestamps from older rows should still compare."""
        naive_past = (datetime.now(UTC) - timedelta(hours=1)).replace(tzinfo=None)
        assert is_token_expired(naive_past) is True
