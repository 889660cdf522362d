"""Unit tests for CredentialWindow and CredentialValidation."""

from dataclasses import FrozenInstanceError

import pytest

from cpjoin.domain.credentials import (
    CredentialKind,
    CredentialValidation,
    CredentialWindow,
)
from cpjoin.domain.exceptions import CPJoinConfigError

from ..builders import CA_CERT_HASH, CERT_KEY, HOUR, ISSUED_AT, TOKEN, make_window


@pytest.mark.unit
@pytest.mark.tier(1)
@pytest.mark.tra("Domain.Invariant.CredentialWindow")
class TestCredentialWindow:
    """Test CredentialWindow value object."""

    def test_create_valid_window(self) -> None:
        window = make_window()
        assert window.token == TOKEN
        assert window.cert_key == CERT_KEY
        assert window.ca_cert_hash == CA_CERT_HASH
        assert window.token_expires_at - window.issued_at == 24 * HOUR
        assert window.cert_key_expires_at - window.issued_at == 2 * HOUR

    def test_window_is_immutable(self) -> None:
        window = make_window()
        with pytest.raises(FrozenInstanceError):
            window.cert_key = "00" * 32  # type: ignore[misc]

    @pytest.mark.parametrize(
        "token",
        ["", "abcdef0123456789abcdef", "ABCDEF.0123456789abcdef", "abc.0123456789abcdef"],
    )
    def test_malformed_token_raises(self, token: str) -> None:
        with pytest.raises(CPJoinConfigError, match="token must match"):
            CredentialWindow(
                token=token,
                token_expires_at=ISSUED_AT + HOUR,
                cert_key=CERT_KEY,
                cert_key_expires_at=ISSUED_AT + HOUR,
                issued_at=ISSUED_AT,
            )

    def test_short_cert_key_raises(self) -> None:
        with pytest.raises(CPJoinConfigError, match="cert_key"):
            CredentialWindow(
                token=TOKEN,
                token_expires_at=ISSUED_AT + HOUR,
                cert_key="abc123",
                cert_key_expires_at=ISSUED_AT + HOUR,
                issued_at=ISSUED_AT,
            )

    def test_malformed_ca_hash_raises(self) -> None:
        with pytest.raises(CPJoinConfigError, match="ca_cert_hash"):
            CredentialWindow(
                token=TOKEN,
                token_expires_at=ISSUED_AT + HOUR,
                cert_key=CERT_KEY,
                cert_key_expires_at=ISSUED_AT + HOUR,
                issued_at=ISSUED_AT,
                ca_cert_hash="md5:abc",
            )

    def test_ca_hash_is_optional(self) -> None:
        window = CredentialWindow(
            token=TOKEN,
            token_expires_at=ISSUED_AT + HOUR,
            cert_key=CERT_KEY,
            cert_key_expires_at=ISSUED_AT + HOUR,
            issued_at=ISSUED_AT,
        )
        assert window.ca_cert_hash is None

    def test_cert_key_outliving_token_raises(self) -> None:
        with pytest.raises(CPJoinConfigError, match="cannot be later than"):
            make_window(token_ttl=HOUR, cert_key_ttl=2 * HOUR)

    def test_expiry_before_issue_raises(self) -> None:
        with pytest.raises(CPJoinConfigError, match="must be after issued_at"):
            make_window(token_ttl=0.0, cert_key_ttl=0.0)

    def test_repr_hides_secrets(self) -> None:
        text = repr(make_window())
        assert CERT_KEY not in text
        assert "0123456789abcdef" not in text
        assert "abcdef.****" in text


@pytest.mark.unit
@pytest.mark.tier(1)
@pytest.mark.tra("Contract.CredentialValidation")
class TestCredentialValidation:
    """Test CredentialValidation constructors."""

    def test_valid(self) -> None:
        result = CredentialValidation.valid(checked_at=10.0)
        assert result.is_valid is True
        assert result.expired is None
        assert result.checked_at == 10.0

    def test_expired_for(self) -> None:
        result = CredentialValidation.expired_for(CredentialKind.CERT_KEY, 10.0)
        assert result.is_valid is False
        assert result.expired is CredentialKind.CERT_KEY
