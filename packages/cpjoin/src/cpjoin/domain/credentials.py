"""Credential window value objects.

A credential window holds the bootstrap token and certificate-upload key a
joining control-plane node needs. The certificate key is short-lived and
the token long-lived, so the two expire independently.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from cpjoin.domain.exceptions import CPJoinConfigError

_TOKEN_PATTERN = re.compile(r"^[a-z0-9]{6}\.[a-z0-9]{16}$")
_CERT_KEY_PATTERN = re.compile(r"^[a-f0-9]{64}$")
_CA_HASH_PATTERN = re.compile(r"^sha256:[a-f0-9]{64}$")


class CredentialKind(Enum):
    """Which half of a credential window a validation result refers to.

    Attributes:
        TOKEN: The bootstrap token. Expiry requires a brand-new window.
        CERT_KEY: The certificate-upload key. Expiry alone only requires
                  the certificates to be uploaded again.
    """

    TOKEN = "token"
    CERT_KEY = "cert_key"


@dataclass(frozen=True)
class CredentialWindow:
    """Credentials issued by the founding node for joining nodes.

    Immutable: re-issuing credentials yields a new window. All timestamps
    are Unix seconds.

    Attributes:
        token: Bootstrap token in ``[a-z0-9]{6}.[a-z0-9]{16}`` form.
        token_expires_at: Instant after which the token is rejected.
        cert_key: 32-byte certificate key, hex encoded.
        cert_key_expires_at: Instant after which the uploaded certificates
                             are deleted. Never later than token_expires_at.
        issued_at: Instant the window was issued.
        ca_cert_hash: Discovery hash of the cluster CA public key
                      (``sha256:<hex>``), or None when discovery is
                      handled out of band.
    """

    token: str
    token_expires_at: float
    cert_key: str
    cert_key_expires_at: float
    issued_at: float
    ca_cert_hash: str | None = None

    def __post_init__(self) -> None:
        """Validate credential window."""
        self._validate_token()
        self._validate_cert_key()
        self._validate_ca_cert_hash()
        self._validate_expiries()

    def _validate_token(self) -> None:
        if not _TOKEN_PATTERN.match(self.token):
            raise CPJoinConfigError(
                "token must match [a-z0-9]{6}.[a-z0-9]{16}"
            )

    def _validate_cert_key(self) -> None:
        if not _CERT_KEY_PATTERN.match(self.cert_key):
            raise CPJoinConfigError("cert_key must be 64 lowercase hex characters")

    def _validate_ca_cert_hash(self) -> None:
        if self.ca_cert_hash is not None and not _CA_HASH_PATTERN.match(
            self.ca_cert_hash
        ):
            raise CPJoinConfigError(
                f"ca_cert_hash must be 'sha256:<hex>', got: {self.ca_cert_hash!r}"
            )

    def _validate_expiries(self) -> None:
        if self.token_expires_at <= self.issued_at:
            raise CPJoinConfigError("token_expires_at must be after issued_at")

        if self.cert_key_expires_at <= self.issued_at:
            raise CPJoinConfigError("cert_key_expires_at must be after issued_at")

        if self.cert_key_expires_at > self.token_expires_at:
            raise CPJoinConfigError(
                "cert_key_expires_at cannot be later than token_expires_at"
            )

    def __repr__(self) -> str:
        # Secrets stay out of logs and tracebacks.
        return (
            f"CredentialWindow(token='{self.token[:6]}.****', "
            f"token_expires_at={self.token_expires_at}, cert_key='****', "
            f"cert_key_expires_at={self.cert_key_expires_at}, "
            f"issued_at={self.issued_at})"
        )


@dataclass(frozen=True)
class CredentialValidation:
    """Outcome of checking a credential window against the clock.

    Attributes:
        is_valid: True if both token and cert key are still valid.
        expired: Which credential expired, or None if valid. When both have
                 expired this is TOKEN, since only a new window recovers.
        checked_at: The instant the window was checked against.
    """

    is_valid: bool
    expired: CredentialKind | None
    checked_at: float

    @classmethod
    def valid(cls, checked_at: float) -> CredentialValidation:
        return cls(is_valid=True, expired=None, checked_at=checked_at)

    @classmethod
    def expired_for(
        cls, kind: CredentialKind, checked_at: float
    ) -> CredentialValidation:
        return cls(is_valid=False, expired=kind, checked_at=checked_at)
