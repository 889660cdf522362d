"""Fake credential issuer for testing."""

from __future__ import annotations

from cpjoin.domain.exceptions import CommandExecutionError

DEFAULT_CA_CERT_HASH = "sha256:" + "ab" * 32


class FakeCredentialIssuer:
    """Fake implementation of CredentialIssuerPort for testing.

    Records registered tokens and uploaded certificate keys.
    """

    def __init__(self, ca_cert_hash: str = DEFAULT_CA_CERT_HASH) -> None:
        self._ca_cert_hash = ca_cert_hash
        self.tokens: list[tuple[str, float]] = []
        self.cert_keys: list[str] = []
        self._upload_error: str | None = None

    def fail_uploads(
        self, message: str | None = "upload-certs: connection refused"
    ) -> None:
        """Make upload_certificates() raise, or pass None to restore it."""
        self._upload_error = message

    def register_token(self, token: str, ttl: float) -> None:
        self.tokens.append((token, ttl))

    def upload_certificates(self, cert_key: str) -> None:
        if self._upload_error is not None:
            raise CommandExecutionError(
                self._upload_error, args_=("kubeadm", "init", "phase", "upload-certs")
            )
        self.cert_keys.append(cert_key)

    def ca_cert_hash(self) -> str:
        return self._ca_cert_hash
