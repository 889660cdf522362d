"""CredentialLedger use case for issuing and checking join credentials."""

from __future__ import annotations

import secrets
import string
from dataclasses import replace

from cpjoin.adapters.ports import (
    CredentialIssuerPort,
    LoggingPort,
    RealTimeProvider,
    TimeProvider,
)
from cpjoin.domain.credentials import (
    CredentialKind,
    CredentialValidation,
    CredentialWindow,
)
from cpjoin.domain.exceptions import CPJoinConfigError, CredentialExpiredError
from cpjoin.domain.settings import CredentialSettings

_TOKEN_ALPHABET = string.ascii_lowercase + string.digits


def generate_token() -> str:
    """Generate a bootstrap token in ``[a-z0-9]{6}.[a-z0-9]{16}`` form."""
    token_id = "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(6))
    token_secret = "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(16))
    return f"{token_id}.{token_secret}"


def generate_cert_key() -> str:
    """Generate a 32-byte certificate key, hex encoded."""
    return secrets.token_hex(32)


class CredentialLedger:
    """Issues credential windows and reports their expiry.

    Issuing is done once on the founding node; validation is a pure clock
    comparison usable on any node. The ledger never revokes: several
    windows may be live at once and each is judged only by its own
    timestamps.
    """

    def __init__(
        self,
        issuer: CredentialIssuerPort | None = None,
        settings: CredentialSettings | None = None,
        time_provider: TimeProvider | None = None,
        logger: LoggingPort | None = None,
    ) -> None:
        """Initialize the ledger.

        Args:
            issuer: Registers credentials with the cluster. Only needed by
                    issue() and reissue_cert_key().
            settings: Token and cert key lifetimes.
            time_provider: Clock used for stamping and validation.
            logger: Optional logging port.
        """
        self._issuer = issuer
        self._settings = settings or CredentialSettings()
        self._time_provider = time_provider or RealTimeProvider()
        self._logger = logger

    def _require_issuer(self) -> CredentialIssuerPort:
        if self._issuer is None:
            raise CPJoinConfigError("issuing credentials requires a credential issuer")
        return self._issuer

    def issue(self) -> CredentialWindow:
        """Issue a new credential window.

        Expiries are stamped before registration, so the recorded windows
        never outlast the ones the cluster enforces.

        Raises:
            CPJoinConfigError: If no issuer is configured.
            CommandExecutionError: If the issuer fails to register the
                token or upload certificates.
        """
        issuer = self._require_issuer()
        now = self._time_provider.get_time_seconds()
        token = generate_token()
        cert_key = generate_cert_key()

        issuer.register_token(token, self._settings.token_ttl)
        issuer.upload_certificates(cert_key)
        window = CredentialWindow(
            token=token,
            token_expires_at=now + self._settings.token_ttl,
            cert_key=cert_key,
            cert_key_expires_at=now + self._settings.cert_key_ttl,
            issued_at=now,
            ca_cert_hash=issuer.ca_cert_hash(),
        )
        if self._logger is not None:
            self._logger.info(
                f"issued credential window, token valid {self._settings.token_ttl:.0f}s, "
                f"cert key valid {self._settings.cert_key_ttl:.0f}s"
            )
        return window

    def reissue_cert_key(self, window: CredentialWindow) -> CredentialWindow:
        """Upload certificates under a fresh key, keeping the token.

        The cheap recovery path when only the cert key has expired. The new
        key expiry is clamped to the token expiry.

        Raises:
            CredentialExpiredError: If the token has expired too; a new
                window must be issued instead.
            CPJoinConfigError: If no issuer is configured.
            CommandExecutionError: If the upload fails.
        """
        issuer = self._require_issuer()
        now = self._time_provider.get_time_seconds()
        if now > window.token_expires_at:
            raise CredentialExpiredError(
                "bootstrap token expired, issue a new credential window"
            )

        cert_key = generate_cert_key()
        issuer.upload_certificates(cert_key)
        new_window = replace(
            window,
            cert_key=cert_key,
            cert_key_expires_at=min(
                now + self._settings.cert_key_ttl, window.token_expires_at
            ),
        )
        if self._logger is not None:
            self._logger.info("re-uploaded certificates with a new certificate key")
        return new_window

    def validate(
        self, window: CredentialWindow, now: float | None = None
    ) -> CredentialValidation:
        """Check a window against the clock.

        An instant equal to an expiry is still valid. When both credentials
        have expired the result names TOKEN, since only a new window
        recovers from that.

        Args:
            window: The window to check.
            now: Instant to check against. Defaults to the current time.
        """
        if now is None:
            now = self._time_provider.get_time_seconds()

        if now > window.token_expires_at:
            return CredentialValidation.expired_for(CredentialKind.TOKEN, now)

        if now > window.cert_key_expires_at:
            return CredentialValidation.expired_for(CredentialKind.CERT_KEY, now)

        return CredentialValidation.valid(now)
