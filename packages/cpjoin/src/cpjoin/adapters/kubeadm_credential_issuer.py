"""kubeadm-based implementation of the CredentialIssuerPort.

Runs on the founding node. Registers a pre-generated bootstrap token,
uploads the control-plane certificates encrypted with a pre-generated key
and derives the CA discovery hash, so the joining node receives structured
values instead of a generated join script.
"""

from __future__ import annotations

import base64
import binascii
import hashlib

from cpjoin.adapters.command_runner import SubprocessCommandRunner, run_checked
from cpjoin.adapters.ports import CommandRunnerPort, CredentialIssuerPort
from cpjoin.domain.exceptions import CommandExecutionError

_PEM_BEGIN = "-----BEGIN PUBLIC KEY-----"
_PEM_END = "-----END PUBLIC KEY-----"


def _format_ttl(ttl: float) -> str:
    return f"{int(ttl)}s"


class KubeadmCredentialIssuer:
    """CredentialIssuerPort backed by kubeadm and openssl."""

    def __init__(
        self,
        runner: CommandRunnerPort,
        ca_cert_path: str = "/etc/kubernetes/pki/ca.crt",
        timeout: float = 120.0,
    ) -> None:
        """Initialize the issuer.

        Args:
            runner: Command runner used to invoke kubeadm and openssl.
            ca_cert_path: Cluster CA certificate on the founding node.
            timeout: Seconds before a single command is abandoned.
        """
        self._runner = runner
        self._ca_cert_path = ca_cert_path
        self._timeout = timeout

    def register_token(self, token: str, ttl: float) -> None:
        """Create the bootstrap token with ``kubeadm token create``.

        Raises:
            CommandExecutionError: If kubeadm fails.
        """
        run_checked(
            self._runner,
            ["kubeadm", "token", "create", token, "--ttl", _format_ttl(ttl)],
            timeout=self._timeout,
        )

    def upload_certificates(self, cert_key: str) -> None:
        """Upload control-plane certificates encrypted with cert_key.

        kubeadm deletes the uploaded certificates after two hours; the cert
        key expiry of the credential window reflects that.

        Raises:
            CommandExecutionError: If kubeadm fails.
        """
        run_checked(
            self._runner,
            [
                "kubeadm",
                "init",
                "phase",
                "upload-certs",
                "--upload-certs",
                "--certificate-key",
                cert_key,
            ],
            timeout=self._timeout,
        )

    def ca_cert_hash(self) -> str:
        """Return ``sha256:<hex>`` of the CA's DER-encoded public key.

        Raises:
            CommandExecutionError: If openssl fails or prints no public key.
        """
        args = ["openssl", "x509", "-pubkey", "-noout", "-in", self._ca_cert_path]
        result = run_checked(self._runner, args, timeout=self._timeout)

        body = result.stdout.partition(_PEM_BEGIN)[2].partition(_PEM_END)[0]
        try:
            der = base64.b64decode("".join(body.split()), validate=True)
        except binascii.Error as e:
            raise CommandExecutionError(
                f"openssl printed an unreadable public key: {e}", args_=tuple(args)
            ) from e
        if not der:
            raise CommandExecutionError(
                f"no public key found in {self._ca_cert_path}", args_=tuple(args)
            )
        return f"sha256:{hashlib.sha256(der).hexdigest()}"


# Runtime protocol check
assert isinstance(
    KubeadmCredentialIssuer(SubprocessCommandRunner()), CredentialIssuerPort
)
