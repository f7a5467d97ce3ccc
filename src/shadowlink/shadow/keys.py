"""SSH key material and credentials for shadow pods.

A fresh RSA key pair is generated for every new shadow; the private key is
kept on local disk and both halves are stored in the shadow's config map so
that other clients sharing the shadow can recover them.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import NamedTuple

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from kubernetes import client

from shadowlink.observability._logging import get_logger
from shadowlink.shadow.models import SSH_AUTH_KEY, SSH_AUTH_PRIVATE_KEY


log = get_logger(__name__)

RSA_KEY_SIZE = 2048
RSA_PUBLIC_EXPONENT = 65537
PRIVATE_KEY_SUFFIX = ".key"

DEFAULT_SSH_HOST = "127.0.0.1"
DEFAULT_SSH_PORT = 2222
DEFAULT_SSH_USERNAME = "root"


@dataclass(frozen=True)
class SSHKeyPair:
    """Key material of a shadow pod."""

    private_key: bytes
    public_key: bytes
    private_key_path: str


@dataclass(frozen=True)
class SSHCredential:
    """How the local client authenticates against a shadow pod."""

    private_key_path: str
    remote_host: str = DEFAULT_SSH_HOST
    port: int = DEFAULT_SSH_PORT
    username: str = DEFAULT_SSH_USERNAME


class ShadowResult(NamedTuple):
    """Connection details of a ready shadow pod."""

    pod_ip: str
    pod_name: str
    credential: SSHCredential


def private_key_path(name: str, key_dir: str | os.PathLike[str]) -> str:
    """Local private key path for the shadow called ``name``."""
    return str(Path(key_dir).expanduser() / f"{name}{PRIVATE_KEY_SUFFIX}")


def write_private_key(path: str | os.PathLike[str], data: bytes) -> None:
    """Write (or overwrite) a private key file readable only by its owner."""
    key_path = Path(path)
    key_path.parent.mkdir(parents=True, exist_ok=True)
    if key_path.exists():
        key_path.chmod(0o600)
    key_path.write_bytes(data)
    if os.name != "nt":
        key_path.chmod(0o600)


def generate_key_pair(path: str | os.PathLike[str]) -> SSHKeyPair:
    """Generate a new RSA key pair and store its private half at ``path``.

    Returns:
        SSHKeyPair: PEM private key and OpenSSH ``authorized_keys`` line.
    """
    key = rsa.generate_private_key(
        public_exponent=RSA_PUBLIC_EXPONENT,
        key_size=RSA_KEY_SIZE,
    )
    private_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_line = key.public_key().public_bytes(
        encoding=serialization.Encoding.OpenSSH,
        format=serialization.PublicFormat.OpenSSH,
    )

    write_private_key(path, private_pem)
    log.debug("ssh_key_pair_generated", path=str(path))
    return SSHKeyPair(
        private_key=private_pem,
        public_key=public_line + b"\n",
        private_key_path=str(path),
    )


def key_pair_from_config_map(data: dict[str, str], path: str) -> SSHKeyPair:
    """Rebuild key material from the fields stored in a shadow config map."""
    return SSHKeyPair(
        private_key=data.get(SSH_AUTH_PRIVATE_KEY, "").encode(),
        public_key=data.get(SSH_AUTH_KEY, "").encode(),
        private_key_path=path,
    )


def build_shadow_result(
    pod: client.V1Pod,
    key_pair: SSHKeyPair,
    *,
    remote_host: str = DEFAULT_SSH_HOST,
    port: int = DEFAULT_SSH_PORT,
    username: str = DEFAULT_SSH_USERNAME,
) -> ShadowResult:
    """Compose pod address, pod name and credential. No I/O."""
    pod_ip = pod.status.pod_ip if pod.status and pod.status.pod_ip else ""
    credential = SSHCredential(
        private_key_path=key_pair.private_key_path,
        remote_host=remote_host,
        port=port,
        username=username,
    )
    return ShadowResult(pod_ip=pod_ip, pod_name=pod.metadata.name, credential=credential)


__all__ = [
    "SSHCredential",
    "SSHKeyPair",
    "ShadowResult",
    "build_shadow_result",
    "generate_key_pair",
    "key_pair_from_config_map",
    "private_key_path",
    "write_private_key",
]
