"""Key pair material generation for KeyPair resources."""

import base64
import hashlib
from dataclasses import dataclass, field
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519, rsa
from ..utils.errors import ValidationError
from ..utils.logging import get_logger

logger = get_logger("secrets.keygen")

RSA_KEY_SIZE = 4096
SUPPORTED_ALGORITHMS = ("rsa", "ed25519")


@dataclass(frozen=True)
class SecretMaterial:
    """Generated key pair. The private key never leaves the secret sink."""
    private_key: bytes = field(repr=False)
    public_key: str
    fingerprint: str
    algorithm: str


def generate_key_pair(algorithm: str = "rsa") -> SecretMaterial:
    """
    Generate asymmetric key material.

    Args:
        algorithm: "rsa" (4096 bit) or "ed25519"

    Returns:
        SecretMaterial with an OpenSSH private key, OpenSSH public key
        and a SHA256 fingerprint in ssh-keygen format
    """
    if algorithm == "rsa":
        key = rsa.generate_private_key(65537, RSA_KEY_SIZE)
    elif algorithm == "ed25519":
        key = ed25519.Ed25519PrivateKey.generate()
    else:
        raise ValidationError(
            f"Unsupported key algorithm '{algorithm}' (use one of: {', '.join(SUPPORTED_ALGORITHMS)})"
        )

    private_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.OpenSSH,
        serialization.NoEncryption())
    public_ssh = key.public_key().public_bytes(
        serialization.Encoding.OpenSSH,
        serialization.PublicFormat.OpenSSH).decode('ascii')

    material = SecretMaterial(
        private_key=private_pem,
        public_key=public_ssh,
        fingerprint=public_key_fingerprint(public_ssh),
        algorithm=algorithm,
    )
    logger.debug(f"Generated {algorithm} key pair {material.fingerprint}")
    return material


def public_key_fingerprint(public_key: str) -> str:
    """SHA256 fingerprint of an OpenSSH public key, as printed by ssh-keygen -l."""
    blob = base64.b64decode(public_key.split()[1])
    digest = base64.b64encode(hashlib.sha256(blob).digest()).decode('ascii').rstrip("=")
    return f"SHA256:{digest}"
