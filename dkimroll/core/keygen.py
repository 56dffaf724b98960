"""
Built-in DKIM key generator used as the default key generation command.
"""

from __future__ import annotations

import base64
import logging
import os
from pathlib import Path  # noqa: TC003

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from dkimroll.common.config import Config
from dkimroll.common.exceptions import KeyGenerationError

logger = logging.getLogger(__name__)

RSA_PUBLIC_EXPONENT = 65537
TXT_CHUNK_LEN = 250


class KeyGenerator:
    """Key generator writing a PEM private key and returning its DKIM record."""

    def __init__(self, bits: int = 2048, config: Config | None = None):
        self.bits = bits
        self.config = config or Config()

    @staticmethod
    def algorithm_for(key_type: str) -> str:
        """Map a configured key type name to the DKIM ``k=`` tag."""
        name = key_type.lower()
        if name == "ed25519":
            return "ed25519"
        if name.startswith("rsa"):
            return "rsa"
        msg = f"Unsupported key type: {key_type}"
        raise KeyGenerationError(msg)

    def generate(
        self, key_type: str, domain: str, selector: str, key_path: Path
    ) -> str:
        """Generate a key, save the private half and return the DNS record."""
        algorithm = self.algorithm_for(key_type)
        logger.info("Generating %s key %s for %s", algorithm, selector, domain)

        if algorithm == "ed25519":
            ed_key = Ed25519PrivateKey.generate()
            private_pem = ed_key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.PKCS8,
                encryption_algorithm=serialization.NoEncryption(),
            )
            public_bytes = ed_key.public_key().public_bytes(
                encoding=serialization.Encoding.Raw,
                format=serialization.PublicFormat.Raw,
            )
        else:
            rsa_key = rsa.generate_private_key(
                public_exponent=RSA_PUBLIC_EXPONENT, key_size=self.bits
            )
            private_pem = rsa_key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.PKCS8,
                encryption_algorithm=serialization.NoEncryption(),
            )
            public_bytes = rsa_key.public_key().public_bytes(
                encoding=serialization.Encoding.DER,
                format=serialization.PublicFormat.SubjectPublicKeyInfo,
            )

        self._write_private_key(key_path, private_pem)
        public_b64 = base64.b64encode(public_bytes).decode("ascii")
        return self.format_record(selector, domain, algorithm, public_b64)

    def _write_private_key(self, key_path: Path, private_pem: bytes) -> None:
        try:
            key_path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(
                key_path,
                os.O_WRONLY | os.O_CREAT | os.O_TRUNC,
                self.config.PRIVATE_KEY_MODE,
            )
            with os.fdopen(fd, "wb") as f:
                f.write(private_pem)
        except OSError as err:
            msg = f"Cannot write private key {key_path}: {err}"
            raise KeyGenerationError(msg) from err
        logger.info("Private key saved to %s", key_path)

    @staticmethod
    def format_record(
        selector: str, domain: str, algorithm: str, public_b64: str
    ) -> str:
        """Zone file TXT record, split into strings short enough for DNS."""
        chunks = [
            public_b64[i : i + TXT_CHUNK_LEN]
            for i in range(0, len(public_b64), TXT_CHUNK_LEN)
        ]
        parts = [f'"v=DKIM1; k={algorithm}; "', f'"p={chunks[0]}"']
        parts.extend(f'"{chunk}"' for chunk in chunks[1:])
        body = "\n\t  ".join(parts)
        return (
            f"{selector}._domainkey\tIN\tTXT\t( {body} )"
            f"  ; ----- DKIM key {selector} for {domain}\n"
        )
