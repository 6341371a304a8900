"""
Bundle integrity and encryption utilities.

Implements both sides of the bundle integrity contract:

- Publisher side: compute_checksum() over the artifact bytes that will be
  stored, and encrypt_bundle() for encrypted releases.
- Device side: BundleVerifier, which takes the downloaded bytes plus the
  checksum and optional session key from an update response and either
  verifies (returning the usable payload) or rejects the artifact.

Checksum:
    Lowercase SHA-256 hex digest of the bytes exactly as stored and
    downloaded. For encrypted bundles that is the ciphertext, so the
    device verifies before it decrypts. A "sha256:" prefix is accepted
    on input and stripped.

Session key:
    "<base64 IV>:<base64 wrapped key>". The content key is a random
    AES-256 key wrapped with the device's RSA public key (OAEP, SHA-256).
    The payload is AES-256-CBC with PKCS7 padding.
"""

import base64
import binascii
import hashlib
import hmac
import os
import re
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from cryptography.hazmat.primitives import hashes, padding, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric import padding as asym_padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes


CHECKSUM_PATTERN = re.compile(r'^(sha256:)?[0-9a-fA-F]{64}$')

AES_KEY_BYTES = 32
AES_BLOCK_BYTES = 16

VERIFIED = "verified"
REJECTED = "rejected"

PemKey = Union[str, bytes]


def _oaep() -> asym_padding.OAEP:
    return asym_padding.OAEP(
        mgf=asym_padding.MGF1(algorithm=hashes.SHA256()),
        algorithm=hashes.SHA256(),
        label=None,
    )


def _as_bytes(value: PemKey) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


def compute_checksum(data: bytes) -> str:
    """
    Compute the checksum of a bundle artifact.

    Args:
        data: Artifact bytes as stored (ciphertext for encrypted bundles)

    Returns:
        Lowercase SHA-256 hex digest (64 characters)
    """
    return hashlib.sha256(data).hexdigest()


def normalize_checksum(value: str) -> str:
    """
    Validate a checksum string and return it in canonical form.

    Raises:
        ValueError: If value is not a 64-char hex digest (optionally sha256:-prefixed)
    """
    if not value or not CHECKSUM_PATTERN.match(value.strip()):
        raise ValueError(
            "Checksum must be a 64-character hex string, optionally prefixed with 'sha256:'"
        )
    value = value.strip().lower()
    if value.startswith("sha256:"):
        value = value[len("sha256:"):]
    return value


def parse_session_key(session_key: str) -> Tuple[bytes, bytes]:
    """
    Split a session key into its IV and wrapped-key components.

    Args:
        session_key: "<base64 IV>:<base64 wrapped key>"

    Returns:
        Tuple of (iv, wrapped_key) raw bytes

    Raises:
        ValueError: If the value is not two non-empty base64 parts or the
            IV is not one AES block long
    """
    if not session_key or session_key.count(":") != 1:
        raise ValueError("Session key must have the form '<iv>:<encrypted key>'")

    iv_part, key_part = session_key.split(":")
    if not iv_part or not key_part:
        raise ValueError("Session key components must not be empty")

    try:
        iv = base64.b64decode(iv_part, validate=True)
        wrapped_key = base64.b64decode(key_part, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Session key is not valid base64: {e}")

    if len(iv) != AES_BLOCK_BYTES:
        raise ValueError(f"Session key IV must be {AES_BLOCK_BYTES} bytes, got {len(iv)}")

    return iv, wrapped_key


def generate_key_pair(key_size: int = 2048) -> Tuple[bytes, bytes]:
    """
    Generate an RSA key pair for bundle encryption.

    The public key is given to the publisher, the private key is
    provisioned into the app.

    Returns:
        Tuple of (private_key_pem, public_key_pem)
    """
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return private_pem, public_pem


def encrypt_bundle(plaintext: bytes, public_key_pem: PemKey) -> Tuple[bytes, str]:
    """
    Encrypt a bundle for publishing.

    Args:
        plaintext: Bundle archive bytes
        public_key_pem: RSA public key matching the key provisioned in the app

    Returns:
        Tuple of (ciphertext, session_key). Store the ciphertext and
        checksum it with compute_checksum(); publish the session key
        alongside.
    """
    public_key = serialization.load_pem_public_key(_as_bytes(public_key_pem))
    if not isinstance(public_key, rsa.RSAPublicKey):
        raise ValueError("Bundle encryption requires an RSA public key")

    content_key = os.urandom(AES_KEY_BYTES)
    iv = os.urandom(AES_BLOCK_BYTES)

    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(plaintext) + padder.finalize()

    encryptor = Cipher(algorithms.AES(content_key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()

    wrapped_key = public_key.encrypt(content_key, _oaep())
    session_key = (
        f"{base64.b64encode(iv).decode('ascii')}:"
        f"{base64.b64encode(wrapped_key).decode('ascii')}"
    )
    return ciphertext, session_key


@dataclass(frozen=True)
class VerificationResult:
    """Terminal state of one download verification attempt."""

    state: str
    payload: Optional[bytes] = None
    reason: Optional[str] = None

    @property
    def verified(self) -> bool:
        return self.state == VERIFIED

    @classmethod
    def accept(cls, payload: bytes) -> "VerificationResult":
        return cls(state=VERIFIED, payload=payload)

    @classmethod
    def reject(cls, reason: str) -> "VerificationResult":
        return cls(state=REJECTED, reason=reason)


class BundleVerifier:
    """
    Verifies downloaded bundle artifacts on the device side.

    A rejected result never carries a payload, so a caller that only
    applies result.payload cannot apply a rejected artifact.

    Usage:
        verifier = BundleVerifier(private_key_pem)
        result = verifier.verify(downloaded, update["checksum"], update.get("sessionKey"))
        if result.verified:
            apply(result.payload)
    """

    def __init__(self, private_key_pem: Optional[PemKey] = None, password: Optional[bytes] = None):
        """
        Args:
            private_key_pem: RSA private key provisioned in the app. Only
                needed for encrypted bundles.
            password: Optional PEM password

        Raises:
            ValueError: If the key cannot be loaded or is not an RSA key
        """
        self._private_key = None
        if private_key_pem is not None:
            key = serialization.load_pem_private_key(_as_bytes(private_key_pem), password=password)
            if not isinstance(key, rsa.RSAPrivateKey):
                raise ValueError("Bundle decryption requires an RSA private key")
            self._private_key = key

    def verify(
        self,
        data: bytes,
        checksum: str,
        session_key: Optional[str] = None,
    ) -> VerificationResult:
        """
        Verify a downloaded artifact.

        Args:
            data: Downloaded bytes
            checksum: Checksum from the update response
            session_key: Session key from the update response, if any

        Returns:
            VerificationResult in state "verified" (payload = plaintext
            bundle) or "rejected" (reason set)
        """
        try:
            expected = normalize_checksum(checksum)
        except ValueError:
            return VerificationResult.reject("malformed_checksum")

        if not hmac.compare_digest(compute_checksum(data), expected):
            return VerificationResult.reject("checksum_mismatch")

        if not session_key:
            return VerificationResult.accept(data)

        if self._private_key is None:
            return VerificationResult.reject("missing_private_key")

        try:
            iv, wrapped_key = parse_session_key(session_key)
        except ValueError:
            return VerificationResult.reject("malformed_session_key")

        try:
            content_key = self._private_key.decrypt(wrapped_key, _oaep())
        except ValueError:
            return VerificationResult.reject("decryption_failed")

        if len(content_key) != AES_KEY_BYTES:
            return VerificationResult.reject("decryption_failed")

        try:
            decryptor = Cipher(algorithms.AES(content_key), modes.CBC(iv)).decryptor()
            padded = decryptor.update(data) + decryptor.finalize()
            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            plaintext = unpadder.update(padded) + unpadder.finalize()
        except ValueError:
            return VerificationResult.reject("decryption_failed")

        return VerificationResult.accept(plaintext)
