"""
Unit tests for the bundle integrity utilities.

Tests:
- Checksum computation and normalization
- Session key parsing
- Verification of plain and encrypted bundles
- Every rejection path yields no payload
"""

import base64

import pytest

from backend.src.utils.crypto import (
    REJECTED,
    VERIFIED,
    BundleVerifier,
    compute_checksum,
    encrypt_bundle,
    generate_key_pair,
    normalize_checksum,
    parse_session_key,
)


PAYLOAD = b"PK\x03\x04 fake bundle archive contents" * 10


class TestChecksum:
    """Tests for compute_checksum() and normalize_checksum()."""

    def test_sha256_hex(self):
        # Known SHA-256 of b"abc"
        assert compute_checksum(b"abc") == (
            "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
        )

    def test_normalize_strips_prefix_and_lowercases(self):
        digest = compute_checksum(b"abc")
        assert normalize_checksum(f"sha256:{digest.upper()}") == digest

    @pytest.mark.parametrize("value", ["", "abc", "z" * 64, "sha1:" + "a" * 64, "a" * 63])
    def test_normalize_rejects_malformed(self, value):
        with pytest.raises(ValueError):
            normalize_checksum(value)


class TestParseSessionKey:
    """Tests for parse_session_key()."""

    def test_valid(self):
        iv = b"\x01" * 16
        wrapped = b"\x02" * 256
        key = f"{base64.b64encode(iv).decode()}:{base64.b64encode(wrapped).decode()}"

        assert parse_session_key(key) == (iv, wrapped)

    @pytest.mark.parametrize("value", [
        "",
        "no-separator",
        "a:b:c",
        ":abcd",
        "abcd:",
        "!!!!:abcd",
        f"{base64.b64encode(b'short').decode()}:{base64.b64encode(b'key').decode()}",
    ])
    def test_malformed(self, value):
        with pytest.raises(ValueError):
            parse_session_key(value)


class TestEncryptBundle:
    """Tests for encrypt_bundle()."""

    def test_ciphertext_differs_and_session_key_parses(self, rsa_key_pair):
        _, public_pem = rsa_key_pair
        ciphertext, session_key = encrypt_bundle(PAYLOAD, public_pem)

        assert ciphertext != PAYLOAD
        assert len(ciphertext) % 16 == 0
        iv, wrapped = parse_session_key(session_key)
        assert len(iv) == 16
        assert len(wrapped) == 256

    def test_fresh_key_per_call(self, rsa_key_pair):
        _, public_pem = rsa_key_pair
        first, key1 = encrypt_bundle(PAYLOAD, public_pem)
        second, key2 = encrypt_bundle(PAYLOAD, public_pem)

        assert first != second
        assert key1 != key2


class TestBundleVerifierPlain:
    """Verification of unencrypted bundles."""

    def test_verified_on_match(self):
        result = BundleVerifier().verify(PAYLOAD, compute_checksum(PAYLOAD))

        assert result.state == VERIFIED
        assert result.verified is True
        assert result.payload == PAYLOAD

    def test_prefixed_checksum_accepted(self):
        result = BundleVerifier().verify(PAYLOAD, "sha256:" + compute_checksum(PAYLOAD))

        assert result.verified is True

    def test_rejected_on_mismatch(self):
        result = BundleVerifier().verify(PAYLOAD + b"tampered", compute_checksum(PAYLOAD))

        assert result.state == REJECTED
        assert result.reason == "checksum_mismatch"
        assert result.payload is None

    def test_rejected_on_malformed_checksum(self):
        result = BundleVerifier().verify(PAYLOAD, "not-a-checksum")

        assert result.state == REJECTED
        assert result.reason == "malformed_checksum"


class TestBundleVerifierEncrypted:
    """Verification of encrypted bundles (checksum over ciphertext)."""

    def test_round_trip(self, rsa_key_pair):
        private_pem, public_pem = rsa_key_pair
        ciphertext, session_key = encrypt_bundle(PAYLOAD, public_pem)

        result = BundleVerifier(private_pem).verify(
            ciphertext, compute_checksum(ciphertext), session_key
        )

        assert result.verified is True
        assert result.payload == PAYLOAD

    def test_checksum_over_plaintext_is_rejected(self, rsa_key_pair):
        private_pem, public_pem = rsa_key_pair
        ciphertext, session_key = encrypt_bundle(PAYLOAD, public_pem)

        result = BundleVerifier(private_pem).verify(
            ciphertext, compute_checksum(PAYLOAD), session_key
        )

        assert result.reason == "checksum_mismatch"

    def test_missing_private_key(self, rsa_key_pair):
        _, public_pem = rsa_key_pair
        ciphertext, session_key = encrypt_bundle(PAYLOAD, public_pem)

        result = BundleVerifier().verify(ciphertext, compute_checksum(ciphertext), session_key)

        assert result.state == REJECTED
        assert result.reason == "missing_private_key"

    def test_malformed_session_key(self, rsa_key_pair):
        private_pem, public_pem = rsa_key_pair
        ciphertext, _ = encrypt_bundle(PAYLOAD, public_pem)

        result = BundleVerifier(private_pem).verify(
            ciphertext, compute_checksum(ciphertext), "garbage"
        )

        assert result.reason == "malformed_session_key"
        assert result.payload is None

    def test_wrong_private_key(self, rsa_key_pair):
        _, public_pem = rsa_key_pair
        other_private, _ = generate_key_pair()
        ciphertext, session_key = encrypt_bundle(PAYLOAD, public_pem)

        result = BundleVerifier(other_private).verify(
            ciphertext, compute_checksum(ciphertext), session_key
        )

        assert result.state == REJECTED
        assert result.reason == "decryption_failed"
        assert result.payload is None

    def test_wrong_iv_breaks_padding_or_payload(self, rsa_key_pair):
        private_pem, public_pem = rsa_key_pair
        ciphertext, session_key = encrypt_bundle(PAYLOAD, public_pem)
        _, wrapped = session_key.split(":")
        forged = f"{base64.b64encode(bytes(16)).decode()}:{wrapped}"

        result = BundleVerifier(private_pem).verify(
            ciphertext, compute_checksum(ciphertext), forged
        )

        # CBC with the wrong IV only garbles the first block
        assert result.payload != PAYLOAD

    def test_non_rsa_private_key_rejected(self):
        from cryptography.hazmat.primitives import serialization
        from cryptography.hazmat.primitives.asymmetric import ec

        ec_pem = ec.generate_private_key(ec.SECP256R1()).private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
        with pytest.raises(ValueError):
            BundleVerifier(ec_pem)
