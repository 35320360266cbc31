# ecies.py
# Hybrid public-key encryption for tree node payloads.
#
# Wire layout (fixed, versionless, no length prefixes):
#
#   ephemeral_pubkey(65) ‖ nonce(12) ‖ ciphertext(n) ‖ gcm_tag(16) ‖ mac(32)
#
# ECDH on secp256k1 (shared point, SEC1-compressed, 33 bytes)
# → HKDF-SHA512 (two keys, distinct info strings)
# → AES-256-GCM for confidentiality → HMAC-SHA256 over (nonce ‖ ciphertext).
# The ciphertext length is recovered by subtraction from both ends.
#
# Only two payload shapes exist: a single UTF-8 character (≤ 4 bytes) or a
# compact JSON array of two 0x-prefixed node hashes (exactly 139 bytes).

import hashlib
import hmac
import json
import os
import re

import coincurve
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from cipher_press.errors import (
    BlobFormatError,
    IntegrityError,
    KeyFormatError,
    PayloadShapeError,
    PayloadSizeError,
)

EPHEMERAL_PUBKEY_SIZE = 65
NONCE_SIZE = 12
AUTH_TAG_SIZE = 16
MAC_SIZE = 32
KEY_SIZE = 32
PRIVATE_KEY_SIZE = 32

OVERHEAD_SIZE = EPHEMERAL_PUBKEY_SIZE + NONCE_SIZE + AUTH_TAG_SIZE + MAC_SIZE
MIN_BLOB_SIZE = OVERHEAD_SIZE + 1

MAX_CHAR_SIZE = 4
MAX_HASH_PAIR_SIZE = 139  # ["0x<64 hex>","0x<64 hex>"]

ENCRYPTION_INFO = b"DECX_ECIES_AES_KEY"
MAC_INFO = b"DECX_ECIES_MAC_KEY"

SECP256K1_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

_CURVE = ec.SECP256K1()
_PAIR_ITEM_RE = re.compile(r"0x[0-9a-fA-F]{64}")


# ---------------------------------------------------------------------------
# Key helpers
# ---------------------------------------------------------------------------


def _strip_hex(value: str) -> bytes:
    if not isinstance(value, str):
        raise KeyFormatError("Key must be a hex string.")
    raw = value[2:] if value.startswith("0x") else value
    try:
        return bytes.fromhex(raw)
    except ValueError as exc:
        raise KeyFormatError(f"Key is not valid hex: {exc}") from exc


def _load_private_key(private_key_hex: str) -> ec.EllipticCurvePrivateKey:
    if not isinstance(private_key_hex, str) or not private_key_hex.startswith("0x"):
        raise KeyFormatError("Private key must be a hex string starting with 0x.")
    raw = _strip_hex(private_key_hex)
    if len(raw) != PRIVATE_KEY_SIZE:
        raise KeyFormatError(f"Private key must be {PRIVATE_KEY_SIZE} bytes, got {len(raw)}.")
    scalar = int.from_bytes(raw, "big")
    if not 0 < scalar < SECP256K1_ORDER:
        raise KeyFormatError("Private key is out of range for secp256k1.")
    try:
        return ec.derive_private_key(scalar, _CURVE)
    except ValueError as exc:
        raise KeyFormatError(f"Private key is out of range for secp256k1: {exc}") from exc


def load_public_key(public_key_hex: str) -> ec.EllipticCurvePublicKey:
    """Decode a SEC1-encoded secp256k1 public key, with or without 0x."""
    raw = _strip_hex(public_key_hex)
    try:
        return ec.EllipticCurvePublicKey.from_encoded_point(_CURVE, raw)
    except ValueError as exc:
        raise KeyFormatError(f"Public key is not a secp256k1 point: {exc}") from exc


def _public_bytes(public_key: ec.EllipticCurvePublicKey) -> bytes:
    return public_key.public_bytes(
        serialization.Encoding.X962,
        serialization.PublicFormat.UncompressedPoint,
    )


def public_key_from_private(private_key_hex: str) -> str:
    """Uncompressed 0x-prefixed public key for a 0x-prefixed private key."""
    return "0x" + _public_bytes(_load_private_key(private_key_hex).public_key()).hex()


def generate_keypair() -> tuple[str, str]:
    """Fresh secp256k1 key pair as (private_key_hex, public_key_hex)."""
    private_key = ec.generate_private_key(_CURVE)
    secret = private_key.private_numbers().private_value.to_bytes(PRIVATE_KEY_SIZE, "big")
    return "0x" + secret.hex(), "0x" + _public_bytes(private_key.public_key()).hex()


# ---------------------------------------------------------------------------
# Payload shapes
# ---------------------------------------------------------------------------


def encode_pair(left: str, right: str) -> str:
    """Compact JSON for a pair payload. Always exactly MAX_HASH_PAIR_SIZE bytes."""
    return json.dumps([left, right], separators=(",", ":"))


def decode_pair(text: str) -> tuple[str, str]:
    """Parse and validate a pair payload. Raises PayloadShapeError."""
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        raise PayloadShapeError(f"Invalid hash pair JSON: {exc}") from exc

    if (
        not isinstance(parsed, list)
        or len(parsed) != 2
        or not all(isinstance(h, str) and _PAIR_ITEM_RE.fullmatch(h) for h in parsed)
    ):
        raise PayloadShapeError("Hash pair must be a JSON array of two 0x-prefixed 32-byte hex hashes.")
    return parsed[0].lower(), parsed[1].lower()


def _validate_payload(content: str) -> bytes:
    """
    Classify and size-check a plaintext payload.

    Anything up to MAX_CHAR_SIZE bytes is a character, including a lone "[".
    Longer payloads must be a hash pair.
    """
    if not isinstance(content, str):
        raise PayloadShapeError(f"Payload must be str, got {type(content).__name__}.")

    data = content.encode("utf-8")
    if not data:
        raise PayloadSizeError("Payload is empty.")
    if len(data) <= MAX_CHAR_SIZE:
        return data

    if not content.startswith("["):
        raise PayloadSizeError(
            f"Character size {len(data)} exceeds maximum UTF-8 size {MAX_CHAR_SIZE}."
        )
    if len(data) > MAX_HASH_PAIR_SIZE:
        raise PayloadSizeError(
            f"Hash pair size {len(data)} exceeds maximum allowed size {MAX_HASH_PAIR_SIZE}."
        )
    decode_pair(content)
    return data


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def shared_secret(
    private_key: ec.EllipticCurvePrivateKey, public_key: ec.EllipticCurvePublicKey
) -> bytes:
    """
    ECDH shared point as 33 SEC1-compressed bytes (parity prefix ‖ x).

    This is the HKDF input, parity prefix included.
    """
    scalar = private_key.private_numbers().private_value.to_bytes(PRIVATE_KEY_SIZE, "big")
    point = coincurve.PublicKey(_public_bytes(public_key)).multiply(scalar)
    return point.format(compressed=True)


def _derive_keys(secret: bytes) -> tuple[bytes, bytes]:
    encryption_key = HKDF(
        algorithm=hashes.SHA512(), length=KEY_SIZE, salt=None, info=ENCRYPTION_INFO
    ).derive(secret)
    mac_key = HKDF(
        algorithm=hashes.SHA512(), length=KEY_SIZE, salt=None, info=MAC_INFO
    ).derive(secret)
    return encryption_key, mac_key


def _compute_mac(mac_key: bytes, nonce: bytes, ciphertext: bytes) -> bytes:
    return hmac.new(mac_key, nonce + ciphertext, hashlib.sha256).digest()


class ECIESEngine:
    """
    Encrypts node payloads for any recipient and decrypts payloads sealed
    to its own key.

    Example:
        private_key, public_key = generate_keypair()
        engine = ECIESEngine(private_key)
        blob = engine.encrypt("a", public_key)
        assert engine.decrypt_character(blob) == "a"
    """

    def __init__(self, private_key_hex: str) -> None:
        self._private_key = _load_private_key(private_key_hex)

    @property
    def public_key(self) -> str:
        return "0x" + _public_bytes(self._private_key.public_key()).hex()

    # ------------------------------------------------------------------
    # Encryption
    # ------------------------------------------------------------------

    def encrypt(self, content: str, recipient_public_key_hex: str) -> bytes:
        """
        Seal a character or hash-pair payload for the recipient.

        Output is always OVERHEAD_SIZE + len(content.encode()) bytes.
        Raises PayloadSizeError / PayloadShapeError / KeyFormatError.
        """
        plaintext = _validate_payload(content)
        recipient = load_public_key(recipient_public_key_hex)

        ephemeral = ec.generate_private_key(_CURVE)
        encryption_key, mac_key = _derive_keys(shared_secret(ephemeral, recipient))

        nonce = os.urandom(NONCE_SIZE)
        sealed = AESGCM(encryption_key).encrypt(nonce, plaintext, None)
        ciphertext, auth_tag = sealed[:-AUTH_TAG_SIZE], sealed[-AUTH_TAG_SIZE:]
        mac = _compute_mac(mac_key, nonce, ciphertext)

        return _public_bytes(ephemeral.public_key()) + nonce + ciphertext + auth_tag + mac

    # ------------------------------------------------------------------
    # Decryption
    # ------------------------------------------------------------------

    def decrypt_raw(self, blob: bytes) -> bytes:
        """
        Authenticate and decrypt a blob without checking the payload shape.

        The MAC is verified before AES-GCM is attempted. Any mismatch raises
        IntegrityError; a blob too short for the layout raises BlobFormatError.
        """
        blob = bytes(blob)
        if len(blob) < MIN_BLOB_SIZE:
            raise BlobFormatError(
                f"Invalid encrypted data format: {len(blob)} bytes, need at least {MIN_BLOB_SIZE}."
            )

        ephemeral_bytes = blob[:EPHEMERAL_PUBKEY_SIZE]
        nonce = blob[EPHEMERAL_PUBKEY_SIZE:EPHEMERAL_PUBKEY_SIZE + NONCE_SIZE]
        ciphertext = blob[EPHEMERAL_PUBKEY_SIZE + NONCE_SIZE:-(AUTH_TAG_SIZE + MAC_SIZE)]
        auth_tag = blob[-(AUTH_TAG_SIZE + MAC_SIZE):-MAC_SIZE]
        mac = blob[-MAC_SIZE:]

        if ephemeral_bytes[0] != 0x04:
            raise IntegrityError("Ephemeral public key is not an uncompressed point.")
        try:
            ephemeral = ec.EllipticCurvePublicKey.from_encoded_point(_CURVE, ephemeral_bytes)
        except ValueError as exc:
            raise IntegrityError(f"Ephemeral public key is corrupt: {exc}") from exc

        encryption_key, mac_key = _derive_keys(shared_secret(self._private_key, ephemeral))

        if not hmac.compare_digest(_compute_mac(mac_key, nonce, ciphertext), mac):
            raise IntegrityError("Invalid MAC: message may have been tampered with.")

        try:
            return AESGCM(encryption_key).decrypt(nonce, ciphertext + auth_tag, None)
        except InvalidTag as exc:
            raise IntegrityError("AES-GCM authentication tag mismatch.") from exc

    def decrypt_character(self, blob: bytes) -> str:
        """Decrypt a blob that must hold a single character payload."""
        plaintext = self.decrypt_raw(blob)
        if len(plaintext) > MAX_CHAR_SIZE:
            raise PayloadShapeError(
                f"Expected a character but decrypted {len(plaintext)} bytes."
            )
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise PayloadShapeError("Decrypted character is not valid UTF-8.") from exc

    def decrypt_pair(self, blob: bytes) -> tuple[str, str]:
        """Decrypt a blob that must hold a hash-pair payload."""
        plaintext = self.decrypt_raw(blob)
        if len(plaintext) <= MAX_CHAR_SIZE:
            raise PayloadShapeError("Expected a hash pair but got a character.")
        try:
            text = plaintext.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise PayloadShapeError("Decrypted hash pair is not valid UTF-8.") from exc
        return decode_pair(text)
