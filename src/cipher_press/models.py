# models.py
# Data contracts shared by the engine, the ledger and the orchestrator.
# No business logic lives here: schema, validation and hash normalisation.

import re
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cipher_press.errors import ValidationError

HASH_SIZE = 32
ZERO_HASH = "0x" + "00" * HASH_SIZE

_HASH_RE = re.compile(r"0x[0-9a-fA-F]{64}")


def normalize_hash(value: str | bytes) -> str:
    """
    Return the canonical form of a node hash: "0x" + 64 lowercase hex chars.

    Accepts either that string form (any case) or 32 raw bytes.
    """
    if isinstance(value, (bytes, bytearray)):
        if len(value) != HASH_SIZE:
            raise ValidationError(f"Hash must be {HASH_SIZE} bytes, got {len(value)}.")
        return "0x" + bytes(value).hex()
    if isinstance(value, str) and _HASH_RE.fullmatch(value):
        return value.lower()
    raise ValidationError(f"Not a 32-byte 0x-prefixed hex hash: {value!r}")


class PathEvent(BaseModel):
    """One node touched while the ledger built the tree for a string."""

    model_config = ConfigDict(frozen=True)

    hash: str = Field(..., description="Content address of the node.")
    components: tuple[str, str] = Field(
        ..., description="(left, right) for a pair; (hash, ZERO_HASH) for a leaf."
    )
    index: int = Field(..., ge=0, description="Ledger-wide emission counter.")

    @field_validator("hash")
    @classmethod
    def _canonical_hash(cls, value: str) -> str:
        return normalize_hash(value)

    @field_validator("components")
    @classmethod
    def _canonical_components(cls, value: tuple[str, str]) -> tuple[str, str]:
        return (normalize_hash(value[0]), normalize_hash(value[1]))

    @property
    def left(self) -> str:
        return self.components[0]

    @property
    def right(self) -> str:
        return self.components[1]

    @property
    def is_leaf(self) -> bool:
        return self.components[1] == ZERO_HASH


class EncryptedRecord(BaseModel):
    """An encrypted node payload as held by the ledger."""

    model_config = ConfigDict(frozen=True)

    hash: str
    payload: bytes = Field(..., min_length=1)

    @field_validator("hash")
    @classmethod
    def _canonical_hash(cls, value: str) -> str:
        return normalize_hash(value)


class PressReceipt(BaseModel):
    """What a caller keeps after a press: enough to release later."""

    model_config = ConfigDict(frozen=True)

    request_id: str
    final_hash: str
    node_count: int = Field(..., ge=1, description="Path events encrypted and stored.")
    payloads: dict[str, bytes] = Field(
        default_factory=dict, description="Encrypted payload per node hash, for local release."
    )
    stored_on_ledger: bool = Field(default=True, description="Whether payloads were written to the ledger.")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("final_hash")
    @classmethod
    def _canonical_hash(cls, value: str) -> str:
        return normalize_hash(value)

    @field_validator("payloads")
    @classmethod
    def _canonical_payload_keys(cls, value: dict[str, bytes]) -> dict[str, bytes]:
        return {normalize_hash(node): payload for node, payload in value.items()}
