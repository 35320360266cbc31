# merkle.py
# Content-addressed binary DAG of characters, plus the ledger contract the
# orchestrator consumes.
#
# Leaf  = SHA256(0x00 ‖ utf8(char)),        components (leaf, ZERO_HASH)
# Pair  = SHA256(0x01 ‖ left ‖ right),     components (left, right)
# Root  = single hash representing the whole string
#
# Odd-length layers carry the trailing node up unchanged. Identical content
# always yields the identical hash, so repeated sub-trees collapse into one node.

import hashlib
import itertools
import logging
import threading
from typing import Protocol, runtime_checkable

from cipher_press.errors import EmptyInputError, NodeNotFoundError, ValidationError
from cipher_press.models import ZERO_HASH, EncryptedRecord, PathEvent, normalize_hash

logger = logging.getLogger(__name__)

_LEAF_PREFIX = b"\x00"
_PAIR_PREFIX = b"\x01"


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _sha256(data: bytes) -> str:
    return "0x" + hashlib.sha256(data).hexdigest()


def leaf_hash(character: str) -> str:
    return _sha256(_LEAF_PREFIX + character.encode("utf-8"))


def pair_hash(left: str, right: str) -> str:
    return _sha256(_PAIR_PREFIX + bytes.fromhex(left[2:]) + bytes.fromhex(right[2:]))


# ---------------------------------------------------------------------------
# Ledger contract
# ---------------------------------------------------------------------------


@runtime_checkable
class Ledger(Protocol):
    """
    The registry the orchestrator builds trees in and stores payloads on.

    Every method may block and may fail; failures propagate to the caller.
    """

    def build_tree(self, text: str) -> list[PathEvent]: ...

    def get_components(self, node_hash: str) -> tuple[str, str]: ...

    def character_for_hash(self, node_hash: str) -> str: ...

    def store_encrypted_payload(self, node_hash: str, payload: bytes) -> None: ...

    def fetch_encrypted_payload(self, node_hash: str) -> bytes: ...


# ---------------------------------------------------------------------------
# MerkleLedger
# ---------------------------------------------------------------------------


class MerkleLedger:
    """
    In-process ledger: builds deduplicated character trees and holds the
    encrypted payload for each node.

    All mutation happens under one lock, so concurrent press() calls see a
    single serialised event counter.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counter = itertools.count()
        self._nodes: dict[str, tuple[str, str]] = {}
        self._characters: dict[str, str] = {}
        self._payloads: dict[str, EncryptedRecord] = {}
        self._event_count = 0

    # ------------------------------------------------------------------
    # Tree construction
    # ------------------------------------------------------------------

    def build_tree(self, text: str) -> list[PathEvent]:
        """
        Build (or revisit) the tree for `text` and return one event per
        distinct node it touches.

        Leaves come first in first-occurrence order, then pairs bottom-up,
        left to right. The root is always the last event.
        """
        if not isinstance(text, str):
            raise ValidationError(f"Text must be str, got {type(text).__name__}.")
        if not text:
            raise EmptyInputError("Cannot build a tree from an empty string.")
        try:
            text.encode("utf-8")
        except UnicodeEncodeError as exc:
            raise ValidationError(f"Text is not encodable as UTF-8: {exc.reason}.") from exc

        with self._lock:
            touched: dict[str, tuple[str, str]] = {}
            leaves: list[str] = []
            for character in text:
                node = leaf_hash(character)
                self._characters.setdefault(node, character)
                self._nodes.setdefault(node, (node, ZERO_HASH))
                touched.setdefault(node, (node, ZERO_HASH))
                leaves.append(node)

            root = self._reduce(leaves, touched)
            touched[root] = touched.pop(root)

            events = [
                PathEvent(hash=node, components=components, index=next(self._counter))
                for node, components in touched.items()
            ]
            self._event_count += len(events)

        logger.debug("Built tree for %d chars: %d events, root %s", len(text), len(events), root)
        return events

    def _reduce(self, layer: list[str], touched: dict[str, tuple[str, str]]) -> str:
        """Recursively reduce a layer of nodes to a single root hash."""
        if len(layer) == 1:
            return layer[0]

        parents: list[str] = []
        for i in range(0, len(layer) - 1, 2):
            left, right = layer[i], layer[i + 1]
            node = pair_hash(left, right)
            self._nodes.setdefault(node, (left, right))
            touched.setdefault(node, (left, right))
            parents.append(node)

        if len(layer) % 2 != 0:
            parents.append(layer[-1])

        return self._reduce(parents, touched)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get_components(self, node_hash: str) -> tuple[str, str]:
        node_hash = normalize_hash(node_hash)
        try:
            return self._nodes[node_hash]
        except KeyError:
            raise NodeNotFoundError(f"Unknown node hash {node_hash}") from None

    def character_for_hash(self, node_hash: str) -> str:
        node_hash = normalize_hash(node_hash)
        try:
            return self._characters[node_hash]
        except KeyError:
            raise NodeNotFoundError(f"No character registered for hash {node_hash}") from None

    # ------------------------------------------------------------------
    # Encrypted payloads
    # ------------------------------------------------------------------

    def store_encrypted_payload(self, node_hash: str, payload: bytes) -> None:
        """Persist `payload` for a built node. A repeated store overwrites."""
        node_hash = normalize_hash(node_hash)
        if not payload:
            raise ValidationError(f"Refusing to store an empty payload for {node_hash}")
        with self._lock:
            if node_hash not in self._nodes:
                raise NodeNotFoundError(f"Hash does not exist: {node_hash}")
            self._payloads[node_hash] = EncryptedRecord(hash=node_hash, payload=bytes(payload))

    def fetch_encrypted_payload(self, node_hash: str) -> bytes:
        node_hash = normalize_hash(node_hash)
        try:
            return self._payloads[node_hash].payload
        except KeyError:
            raise NodeNotFoundError(f"No encrypted data found for hash {node_hash}") from None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    @property
    def event_count(self) -> int:
        """Events emitted over the ledger's lifetime."""
        return self._event_count

    def __contains__(self, node_hash: object) -> bool:
        try:
            return normalize_hash(node_hash) in self._nodes
        except ValidationError:
            return False
