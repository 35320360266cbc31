# press.py
# Press/Release orchestrator.
#
# The ledger owns hashing, deduplication and event ordering. This module
# owns the sequence around it:
#
#   press:   text → ledger.build_tree → payload per event → encrypt
#            → ledger.store_encrypted_payload (every node) → root hash
#
#   release: root → walk components (each hash once) → fetch + decrypt
#            → logical positional walk (hashes may repeat) → text
#
# Per-call maps live on the stack of the call that built them. Nothing is
# shared between concurrent press() or release() calls.

import logging
import uuid
from collections.abc import Callable, Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from typing import TypeVar

from cipher_press.ecies import ECIESEngine, encode_pair, load_public_key
from cipher_press.errors import (
    EmptyInputError,
    IntegrityError,
    NodeNotFoundError,
    PressError,
    ReconstructionError,
    ValidationError,
)
from cipher_press.merkle import Ledger
from cipher_press.models import ZERO_HASH, PathEvent, PressReceipt, normalize_hash

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

NodeContent = str | tuple[str, str]


# ---------------------------------------------------------------------------
# Tree walks
# ---------------------------------------------------------------------------


def enumerate_nodes(ledger: Ledger, root: str) -> dict[str, tuple[str, str]]:
    """
    Every distinct node reachable from `root`, mapped to its components.

    Each hash is queried once no matter how many parents reference it.
    Order is pre-order, left before right.
    """
    nodes: dict[str, tuple[str, str]] = {}
    stack = [normalize_hash(root)]

    while stack:
        node = stack.pop()
        if node == ZERO_HASH or node in nodes:
            continue

        left, right = ledger.get_components(node)
        nodes[node] = (normalize_hash(left), normalize_hash(right))
        if nodes[node][1] == ZERO_HASH:
            continue

        stack.append(nodes[node][1])
        stack.append(nodes[node][0])

    return nodes


def resolve_positions(root: str, contents: dict[str, NodeContent]) -> dict[int, str]:
    """
    Assign every character of the logical tree under `root` to a position.

    A pair at position p places its left child at p and its right child at
    1 + the highest position assigned so far. Shared sub-trees are walked
    once per occurrence; `contents` is only a lookup.
    """
    characters: dict[int, str] = {}
    max_position = -1
    depth_limit = len(contents)

    def visit(node: str, position: int, depth: int) -> None:
        nonlocal max_position
        if depth > depth_limit:
            raise ReconstructionError(f"Tree under {root} is deeper than its node count (cycle?)")

        try:
            content = contents[node]
        except KeyError:
            raise NodeNotFoundError(f"Cannot find content or pair for hash {node}") from None

        if isinstance(content, str):
            characters[position] = content
            max_position = max(max_position, position)
            return

        left, right = content
        visit(left, position, depth + 1)
        visit(right, max_position + 1, depth + 1)

    visit(root, 0, 0)
    return characters


def _assemble(characters: dict[int, str]) -> str:
    if not characters:
        raise ReconstructionError("No content found to reconstruct.")

    top = max(characters)
    missing = [p for p in range(top + 1) if p not in characters]
    if missing:
        raise ReconstructionError(f"Unassigned positions {missing[:10]} of 0..{top}.")
    return "".join(characters[p] for p in range(top + 1))


# ---------------------------------------------------------------------------
# PressService
# ---------------------------------------------------------------------------


class PressService:
    """
    Presses text into encrypted tree nodes and releases it again.

    `engine` decrypts on release, so it must hold the private key matching
    whatever recipient the text was pressed for. Encryption and decryption
    of independent nodes fan out over a thread pool when max_workers > 1.

    Example:
        private_key, public_key = generate_keypair()
        service = PressService(MerkleLedger(), ECIESEngine(private_key))
        root = service.press("abab", public_key)
        assert service.release(root) == "abab"
    """

    def __init__(self, ledger: Ledger, engine: ECIESEngine, max_workers: int = 1) -> None:
        if max_workers < 1:
            raise ValidationError(f"max_workers must be at least 1, got {max_workers}.")
        self._ledger = ledger
        self._engine = engine
        self._max_workers = max_workers

    def _map(self, fn: Callable[[T], R], items: Iterable[T]) -> list[R]:
        """Ordered map; the first failure propagates after in-flight work ends."""
        if self._max_workers == 1:
            return [fn(item) for item in items]
        with ThreadPoolExecutor(max_workers=self._max_workers) as executor:
            return list(executor.map(fn, items))

    # ------------------------------------------------------------------
    # Press
    # ------------------------------------------------------------------

    def _payload_for(self, event: PathEvent) -> str:
        if event.is_leaf:
            return self._ledger.character_for_hash(event.hash)
        return encode_pair(event.left, event.right)

    def _press(
        self, text: str, recipient_public_key_hex: str, store_on_ledger: bool = True
    ) -> tuple[str, dict[str, bytes]]:
        if not isinstance(text, str):
            raise ValidationError(f"Text must be str, got {type(text).__name__}.")
        if not text:
            raise EmptyInputError("Refusing to press an empty string.")
        try:
            text.encode("utf-8")
        except UnicodeEncodeError as exc:
            raise ValidationError(f"Text is not encodable as UTF-8: {exc.reason}.") from exc
        load_public_key(recipient_public_key_hex)

        events = self._ledger.build_tree(text)
        if not events:
            raise PressError("Ledger returned no path events for a non-empty string.")

        payloads = [self._payload_for(event) for event in events]
        blobs = self._map(
            lambda payload: self._engine.encrypt(payload, recipient_public_key_hex),
            payloads,
        )

        if store_on_ledger:
            for event, blob in zip(events, blobs):
                self._ledger.store_encrypted_payload(event.hash, blob)
                logger.debug("Stored %d-byte payload for %s (index %d)", len(blob), event.hash, event.index)

        final_hash = events[-1].hash
        logger.info("Pressed %d chars into %d nodes, root %s", len(text), len(events), final_hash)
        return final_hash, {event.hash: blob for event, blob in zip(events, blobs)}

    def press(self, text: str, recipient_public_key_hex: str) -> str:
        """
        Build, encrypt and store the tree for `text`. Returns the root hash.

        Every node's payload is stored before this returns.
        """
        final_hash, _ = self._press(text, recipient_public_key_hex)
        return final_hash

    def press_receipt(
        self,
        text: str,
        recipient_public_key_hex: str,
        request_id: str | None = None,
        store_on_ledger: bool = True,
    ) -> PressReceipt:
        """
        Press `text` and return a receipt carrying every encrypted payload.

        With store_on_ledger=False the ledger only records the tree; the
        payloads exist solely in the receipt and must be handed back to
        release() as `local_payloads`.
        """
        final_hash, payloads = self._press(text, recipient_public_key_hex, store_on_ledger)
        return PressReceipt(
            request_id=request_id or uuid.uuid4().hex,
            final_hash=final_hash,
            node_count=len(payloads),
            payloads=payloads,
            stored_on_ledger=store_on_ledger,
        )

    # ------------------------------------------------------------------
    # Release
    # ------------------------------------------------------------------

    def _decrypt_node(
        self, item: tuple[str, tuple[str, str]], local_payloads: Mapping[str, bytes]
    ) -> NodeContent:
        node, components = item
        blob = local_payloads.get(node)
        if blob is None:
            blob = self._ledger.fetch_encrypted_payload(node)

        if components[1] == ZERO_HASH:
            return self._engine.decrypt_character(blob)

        pair = self._engine.decrypt_pair(blob)
        if pair != components:
            raise IntegrityError(
                f"Decrypted pair for {node} does not match its ledger components."
            )
        return pair

    def release(
        self, final_hash: str, local_payloads: Mapping[str, bytes] | None = None
    ) -> str:
        """
        Reconstruct the original text from the encrypted nodes under
        `final_hash`. Any missing, tampered or malformed node aborts the call.

        Payloads found in `local_payloads` (keyed by node hash) are used in
        place of the ledger's; the ledger is asked only for the rest.
        """
        root = normalize_hash(final_hash)
        local = {normalize_hash(node): bytes(blob) for node, blob in (local_payloads or {}).items()}
        nodes = enumerate_nodes(self._ledger, root)

        decrypted = self._map(lambda item: self._decrypt_node(item, local), nodes.items())
        contents: dict[str, NodeContent] = dict(zip(nodes, decrypted))

        text = _assemble(resolve_positions(root, contents))
        logger.info("Released %d chars from %d nodes, root %s", len(text), len(nodes), root)
        return text
