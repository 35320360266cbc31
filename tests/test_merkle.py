import pytest

from cipher_press.errors import EmptyInputError, NodeNotFoundError, ValidationError
from cipher_press.merkle import Ledger, MerkleLedger, leaf_hash, pair_hash
from cipher_press.models import ZERO_HASH

# ---------------------------------------------------------------------------
# Tree construction and path events
# ---------------------------------------------------------------------------

def test_two_characters_emit_two_leaves_and_one_pair():
    ledger = MerkleLedger()
    events = ledger.build_tree("ab")

    assert len(events) == 3
    assert [e.index for e in events] == [0, 1, 2]

    # First two events are leaves with the zero hash on the right
    assert events[0].components == (events[0].hash, ZERO_HASH)
    assert events[1].components == (events[1].hash, ZERO_HASH)
    assert events[0].is_leaf and events[1].is_leaf

    # Last event combines them and is the root
    assert events[2].components == (events[0].hash, events[1].hash)
    assert not events[2].is_leaf
    assert events[2].hash == pair_hash(leaf_hash("a"), leaf_hash("b"))

def test_single_character_root_is_its_leaf():
    events = MerkleLedger().build_tree("x")
    assert len(events) == 1
    assert events[0].hash == leaf_hash("x")
    assert events[0].is_leaf

def test_odd_trailing_node_is_carried_up():
    ledger = MerkleLedger()
    events = ledger.build_tree("abc")
    root = events[-1]

    ab = pair_hash(leaf_hash("a"), leaf_hash("b"))
    assert root.components == (ab, leaf_hash("c"))
    assert [e.hash for e in events] == [leaf_hash("a"), leaf_hash("b"), leaf_hash("c"), ab, root.hash]

def test_repeated_content_is_emitted_once_per_call():
    ledger = MerkleLedger()
    events = ledger.build_tree("abab")

    ab = pair_hash(leaf_hash("a"), leaf_hash("b"))
    assert [e.hash for e in events] == [leaf_hash("a"), leaf_hash("b"), ab, pair_hash(ab, ab)]
    assert ledger.node_count == 4

def test_repeated_character_reuses_its_leaf():
    events = MerkleLedger().build_tree("aaa")
    aa = pair_hash(leaf_hash("a"), leaf_hash("a"))
    assert [e.hash for e in events] == [leaf_hash("a"), aa, pair_hash(aa, leaf_hash("a"))]

def test_index_continues_across_calls():
    ledger = MerkleLedger()
    first = ledger.build_tree("a")
    second = ledger.build_tree("b")

    assert first[0].index == 0
    assert second[0].index == 1
    assert ledger.event_count == 2

def test_same_string_yields_same_root():
    ledger = MerkleLedger()
    first = ledger.build_tree("Hello, World!")
    second = ledger.build_tree("Hello, World!")

    assert first[-1].hash == second[-1].hash
    assert [e.hash for e in first] == [e.hash for e in second]
    assert second[0].index == len(first)

def test_distinct_ledgers_agree_on_hashes():
    assert MerkleLedger().build_tree("hello")[-1].hash == MerkleLedger().build_tree("hello")[-1].hash

def test_empty_string_rejected():
    ledger = MerkleLedger()
    with pytest.raises(EmptyInputError):
        ledger.build_tree("")
    assert ledger.event_count == 0

def test_non_string_rejected():
    with pytest.raises(ValidationError):
        MerkleLedger().build_tree(b"ab")

def test_unencodable_text_rejected_without_registering_nodes():
    ledger = MerkleLedger()
    with pytest.raises(ValidationError, match="UTF-8"):
        ledger.build_tree("a\ud800")
    assert ledger.node_count == 0
    assert leaf_hash("a") not in ledger

# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------

def test_components_and_character_lookup():
    ledger = MerkleLedger()
    events = ledger.build_tree("🌎!")

    assert ledger.character_for_hash(events[0].hash) == "🌎"
    assert ledger.get_components(events[-1].hash) == events[-1].components
    assert ledger.get_components(events[-1].hash.upper().replace("0X", "0x")) == events[-1].components
    assert events[-1].hash in ledger

def test_unknown_hash_lookups_fail():
    ledger = MerkleLedger()
    unknown = "0x" + "11" * 32

    with pytest.raises(NodeNotFoundError, match="Unknown node hash"):
        ledger.get_components(unknown)
    with pytest.raises(NodeNotFoundError, match="No character"):
        ledger.character_for_hash(unknown)
    assert unknown not in ledger
    assert "not-a-hash" not in ledger

# ---------------------------------------------------------------------------
# Encrypted payload storage
# ---------------------------------------------------------------------------

def test_store_and_fetch_latest_payload():
    ledger = MerkleLedger()
    node = ledger.build_tree("a")[0].hash

    ledger.store_encrypted_payload(node, b"first")
    ledger.store_encrypted_payload(node, b"second")
    assert ledger.fetch_encrypted_payload(node) == b"second"

def test_store_for_unknown_hash_fails():
    with pytest.raises(NodeNotFoundError, match="does not exist"):
        MerkleLedger().store_encrypted_payload("0x" + "22" * 32, b"payload")

def test_store_rejects_empty_payload():
    ledger = MerkleLedger()
    node = ledger.build_tree("a")[0].hash
    with pytest.raises(ValidationError):
        ledger.store_encrypted_payload(node, b"")

def test_fetch_without_store_fails():
    ledger = MerkleLedger()
    node = ledger.build_tree("a")[0].hash
    with pytest.raises(NodeNotFoundError, match="No encrypted data found"):
        ledger.fetch_encrypted_payload(node)

def test_merkle_ledger_satisfies_ledger_protocol():
    assert isinstance(MerkleLedger(), Ledger)
