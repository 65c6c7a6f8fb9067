from pairchat.identity import conversation_id


def test_same_id_in_either_order():
    assert conversation_id("alice", "bob") == conversation_id("bob", "alice")


def test_ids_sorted_and_joined():
    assert conversation_id("u2", "u1") == "u1_u2"


def test_different_pairs_get_different_ids():
    assert conversation_id("a", "b") != conversation_id("a", "c")
    assert conversation_id("a", "b") != conversation_id("b", "c")


def test_self_conversation_is_well_formed():
    assert conversation_id("u1", "u1") == "u1_u1"


def test_lexical_not_numeric_order():
    assert conversation_id("u10", "u9") == "u10_u9"
