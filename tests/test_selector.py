from core.models import LoadSnapshot
from core.selector import choose_node


def snap(node_id, current_users, users_limit, first_inbound_id=1):
    return LoadSnapshot(
        node_id=node_id,
        current_users=current_users,
        users_limit=users_limit,
        first_inbound_id=first_inbound_id,
    )


def test_empty_pool_returns_none():
    assert choose_node([]) is None


def test_skips_full_node_for_one_with_room():
    nodes = [snap("a", 5, 5), snap("b", 2, 5)]
    assert choose_node(nodes).node_id == "b"


def test_first_node_with_room_wins_over_less_loaded_later_nodes():
    nodes = [snap("a", 9, 10), snap("b", 0, 10), snap("c", 1, 10)]
    assert choose_node(nodes).node_id == "a"


def test_all_full_returns_least_loaded():
    nodes = [snap("a", 6, 5), snap("b", 7, 5)]
    assert choose_node(nodes).node_id == "a"


def test_all_full_picks_minimum_anywhere_in_order():
    nodes = [snap("a", 12, 5), snap("b", 9, 5), snap("c", 10, 8)]
    assert choose_node(nodes).node_id == "b"


def test_all_full_tie_goes_to_first():
    nodes = [snap("a", 8, 5), snap("b", 6, 5), snap("c", 6, 3)]
    assert choose_node(nodes).node_id == "b"


def test_single_saturated_node_is_still_used():
    assert choose_node([snap("only", 100, 1)]).node_id == "only"


def test_zero_limit_node_counts_as_full():
    nodes = [snap("a", 0, 0), snap("b", 3, 4)]
    assert choose_node(nodes).node_id == "b"


def test_returns_snapshot_with_its_inbound():
    chosen = choose_node([snap("a", 1, 5, first_inbound_id=7)])
    assert chosen.first_inbound_id == 7
