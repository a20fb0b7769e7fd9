# backend/core/selector.py
from collections.abc import Sequence

from .models import LoadSnapshot


def choose_node(snapshots: Sequence[LoadSnapshot]) -> LoadSnapshot | None:
    """Picks the node that should receive the next key.

    Expects available nodes only, in registry order. The first node below its
    users limit wins. When every node is at or over its limit the least loaded
    one is returned anyway (first one on ties), so a saturated pool keeps
    issuing keys instead of rejecting requests. Returns None for no nodes.
    """
    for snapshot in snapshots:
        if snapshot.current_users < snapshot.users_limit:
            return snapshot

    best = None
    for snapshot in snapshots:
        if best is None or snapshot.current_users < best.current_users:
            best = snapshot
    return best
