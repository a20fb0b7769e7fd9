# backend/core/load_aggregator.py
import asyncio
import logging
from collections.abc import Sequence

import httpx

from . import config, panel_client
from .models import Failure, FailureKind, Inbound, LoadSnapshot, NodeDescriptor, Unavailable

logger = logging.getLogger(__name__)


async def _read_node(client: httpx.AsyncClient, node: NodeDescriptor) -> list[Inbound] | Failure:
    token = await panel_client.authenticate(client, node)
    if isinstance(token, Failure):
        return token
    return await panel_client.list_inbounds(client, node, token)


async def _probe(
    client: httpx.AsyncClient, node: NodeDescriptor, timeout: float
) -> list[Inbound] | Unavailable:
    """Login + list for one node; never raises."""
    try:
        result = await asyncio.wait_for(_read_node(client, node), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("Node %s did not answer within %ss", node.id, timeout)
        result = Failure(
            kind=FailureKind.READ_FAILED, node_id=node.id, detail=f"timed out after {timeout}s"
        )
    except Exception as e:
        logger.exception("Unexpected error while reading node %s", node.id)
        result = Failure(kind=FailureKind.READ_FAILED, node_id=node.id, detail=repr(e))

    if isinstance(result, Failure):
        return Unavailable(node_id=node.id, reason=result)
    return result


async def _probe_all(
    client: httpx.AsyncClient, nodes: Sequence[NodeDescriptor], timeout: float | None
) -> dict[str, list[Inbound] | Unavailable]:
    timeout = config.NODE_TIMEOUT if timeout is None else timeout
    results = await asyncio.gather(*(_probe(client, node, timeout) for node in nodes))
    return {node.id: result for node, result in zip(nodes, results)}


async def collect_snapshots(
    client: httpx.AsyncClient,
    nodes: Sequence[NodeDescriptor],
    timeout: float | None = None,
) -> dict[str, LoadSnapshot | Unavailable]:
    """Measures every node concurrently; returns once all of them have settled."""
    snapshots = {}
    by_id = {node.id: node for node in nodes}
    for node_id, result in (await _probe_all(client, nodes, timeout)).items():
        if isinstance(result, Unavailable):
            snapshots[node_id] = result
            continue
        current_users, first_inbound_id = panel_client.summarize_inbounds(result)
        snapshots[node_id] = LoadSnapshot(
            node_id=node_id,
            current_users=current_users,
            users_limit=by_id[node_id].users_limit,
            first_inbound_id=first_inbound_id,
        )
    return snapshots


def available_in_registry_order(
    nodes: Sequence[NodeDescriptor], snapshots: dict[str, LoadSnapshot | Unavailable]
) -> list[LoadSnapshot]:
    ordered = []
    seen = set()
    for node in nodes:
        if node.id in seen:
            continue
        seen.add(node.id)
        snapshot = snapshots.get(node.id)
        if isinstance(snapshot, LoadSnapshot):
            ordered.append(snapshot)
    return ordered


async def collect_inbound_loads(
    client: httpx.AsyncClient,
    nodes: Sequence[NodeDescriptor],
    timeout: float | None = None,
) -> dict[str, dict[str, int]]:
    """Client count per inbound remark for every reachable node."""
    loads = {}
    for node_id, result in (await _probe_all(client, nodes, timeout)).items():
        if isinstance(result, Unavailable):
            logger.info("Leaving node %s out of loads: %s", node_id, result.reason.detail)
            continue
        loads[node_id] = {
            inbound.remark: len(inbound.client_stats)
            for inbound in result
            if inbound.client_stats
        }
    return loads
