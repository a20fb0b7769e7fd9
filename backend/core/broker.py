# backend/core/broker.py
import logging
import uuid

from . import config, load_aggregator, panel_client, provisioner, registry, selector
from .models import ConnectionDescriptor, CredentialRequest, Failure, FailureKind

logger = logging.getLogger(__name__)


async def issue_credential(months: int) -> ConnectionDescriptor | Failure:
    """Issues one key on the best node right now.

    Does not fail over: if provisioning breaks on the chosen node the failure
    is returned as is.
    """
    nodes = registry.list_enabled_nodes()
    async with panel_client.open_client() as client:
        snapshots = await load_aggregator.collect_snapshots(client, nodes, config.NODE_TIMEOUT)
        best = selector.choose_node(load_aggregator.available_in_registry_order(nodes, snapshots))
        if best is None:
            logger.warning("No available nodes (%d enabled)", len(nodes))
            return Failure(kind=FailureKind.NO_AVAILABLE_NODES)

        if best.current_users >= best.users_limit:
            logger.warning("All nodes are full; using least loaded node %s (%d/%d)",
                           best.node_id, best.current_users, best.users_limit)
        if best.first_inbound_id is None:
            return Failure(
                kind=FailureKind.ADD_FAILED,
                node_id=best.node_id,
                detail="node has no inbound to attach the client to",
            )

        node = {n.id: n for n in nodes}[best.node_id]
        request = CredentialRequest(
            client_label=str(uuid.uuid4()),
            validity_months=months,
            inbound_id=best.first_inbound_id,
        )
        return await provisioner.provision(client, node, request)


async def get_aggregate_load() -> dict[str, dict[str, int]]:
    """Current client count per inbound of every reachable node; also saved to loads.json."""
    nodes = registry.list_enabled_nodes()
    async with panel_client.open_client() as client:
        loads = await load_aggregator.collect_inbound_loads(client, nodes, config.NODE_TIMEOUT)
    try:
        registry.record_load_history(loads)
    except OSError as e:
        logger.error("Could not record load history: %s", e)
    return loads
