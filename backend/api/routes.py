# backend/api/routes.py
from fastapi import APIRouter, HTTPException, Query

from core import broker, config, registry
from core.models import Failure, FailureKind
from . import models

router = APIRouter()


def _failure_detail(failure: Failure) -> dict:
    """Helper to turn a broker failure into the 503 body."""
    if failure.kind == FailureKind.NO_AVAILABLE_NODES:
        return {"error": FailureKind.NO_AVAILABLE_NODES.value}
    return {
        "error": "provisioning-failed",
        "kind": failure.kind.value,
        "nodeId": failure.node_id,
    }


@router.get("/health", response_model=models.Health)
async def health():
    return models.Health(ok=True)


@router.get("/servers", response_model=models.ServerList)
async def list_servers():
    """List enabled servers without their secrets."""
    nodes = registry.list_enabled_nodes()
    return models.ServerList(servers=[models.ServerInfo(id=n.id) for n in nodes])


@router.get("/loads", response_model=dict[str, dict[str, int]])
async def get_loads():
    """Current client count per inbound on every reachable server."""
    return await broker.get_aggregate_load()


@router.get("/loads/history")
async def get_load_history():
    """Loads as of the last GET /loads."""
    return registry.read_load_history()


@router.get("/get-key", response_model=models.Key)
async def get_key(period: int = Query(default=config.DEFAULT_PERIOD_MONTHS, ge=1)):
    """Issue a key valid for `period` months on the least loaded server."""
    result = await broker.issue_credential(period)
    if isinstance(result, Failure):
        raise HTTPException(status_code=503, detail=_failure_detail(result))
    return models.Key(vless=result.link)
