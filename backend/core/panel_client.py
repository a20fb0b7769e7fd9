# backend/core/panel_client.py
import json
import logging
from urllib.parse import urlsplit, urlunsplit

import httpx
from pydantic import ValidationError

from . import config
from .models import Failure, FailureKind, Inbound, NodeDescriptor, SessionToken

logger = logging.getLogger(__name__)

REDIRECT_CODES = {301, 302, 303, 307, 308}


def open_client(timeout: float | None = None) -> httpx.AsyncClient:
    """Creates the HTTP client shared by all panel calls of one request."""
    return httpx.AsyncClient(
        timeout=config.PANEL_TIMEOUT if timeout is None else timeout,
        follow_redirects=False,
    )


def panel_url(node: NodeDescriptor, path: str) -> str:
    """Builds `scheme://host/<webBasePath>/<path>`; the panel always lives at the host root."""
    parts = urlsplit(node.api_url)
    segments = [s for s in f"{node.web_base_path}/{path}".split("/") if s]
    return urlunsplit((parts.scheme, parts.netloc, "/" + "/".join(segments), "", ""))


def _session_cookie(response: httpx.Response) -> str:
    pairs = [h.split(";", 1)[0].strip() for h in response.headers.get_list("set-cookie")]
    return "; ".join(p for p in pairs if p)


def _reports_failure(response: httpx.Response) -> bool:
    """3x-ui answers some rejections with 200 and {"success": false}."""
    try:
        body = response.json()
    except ValueError:
        return False
    return isinstance(body, dict) and body.get("success") is False


def _check_token(node: NodeDescriptor, token: SessionToken):
    if token.node_id != node.id:
        raise ValueError(f"Session of node {token.node_id} used against node {node.id}")


async def authenticate(client: httpx.AsyncClient, node: NodeDescriptor) -> SessionToken | Failure:
    """Logs into the node's panel and returns its session cookie."""
    try:
        response = await client.post(
            panel_url(node, "login"),
            data={"username": node.username, "password": node.password},
        )
    except httpx.HTTPError as e:
        logger.warning("Login to node %s failed (is the panel reachable?): %r", node.id, e)
        return Failure(kind=FailureKind.AUTH_FAILED, node_id=node.id, detail=repr(e))

    cookie = _session_cookie(response)
    status_ok = response.is_success or response.status_code in REDIRECT_CODES
    if not cookie or not status_ok or _reports_failure(response):
        logger.warning("Login to node %s rejected: HTTP %s", node.id, response.status_code)
        return Failure(
            kind=FailureKind.AUTH_FAILED,
            node_id=node.id,
            detail=f"login failed: HTTP {response.status_code}",
        )

    return SessionToken(node_id=node.id, cookie=cookie)


async def list_inbounds(
    client: httpx.AsyncClient, node: NodeDescriptor, token: SessionToken
) -> list[Inbound] | Failure:
    """Fetches the node's inbounds together with their client stats."""
    _check_token(node, token)

    def failed(detail: str) -> Failure:
        logger.warning("Reading inbounds of node %s failed: %s", node.id, detail)
        return Failure(kind=FailureKind.READ_FAILED, node_id=node.id, detail=detail)

    try:
        response = await client.get(
            panel_url(node, "panel/api/inbounds/list"),
            headers={"Cookie": token.cookie},
        )
    except httpx.HTTPError as e:
        return failed(repr(e))

    if not response.is_success:
        return failed(f"HTTP {response.status_code}")
    try:
        body = response.json()
    except ValueError:
        return failed("response is not JSON")
    if not isinstance(body, dict) or body.get("success") is False:
        return failed("panel reported failure")

    raw = body.get("obj")
    if not isinstance(raw, list):
        return failed("response has no inbound list")
    try:
        return [Inbound.model_validate(item) for item in raw]
    except ValidationError as e:
        return failed(f"unexpected inbound shape: {e}")


def summarize_inbounds(inbounds: list[Inbound]) -> tuple[int, int | None]:
    """Returns (total clients across inbounds with stats, id of the first inbound)."""
    current_users = sum(len(i.client_stats) for i in inbounds if i.client_stats)
    first_inbound_id = inbounds[0].id if inbounds else None
    return current_users, first_inbound_id


async def add_client(
    client: httpx.AsyncClient,
    node: NodeDescriptor,
    token: SessionToken,
    inbound_id: int,
    client_obj: dict,
) -> None | Failure:
    """Attaches a new client to an inbound on the node."""
    _check_token(node, token)
    payload = {
        "id": inbound_id,
        "settings": json.dumps({"clients": [client_obj]}, separators=(",", ":")),
    }
    try:
        response = await client.post(
            panel_url(node, "panel/api/inbounds/addClient"),
            json=payload,
            headers={"Cookie": token.cookie},
        )
    except httpx.HTTPError as e:
        logger.warning("addClient on node %s failed: %r", node.id, e)
        return Failure(kind=FailureKind.ADD_FAILED, node_id=node.id, detail=repr(e))

    if not response.is_success or _reports_failure(response):
        logger.warning("addClient on node %s rejected: HTTP %s", node.id, response.status_code)
        return Failure(
            kind=FailureKind.ADD_FAILED,
            node_id=node.id,
            detail=f"addClient failed: HTTP {response.status_code}",
        )
    return None
