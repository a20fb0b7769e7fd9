# backend/core/provisioner.py
import logging
import uuid
from datetime import datetime, timedelta, timezone
from urllib.parse import quote_plus, urlencode

import httpx

from . import config, panel_client
from .models import (
    ConnectionDescriptor,
    CredentialRequest,
    Failure,
    FailureKind,
    NodeDescriptor,
)

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_REQUIRED_LINK_FIELDS = ("public_host", "security", "pbk", "fp", "sni")


class LinkBuildError(ValueError):
    """The node is missing a public parameter needed for the link."""


def add_months(moment: datetime, months: int) -> datetime:
    """Moves `moment` forward by calendar months.

    A day past the end of the target month rolls over into the next one
    (Jan 31 + 1 month is Mar 2 in a leap year), matching keys issued before.
    """
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    return moment.replace(year=year, month=month, day=1) + timedelta(days=moment.day - 1)


def _form_quote(value, safe="", encoding=None, errors=None):
    # application/x-www-form-urlencoded: '*' stays, '~' is escaped.
    return quote_plus(value, safe="*", encoding=encoding, errors=errors).replace("~", "%7E")


def expiry_epoch_ms(months: int, now: datetime | None = None) -> int:
    """Expiry in epoch milliseconds: `months` from now plus one day of grace.

    The extra day keeps the key alive while the renewal reminder goes out.
    """
    if isinstance(months, bool) or not isinstance(months, int) or months < 1:
        raise ValueError(f"months must be a positive integer, got {months!r}")
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    expires = add_months(now, months) + timedelta(days=1)
    return (expires - _EPOCH) // timedelta(milliseconds=1)


def build_connection_link(
    node: NodeDescriptor, credential_id: str, brand: str | None = None
) -> str:
    """Formats the vless:// link client apps import."""
    missing = [name for name in _REQUIRED_LINK_FIELDS if not getattr(node, name)]
    if missing:
        raise LinkBuildError(f"node {node.id} has no {', '.join(missing)}")

    params = urlencode([
        ("type", "tcp"),
        ("encryption", "none"),
        ("security", node.security),
        ("pbk", node.pbk),
        ("fp", node.fp),
        ("sni", node.sni),
        ("sid", node.sid or ""),
        ("spx", node.spx or ""),
    ], quote_via=_form_quote)
    label = config.BRAND_LABEL if brand is None else brand
    # The trailing %2F belongs to spx; existing clients expect it there.
    return f"vless://{credential_id}@{node.public_host}:{node.public_port}?{params}%2F#{label}-{node.id}"


async def provision(
    client: httpx.AsyncClient,
    node: NodeDescriptor,
    request: CredentialRequest,
    now: datetime | None = None,
) -> ConnectionDescriptor | Failure:
    """Creates a client on the node's inbound and returns its connection link.

    Each step runs once; the first failing step decides the result.
    """
    token = await panel_client.authenticate(client, node)
    if isinstance(token, Failure):
        return token

    credential_id = str(uuid.uuid4())
    expiry_time = expiry_epoch_ms(request.validity_months, now)
    client_obj = {
        "id": credential_id,
        "email": request.client_label,
        "flow": "",
        "totalGB": 0,
        "expiryTime": expiry_time,
        "enable": True,
    }
    failure = await panel_client.add_client(client, node, token, request.inbound_id, client_obj)
    if failure is not None:
        return failure

    try:
        link = build_connection_link(node, credential_id)
    except LinkBuildError as e:
        # The client already exists on the panel at this point.
        logger.error("Created client %s on node %s but cannot build its link: %s",
                     credential_id, node.id, e)
        return Failure(kind=FailureKind.LINK_BUILD_FAILED, node_id=node.id, detail=str(e))

    logger.info("Issued key %s on node %s (inbound %s)", credential_id, node.id, request.inbound_id)
    return ConnectionDescriptor(
        link=link,
        node_id=node.id,
        credential_id=credential_id,
        expiry_time=expiry_time,
    )
