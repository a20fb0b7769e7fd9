# backend/core/registry.py
import json
import logging
import os
import tempfile
from datetime import datetime, timezone

from pydantic import ValidationError

from . import config
from .models import NodeDescriptor

logger = logging.getLogger(__name__)


def _read_json(path: str, fallback):
    """Reads a JSON file, returning `fallback` if it is missing or broken."""
    if not os.path.exists(path):
        return fallback
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error("Could not read %s: %s", path, e)
        return fallback


def _write_json_atomic(path: str, data):
    """Writes JSON to a temp file next to `path`, then swaps it in."""
    directory = os.path.dirname(path) or "."
    os.makedirs(directory, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(
        dir=directory, prefix=os.path.basename(path) + ".", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


def list_enabled_nodes() -> list[NodeDescriptor]:
    """Reads servers.json and returns the enabled nodes in file order."""
    data = _read_json(config.SERVERS_FILE, {"servers": []})
    entries = data.get("servers") if isinstance(data, dict) else None
    if not isinstance(entries, list):
        logger.warning("No server list in %s", config.SERVERS_FILE)
        return []

    nodes = []
    for index, entry in enumerate(entries):
        try:
            node = NodeDescriptor.model_validate(entry)
        except ValidationError as e:
            logger.warning("Skipping invalid server entry #%d: %s", index, e)
            continue
        if node.enabled:
            nodes.append(node)
    return nodes


def read_load_history() -> dict:
    data = _read_json(config.LOADS_FILE, {"loads": {}})
    loads = data.get("loads") if isinstance(data, dict) else None
    return loads if isinstance(loads, dict) else {}


def record_load_history(loads: dict):
    """Stores the latest per-node inbound loads in loads.json."""
    _write_json_atomic(config.LOADS_FILE, {
        "loads": loads,
        "updatedAt": datetime.now(timezone.utc).isoformat(),
    })
