"""Three-way reconciliation of a server course record with the local cache.

Entry existence in the surge log is server-authoritative, but timestamps are
edited locally and the server copy may not have caught up yet. Other fields
take the local value whenever one is present.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

LOGGER = logging.getLogger("synapse.sync")

SURGE_LOG_KEY = "surgeLog"


def is_explicitly_cleared(local: Optional[Mapping[str, Any]]) -> bool:
    """A local record whose surge log key exists and holds an empty list."""
    if not local or SURGE_LOG_KEY not in local:
        return False
    value = local[SURGE_LOG_KEY]
    return isinstance(value, list) and not value


def merge_surge_logs(
    server_log: Optional[Sequence[Mapping[str, Any]]],
    local_log: Optional[Sequence[Mapping[str, Any]]],
) -> List[Dict[str, Any]]:
    if not isinstance(server_log, (list, tuple)):
        return [dict(entry) for entry in local_log or []]
    if not isinstance(local_log, (list, tuple)):
        return [dict(entry) for entry in server_log]

    local_by_id = {entry.get("sessionId"): entry for entry in local_log if entry.get("sessionId") is not None}
    server_ids = {entry.get("sessionId") for entry in server_log if entry.get("sessionId") is not None}

    merged: List[Dict[str, Any]] = []
    for server_entry in server_log:
        entry = dict(server_entry)
        local_entry = local_by_id.get(entry.get("sessionId"))
        if local_entry is not None and local_entry.get("timestamp") is not None:
            entry["timestamp"] = local_entry["timestamp"]
        merged.append(entry)

    for local_entry in local_log:
        session_id = local_entry.get("sessionId")
        if session_id is not None and session_id in server_ids:
            continue
        candidate = dict(local_entry)
        if candidate not in merged:
            merged.append(candidate)
    return merged


def merge_course_data(
    server: Optional[Mapping[str, Any]],
    local: Optional[Mapping[str, Any]],
) -> Dict[str, Any]:
    """Return the reconciled record; neither input is mutated."""

    server_data: Dict[str, Any] = copy.deepcopy(dict(server or {}))
    local_data: Dict[str, Any] = copy.deepcopy(dict(local or {}))

    if is_explicitly_cleared(local_data):
        surge_log: List[Dict[str, Any]] = []
        LOGGER.debug("Local surge log was cleared; ignoring server entries", extra={"slug": server_data.get("slug")})
    else:
        surge_log = merge_surge_logs(server_data.get(SURGE_LOG_KEY), local_data.get(SURGE_LOG_KEY))

    merged = dict(server_data)
    merged.update({key: value for key, value in local_data.items() if value is not None})
    merged[SURGE_LOG_KEY] = surge_log
    return merged


__all__ = ["is_explicitly_cleared", "merge_course_data", "merge_surge_logs"]
