"""
projecthub/activity.py

Append-only activity log for risk and budget mutations.

Entries are written on the caller's transactional connection, so a mutation
and its log entry commit or roll back together. Rows are never updated.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.engine import Connection

from projecthub.config import IS_DEV
from projecthub.db import fetch_all, insert_row, now_iso
from projecthub.errors import ValidationFailed
from projecthub.models import EntityType


def _snapshot(value: Optional[Mapping[str, Any]]) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(dict(value), default=str, sort_keys=True)


def parse_entity_type(value: Optional[str]) -> Optional[str]:
    if value is None or value == "":
        return None
    try:
        return EntityType(value.upper()).value
    except ValueError:
        raise ValidationFailed(f"Invalid entityType '{value}'. Must be RISK or BUDGET")


def record_activity(
    conn: Connection,
    company_id: int,
    entity_type: EntityType,
    entity_id: int,
    action: str,
    old_value: Optional[Mapping[str, Any]] = None,
    new_value: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    entry = insert_row(conn, "activity_logs", {
        "company_id": company_id,
        "entity_type": EntityType(entity_type).value,
        "entity_id": entity_id,
        "action": action,
        "old_value": _snapshot(old_value),
        "new_value": _snapshot(new_value),
        "created_at": now_iso(),
    })
    if IS_DEV:
        print(f"[ACTIVITY] {entry['entity_type']}:{entity_id} {action} (company_id={company_id})")
    return entry


def list_activity(
    conn: Connection,
    company_id: int,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Company log entries, newest first, optionally for one entity."""
    sql = "SELECT * FROM activity_logs WHERE company_id = :company_id"
    params: Dict[str, Any] = {"company_id": company_id}

    entity_type = parse_entity_type(entity_type)
    if entity_type:
        sql += " AND entity_type = :entity_type"
        params["entity_type"] = entity_type
    if entity_id is not None:
        sql += " AND entity_id = :entity_id"
        params["entity_id"] = entity_id

    sql += " ORDER BY created_at DESC, id DESC"
    return fetch_all(conn, sql, params)
