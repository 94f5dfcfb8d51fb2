"""
projecthub/routes_activity.py

Read-only access to the company activity log (admin and manager).
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query

from projecthub.activity import list_activity
from projecthub.auth_context import Principal, get_database
from projecthub.authz import Action
from projecthub.db import Database
from projecthub.dependencies import require_action
from projecthub.schemas import ActivityLogResponse
from projecthub.tenant import assert_rows_scoped, company_scope


router = APIRouter(
    prefix="/api/activity",
    tags=["activity"],
)


@router.get("", response_model=List[ActivityLogResponse])
def get_activity(
    entity_type: Optional[str] = Query(None, alias="entityType"),
    entity_id: Optional[int] = Query(None, alias="entityId", ge=1),
    principal: Principal = Depends(require_action(Action.ACTIVITY_LIST)),
    db: Database = Depends(get_database),
) -> List[ActivityLogResponse]:
    """Newest first, optionally filtered by entityType and entityId."""
    scope = company_scope(principal)
    with db.connect() as conn:
        logs = list_activity(conn, scope.company_id, entity_type, entity_id)
    assert_rows_scoped(logs, scope.company_id, label="GET /api/activity")
    return [ActivityLogResponse(**log) for log in logs]


@router.get("/{entity_type}/{entity_id}", response_model=List[ActivityLogResponse])
def get_entity_activity(
    entity_type: str = Path(...),
    entity_id: int = Path(..., ge=1),
    principal: Principal = Depends(require_action(Action.ACTIVITY_LIST)),
    db: Database = Depends(get_database),
) -> List[ActivityLogResponse]:
    scope = company_scope(principal)
    with db.connect() as conn:
        logs = list_activity(conn, scope.company_id, entity_type, entity_id)
    assert_rows_scoped(logs, scope.company_id, label="GET /api/activity/{entity_type}/{entity_id}")
    return [ActivityLogResponse(**log) for log in logs]
