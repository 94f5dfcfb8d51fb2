"""
projecthub/routes_resources.py

Resource allocation CRUD. Deletion is soft: the row stays with status
DELETED and disappears from every read.
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Path

from projecthub.auth_context import Principal, get_database
from projecthub.authz import Action
from projecthub.config import IS_DEV
from projecthub.db import Database, fetch_all, insert_row, now_iso, update_row
from projecthub.dependencies import require_action
from projecthub.models import DELETED_STATUS, ResourceStatus
from projecthub.schemas import (
    MessageResponse,
    ResourceCreateRequest,
    ResourceResponse,
    ResourceUpdateRequest,
    update_values,
)
from projecthub.tenant import (
    RESOURCES,
    assert_rows_scoped,
    company_scope,
    fetch_scoped,
    require_project_in_company,
    scope_for,
    scoped_where,
)


router = APIRouter(
    prefix="/api/resources",
    tags=["resources"],
)


@router.post("", response_model=ResourceResponse, status_code=201)
def create_resource(
    request: ResourceCreateRequest,
    principal: Principal = Depends(require_action(Action.RESOURCE_CREATE)),
    db: Database = Depends(get_database),
) -> ResourceResponse:
    scope = company_scope(principal)
    now = now_iso()

    with db.transaction() as conn:
        require_project_in_company(conn, request.project_id, scope.company_id)
        resource = insert_row(conn, "resources", {
            **request.model_dump(),
            "company_id": scope.company_id,
            "status": ResourceStatus.active.value,
            "created_at": now,
            "updated_at": now,
        })

    if IS_DEV:
        print(f"[RESOURCES] Created resource_id={resource['id']}, company_id={scope.company_id}")

    return ResourceResponse(**resource)


@router.get("", response_model=List[ResourceResponse])
def list_resources(
    principal: Principal = Depends(require_action(Action.RESOURCE_LIST)),
    db: Database = Depends(get_database),
) -> List[ResourceResponse]:
    """All live company resources for admins; others see those on their projects."""
    scope = scope_for(principal, RESOURCES)
    where, params = scoped_where(scope, RESOURCES, alias="r")

    with db.connect() as conn:
        resources = fetch_all(conn, f"SELECT r.* FROM resources r WHERE {where} ORDER BY r.id", params)

    assert_rows_scoped(resources, scope.company_id, label="GET /api/resources")
    return [ResourceResponse(**resource) for resource in resources]


@router.get("/{resource_id}", response_model=ResourceResponse)
def get_resource(
    resource_id: int = Path(..., ge=1),
    principal: Principal = Depends(require_action(Action.RESOURCE_READ)),
    db: Database = Depends(get_database),
) -> ResourceResponse:
    with db.connect() as conn:
        resource = fetch_scoped(conn, RESOURCES, resource_id, scope_for(principal, RESOURCES))
    return ResourceResponse(**resource)


@router.put("/{resource_id}", response_model=ResourceResponse)
def update_resource(
    request: ResourceUpdateRequest,
    resource_id: int = Path(..., ge=1),
    principal: Principal = Depends(require_action(Action.RESOURCE_UPDATE)),
    db: Database = Depends(get_database),
) -> ResourceResponse:
    scope = company_scope(principal)
    values = update_values(request, required=("project_id", "resource_type"))

    with db.transaction() as conn:
        fetch_scoped(conn, RESOURCES, resource_id, scope)
        if "project_id" in values:
            require_project_in_company(conn, values["project_id"], scope.company_id)
        if values:
            values["updated_at"] = now_iso()
        resource = update_row(conn, "resources", resource_id, values, company_id=scope.company_id)

    return ResourceResponse(**resource)


@router.delete("/{resource_id}", response_model=MessageResponse)
def delete_resource(
    resource_id: int = Path(..., ge=1),
    principal: Principal = Depends(require_action(Action.RESOURCE_DELETE)),
    db: Database = Depends(get_database),
) -> MessageResponse:
    scope = company_scope(principal)

    with db.transaction() as conn:
        fetch_scoped(conn, RESOURCES, resource_id, scope)
        update_row(
            conn,
            "resources",
            resource_id,
            {"status": DELETED_STATUS, "updated_at": now_iso()},
            company_id=scope.company_id,
        )

    if IS_DEV:
        print(f"[RESOURCES] Soft-deleted resource_id={resource_id}, company_id={scope.company_id}")
    return MessageResponse(message="Resource marked as deleted")
