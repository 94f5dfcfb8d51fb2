"""
projecthub/dependencies.py

Reusable FastAPI dependencies for authorization.
"""

from __future__ import annotations

from typing import Callable

from fastapi import Depends

from projecthub.auth_context import Principal, require_auth_context
from projecthub.authz import Action, require


def require_action(action: Action) -> Callable:
    """
    FastAPI dependency factory enforcing one policy action.

    The principal is passed on so handlers do not need a second dependency
    for identity.

    Usage in routes:
        @router.post("/projects")
        def create_project(principal: Principal = Depends(require_action(Action.PROJECT_CREATE))):
            ...

    Raises:
        Unauthenticated(401) / Forbidden(403): from the access guard
        Forbidden(403): the policy denies the action
    """
    def _check_action(principal: Principal = Depends(require_auth_context)) -> Principal:
        require(principal, action)
        return principal

    _check_action.__name__ = f"require_{action.name.lower()}"
    return _check_action
