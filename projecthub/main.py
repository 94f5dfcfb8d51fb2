# ---------------------------------------------------------
# projecthub/main.py
# ProjectHub - Multi-tenant Project Management Backend
#
# Run: uvicorn projecthub.main:app --reload (from repo root)
#
# - FastAPI + SQLAlchemy (SQLite for dev, PostgreSQL in production)
# - /api/auth       : login, current principal
# - /api/companies  : company management, plans, status toggle (superadmin)
# - /api/users      : seat-limited user administration
# - /api/projects, /api/tasks, /api/resources, /api/risks, /api/budgets
# - /api/activity   : risk and budget audit trail
# ---------------------------------------------------------

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from projecthub.config import CORS_ORIGINS, IS_DEV, IS_PROD
from projecthub.db import Database
from projecthub.errors import ProjectHubError
from projecthub.migrate import run_migrations
from projecthub import (
    routes_activity,
    routes_auth,
    routes_budgets,
    routes_companies,
    routes_projects,
    routes_resources,
    routes_risks,
    routes_tasks,
    routes_users,
)


def error_body(message: str, details: Optional[str] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"error": message}
    if details:
        body["details"] = details
    return body


def _validation_details(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        parts.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return "; ".join(parts)


def register_exception_handlers(app: FastAPI) -> None:
    """Render every failure as {"error": ..., "details"?: ...}."""

    @app.exception_handler(ProjectHubError)
    async def projecthub_error_handler(request: Request, exc: ProjectHubError) -> JSONResponse:
        if exc.status_code >= 500:
            print(f"[ERROR] {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc.details))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=error_body(str(exc.detail)))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content=error_body("Validation failed", _validation_details(exc)))

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        print(f"[ERROR] Database error on {request.method} {request.url.path}: {type(exc).__name__}")
        return JSONResponse(status_code=500, content=error_body("Database error"))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        print(f"[ERROR] Unhandled {type(exc).__name__} on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content=error_body("Internal server error"))


def create_app(database: Optional[Database] = None, bootstrap_superadmin: bool = True) -> FastAPI:
    """
    Build the application around an explicit storage handle.

    The schema and the superadmin are ensured at startup (idempotent).
    """
    db = database or Database()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        run_migrations(db, bootstrap_superadmin=bootstrap_superadmin)
        yield
        if database is None:
            db.dispose()

    app = FastAPI(title="ProjectHub API", version="1.0.0", lifespan=lifespan)
    app.state.db = db

    # CORS configuration from config module
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS if IS_PROD else ["*"],  # Restrict origins in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    @app.get("/health")
    def health() -> Dict[str, str]:
        return {"status": "ok"}

    for module in (
        routes_auth,
        routes_companies,
        routes_users,
        routes_projects,
        routes_tasks,
        routes_resources,
        routes_risks,
        routes_budgets,
        routes_activity,
    ):
        app.include_router(module.router)

    if IS_DEV:
        print(f"[APP] Registered {len(app.routes)} routes")

    return app


app = create_app()
