# projecthub/config.py
# Environment-aware configuration for the ProjectHub backend

import os
from typing import Literal

# Environment detection
ENV: Literal["dev", "staging", "prod"] = os.environ.get("ENV", "dev")  # type: ignore
IS_DEV = (ENV == "dev")
IS_STAGING = (ENV == "staging")
IS_PROD = (ENV == "prod")

# JWT signing configuration
JWT_SECRET = os.environ.get("JWT_SECRET", "").strip()
ALGORITHM = "HS256"

if not JWT_SECRET:
    if not IS_DEV:
        # Refuse to start: every token would be forgeable
        raise RuntimeError("JWT_SECRET must be set outside the dev environment")
    JWT_SECRET = "projecthub-dev-only-secret"
    print("[CONFIG] WARNING: JWT_SECRET not set, using insecure dev secret")

# Token lifetime (no refresh tokens: expiry forces a new login)
ACCESS_TOKEN_MINUTES = int(os.environ.get("ACCESS_TOKEN_MINUTES", "60"))

# Password hashing cost
BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "10"))

# Database configuration
# DATABASE_URL accepts any SQLAlchemy URL; SQLite file for local development
DATABASE_URL = os.environ.get("DATABASE_URL", "").strip() or "sqlite:///projecthub.db"
IS_POSTGRES = DATABASE_URL.startswith(("postgres://", "postgresql://", "postgresql+"))
IS_SQLITE = not IS_POSTGRES

# CORS origins
CORS_ORIGINS = [
    "http://localhost:3000",  # React dev server
    "http://127.0.0.1:3000",
]

frontend_url = os.environ.get("FRONTEND_URL", "")
if frontend_url:
    CORS_ORIGINS.extend(origin.strip() for origin in frontend_url.split(",") if origin.strip())

# Superadmin bootstrap (idempotent, runs at startup)
SUPERADMIN_EMAIL = os.environ.get("SUPERADMIN_EMAIL", "superadmin@projecthub.local").strip().lower()
SUPERADMIN_NAME = os.environ.get("SUPERADMIN_NAME", "Super Admin")
SUPERADMIN_PASSWORD = os.environ.get("SUPERADMIN_PASSWORD", "")
if not SUPERADMIN_PASSWORD and IS_DEV:
    SUPERADMIN_PASSWORD = "ChangeMe123!"

print(f"[CONFIG] Environment: {ENV}")
print(f"[CONFIG] Database: {'PostgreSQL' if IS_POSTGRES else 'SQLite'}")
print(f"[CONFIG] Access token: {ACCESS_TOKEN_MINUTES} minutes")
