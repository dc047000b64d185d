"""Dependency providers for FastAPI routes."""

import secrets
from functools import lru_cache

from fastapi import Depends, HTTPException
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from sql_dump_loader.application.services import ImportJobService, UploadReceiver
from sql_dump_loader.bootstrap import build_import_service, build_upload_receiver
from sql_dump_loader.config import Settings

_basic_auth = HTTPBasic(auto_error=False)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return singleton settings."""

    return Settings()


@lru_cache(maxsize=1)
def get_import_service() -> ImportJobService:
    """Return singleton service graph."""

    return build_import_service(get_settings())


@lru_cache(maxsize=1)
def get_upload_receiver() -> UploadReceiver:
    """Return singleton upload receiver."""

    return build_upload_receiver(get_settings())


def _matches(supplied: str, expected: str) -> bool:
    return secrets.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8"))


def require_basic_auth(
    credentials: HTTPBasicCredentials | None = Depends(_basic_auth),
) -> str:
    """Check HTTP basic credentials against settings and return the user name."""

    settings = get_settings()
    authorized = (
        credentials is not None
        and settings.basic_auth_configured
        and _matches(credentials.username, settings.basic_auth_username or "")
        and _matches(credentials.password, settings.basic_auth_password or "")
    )
    if not authorized:
        raise HTTPException(
            status_code=401,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Basic"},
        )
    assert credentials is not None
    return credentials.username


__all__ = [
    "get_import_service",
    "get_settings",
    "get_upload_receiver",
    "require_basic_auth",
]
