"""Import job status routes."""

from __future__ import annotations

from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, Path

from sql_dump_loader.api.dependencies import get_import_service, require_basic_auth
from sql_dump_loader.application.services import ImportJobService
from sql_dump_loader.domain.errors import ImportJobNotFoundError
from sql_dump_loader.domain.monitoring_models import ImportJobListResponse, ImportJobResponse

router = APIRouter(
    prefix="/jobs",
    tags=["import jobs"],
    dependencies=[Depends(require_basic_auth)],
)


def _raise_http_exception(exc: Exception) -> NoReturn:
    if isinstance(exc, ImportJobNotFoundError):
        raise HTTPException(status_code=404, detail=str(exc))
    raise HTTPException(status_code=500, detail="Unexpected import job error")


@router.get("", response_model=ImportJobListResponse, status_code=200)
async def list_import_jobs(
    service: ImportJobService = Depends(get_import_service),
) -> ImportJobListResponse:
    """List import jobs with progress snapshots."""

    try:
        return await service.list_jobs()
    except Exception as exc:  # noqa: BLE001
        _raise_http_exception(exc)


@router.get("/{id}", response_model=ImportJobResponse, status_code=200, name="get_import_job")
async def get_import_job(
    id: str = Path(...),
    service: ImportJobService = Depends(get_import_service),
) -> ImportJobResponse:
    """Get one import job with its progress snapshot."""

    try:
        return await service.get_job_info(id)
    except Exception as exc:  # noqa: BLE001
        _raise_http_exception(exc)


__all__ = ["router"]
