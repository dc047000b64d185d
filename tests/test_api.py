from __future__ import annotations

import json
import sys
import time
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from sql_dump_loader.api.dependencies import (
    get_import_service,
    get_settings,
    get_upload_receiver,
)
from sql_dump_loader.main import app

_AUTH = ("loader", "secret")
_ACCEPTED = {"message": "Upload complete. SQL migration started."}


def _clear_caches() -> None:
    get_settings.cache_clear()
    get_import_service.cache_clear()
    get_upload_receiver.cache_clear()


def _configure(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
    client_script: str = "import sys; sys.stdin.buffer.read()",
    **overrides: str,
) -> None:
    env = {
        "SQL_LOADER_UPLOAD_DIR": str(tmp_path / "uploads"),
        "SQL_LOADER_WORK_DIR": str(tmp_path / "work"),
        "SQL_LOADER_BASIC_AUTH_USERNAME": _AUTH[0],
        "SQL_LOADER_BASIC_AUTH_PASSWORD": _AUTH[1],
        "SQL_LOADER_EXECUTION_BACKEND": "process",
        "SQL_LOADER_PROCESS_COMMAND": json.dumps([sys.executable, "-c", client_script]),
        "SQL_LOADER_SHUTDOWN_TIMEOUT_SECONDS": "5",
        **overrides,
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    _clear_caches()


@pytest.fixture(autouse=True)
def _reset_dependencies() -> Iterator[None]:
    _clear_caches()
    yield
    _clear_caches()


def _wait_for_terminal_state(client: TestClient, location: str) -> dict[str, Any]:
    deadline = time.monotonic() + 10.0
    while True:
        body = client.get(location, auth=_AUTH).json()
        if body["state"] in {"COMPLETED", "FAILED"} or time.monotonic() > deadline:
            return body
        time.sleep(0.05)


def test_health(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    _configure(monkeypatch, tmp_path)

    with TestClient(app) as client:
        response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_upload_without_credentials_returns_401(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> None:
    _configure(monkeypatch, tmp_path)

    with TestClient(app) as client:
        response = client.post("/api/upload", content=b"SELECT 1;\n")
        wrong = client.post("/api/upload", content=b"SELECT 1;\n", auth=("loader", "nope"))

    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Basic"
    assert wrong.status_code == 401
    assert not any((tmp_path / "uploads").iterdir())


def test_upload_starts_import_and_forwards_dump(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> None:
    captured = tmp_path / "captured.sql"
    script = (
        "import pathlib, sys; "
        f"pathlib.Path({str(captured)!r}).write_bytes(sys.stdin.buffer.read())"
    )
    _configure(monkeypatch, tmp_path, client_script=script)
    dump = b"INSERT INTO t VALUES (1);\nINSERT INTO t VALUES (2);\n"

    with TestClient(app) as client:
        response = client.post(
            "/api/upload",
            params={"filename": "dump.sql"},
            content=dump,
            auth=_AUTH,
        )
        assert response.status_code == 200
        assert response.json() == _ACCEPTED
        location = response.headers["location"]
        assert location.startswith("/api/jobs/")

        job = _wait_for_terminal_state(client, location)

    assert job["state"] == "COMPLETED"
    assert job["dumpFile"] == "dump.sql"
    assert job["dumpSizeBytes"] == len(dump)
    assert job["progress"]["bytesRead"] == len(dump)
    assert job["progress"]["percentComplete"] == 100.0
    assert captured.read_bytes() == dump
    uploads = list((tmp_path / "uploads").iterdir())
    assert len(uploads) == 1
    assert uploads[0].name.startswith("upload-")
    assert uploads[0].suffix == ".sql"


def test_failing_client_still_reports_upload_success(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> None:
    _configure(
        monkeypatch,
        tmp_path,
        client_script="import sys; sys.stdin.buffer.read(); sys.exit(1)",
    )

    with TestClient(app) as client:
        response = client.post(
            "/api/upload?filename=dump.sql",
            content=b"INSERT INTO t VALUES (1);\n",
            auth=_AUTH,
        )
        assert response.status_code == 200
        assert response.json() == _ACCEPTED

        job = _wait_for_terminal_state(client, response.headers["location"])

    assert job["state"] == "FAILED"
    assert job["errorKind"] == "ExecutionFailed"
    assert "exited with code 1" in job["errorMessage"]


def test_empty_body_returns_400(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    _configure(monkeypatch, tmp_path)

    with TestClient(app) as client:
        response = client.post("/api/upload", content=b"", auth=_AUTH)
        jobs = client.get("/api/jobs", auth=_AUTH)

    assert response.status_code == 400
    assert response.json() == {"detail": "No body stream"}
    assert jobs.json() == {"jobs": []}
    assert not any((tmp_path / "uploads").iterdir())


def test_oversized_body_returns_413(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    _configure(monkeypatch, tmp_path, SQL_LOADER_MAX_BODY_SIZE_BYTES="10")

    with TestClient(app) as client:
        response = client.post("/api/upload", content=b"x" * 20, auth=_AUTH)

    assert response.status_code == 413
    assert not any((tmp_path / "uploads").iterdir())


def test_unknown_job_returns_404(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    _configure(monkeypatch, tmp_path)

    with TestClient(app) as client:
        response = client.get("/api/jobs/does-not-exist", auth=_AUTH)

    assert response.status_code == 404


def test_jobs_require_credentials(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    _configure(monkeypatch, tmp_path)

    with TestClient(app) as client:
        response = client.get("/api/jobs")

    assert response.status_code == 401
