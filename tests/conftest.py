from __future__ import annotations

import os

os.environ.setdefault("LOG_LEVEL", "WARNING")

from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import pytest
import requests
from fastapi.testclient import TestClient

from backend.app.core.config import settings
from backend.app.main import create_app
from backend.app.services import inputs
from backend.app.services.engine import EngineOutcome, Failure, Success, TranscodeExecutor
from backend.app.services.jobs import EngineJob


class FakeExecutor(TranscodeExecutor):
    """ffmpeg 대신 결과 파일만 만들어 주는 실행기."""

    def __init__(
        self,
        fail_labels: Sequence[str] = (),
        message: str = "Conversion failed: invalid data found",
        duration: Optional[float] = 2.0,
        audio: bool = True,
    ):
        super().__init__(max_workers=1)
        self.fail_labels = set(fail_labels)
        self.message = message
        self.duration = duration
        self.audio = audio
        self.jobs: List[EngineJob] = []
        self.manifests: List[str] = []

    async def run(self, job: EngineJob) -> EngineOutcome:
        self.jobs.append(job)
        for inp in job.inputs:
            if "concat" in inp.options:
                self.manifests.append(Path(inp.source).read_text(encoding="utf-8"))
        if job.label in self.fail_labels:
            job.output.write_bytes(b"partial")
            return Failure(self.message)
        job.output.write_bytes(b"fake-mp4")
        return Success(job.output)

    async def probe_duration(self, path: Path) -> Optional[float]:
        return self.duration

    async def has_audio(self, path: Path) -> bool:
        return self.audio


class FakeHTTPResponse:
    def __init__(self, status_code: int = 200, chunks: Sequence[bytes] = (b"remote-bytes",), fail_after: bool = False):
        self.status_code = status_code
        self.chunks = list(chunks)
        self.fail_after = fail_after

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def iter_content(self, chunk_size: int = 1):
        for chunk in self.chunks:
            yield chunk
        if self.fail_after:
            raise requests.ConnectionError("connection reset by peer")


RemoteTable = Dict[str, Union[FakeHTTPResponse, Exception]]


@pytest.fixture()
def temp_dir(tmp_path: Path, monkeypatch) -> Path:
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.setattr(settings, "TEMP_DIR", str(work))
    return work


@pytest.fixture()
def remote(monkeypatch) -> RemoteTable:
    """URL -> 가짜 응답 (또는 예외). 등록 안 된 URL은 404."""
    table: RemoteTable = {}

    def fake_get(url, **kwargs):
        entry = table.get(url, FakeHTTPResponse(status_code=404, chunks=()))
        if isinstance(entry, Exception):
            raise entry
        return entry

    monkeypatch.setattr(inputs.requests, "get", fake_get)
    return table


@pytest.fixture()
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture()
def client(temp_dir: Path, executor: FakeExecutor):
    with TestClient(create_app(executor)) as c:
        yield c


@pytest.fixture()
def leftovers(temp_dir: Path):
    """temp_dir에 남은 파일 이름 목록."""

    def _list() -> List[str]:
        return sorted(p.name for p in temp_dir.iterdir())

    return _list
