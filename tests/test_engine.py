from __future__ import annotations

import asyncio
import stat
import threading
import time
from pathlib import Path

import pytest

from backend.app.core.config import settings
from backend.app.core.errors import EngineFailure
from backend.app.services import engine
from backend.app.services.engine import Failure, Success, TranscodeExecutor
from backend.app.services.jobs import EngineInput, EngineJob


def _fake_ffmpeg(tmp_path: Path, body: str) -> Path:
    script = tmp_path / "ffmpeg"
    script.write_text("#!/bin/sh\n" + body + "\n")
    script.chmod(script.stat().st_mode | stat.S_IEXEC)
    return script


def _job(tmp_path: Path) -> EngineJob:
    return EngineJob(inputs=[EngineInput(str(tmp_path / "in.mp4"))], output=tmp_path / "out.mp4", label="test")


def test_success_outcome(tmp_path: Path, monkeypatch) -> None:
    # 마지막 인자(출력 경로)에 파일을 만들고 정상 종료
    monkeypatch.setattr(settings, "FFMPEG_BIN", str(_fake_ffmpeg(tmp_path, 'for last; do :; done; : > "$last"')))
    executor = TranscodeExecutor(max_workers=1)

    outcome = asyncio.run(executor.run(_job(tmp_path)))

    assert outcome == Success(tmp_path / "out.mp4")
    assert (tmp_path / "out.mp4").exists()
    executor.shutdown()


def test_failure_carries_engine_message_verbatim(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(
        settings,
        "FFMPEG_BIN",
        str(_fake_ffmpeg(tmp_path, 'echo "in.mp4: Invalid data found when processing input" >&2; exit 1')),
    )
    executor = TranscodeExecutor(max_workers=1)

    outcome = asyncio.run(executor.run(_job(tmp_path)))
    assert outcome == Failure("in.mp4: Invalid data found when processing input")

    with pytest.raises(EngineFailure) as exc:
        asyncio.run(executor.run_or_raise(_job(tmp_path), "Error processing video"))
    assert exc.value.status_code == 500
    assert exc.value.to_payload() == {
        "error": "Error processing video",
        "details": "in.mp4: Invalid data found when processing input",
    }
    executor.shutdown()


def test_missing_binary_is_a_failure(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(settings, "FFMPEG_BIN", str(tmp_path / "no-such-ffmpeg"))
    executor = TranscodeExecutor(max_workers=1)

    outcome = asyncio.run(executor.run(_job(tmp_path)))

    assert isinstance(outcome, Failure)
    assert "no-such-ffmpeg" in outcome.message
    executor.shutdown()


def test_worker_pool_bounds_concurrent_jobs(tmp_path: Path, monkeypatch) -> None:
    lock = threading.Lock()
    state = {"running": 0, "peak": 0}

    def fake_run(job):
        with lock:
            state["running"] += 1
            state["peak"] = max(state["peak"], state["running"])
        time.sleep(0.05)
        with lock:
            state["running"] -= 1
        return Success(job.output)

    monkeypatch.setattr(engine, "_run", fake_run)
    executor = TranscodeExecutor(max_workers=2)

    async def run_many():
        return await asyncio.gather(*(executor.run(_job(tmp_path)) for _ in range(6)))

    outcomes = asyncio.run(run_many())

    assert len(outcomes) == 6
    assert state["peak"] <= 2
    executor.shutdown()


def test_default_pool_size_comes_from_settings(monkeypatch) -> None:
    monkeypatch.setattr(settings, "MAX_CONCURRENT_JOBS", 3)
    executor = TranscodeExecutor()

    assert executor.max_workers == 3
    executor.shutdown()
