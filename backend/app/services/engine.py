"""
FFmpeg 실행기 (TranscodeExecutor)

- EngineJob -> ffmpeg argv -> subprocess.run (블로킹)
- 블로킹 호출은 전용 ThreadPoolExecutor에서 돌리고, 호출자는 future 하나만 await
- 풀 크기 = MAX_CONCURRENT_JOBS -> 동시에 도는 ffmpeg/ffprobe 개수 상한
- 결과는 Success / Failure 둘 중 하나, 재시도 없음
- 실행이 시작되면 중단 경로가 없다 (호출자가 취소돼도 프로세스 종료까지 기다림)
"""

from __future__ import annotations

import asyncio
import subprocess
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, TypeVar, Union

from backend.app.core.config import settings
from backend.app.core.errors import EngineFailure
from backend.app.core.logger import get_logger
from backend.app.services import probe
from backend.app.services.jobs import EngineJob

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Success:
    output_path: Path


@dataclass(frozen=True)
class Failure:
    message: str


EngineOutcome = Union[Success, Failure]


def build_command(job: EngineJob, ffmpeg_bin: Optional[str] = None) -> List[str]:
    cmd = [ffmpeg_bin or settings.FFMPEG_BIN, "-hide_banner", "-nostdin", "-loglevel", "error", "-y"]
    for inp in job.inputs:
        cmd += [*inp.options, "-i", inp.source]
    if job.filter_complex:
        cmd += ["-filter_complex", job.filter_complex]
    cmd += job.output_options
    cmd.append(str(job.output))
    return cmd


def _run(job: EngineJob) -> EngineOutcome:
    cmd = build_command(job)
    logger.info("FFmpeg 실행: %s", " ".join(cmd))
    try:
        p = subprocess.run(cmd, capture_output=True, text=True)
    except OSError as e:
        return Failure(str(e))
    if p.returncode != 0:
        return Failure((p.stderr or "").strip() or f"ffmpeg exited with code {p.returncode}")
    return Success(job.output)


class TranscodeExecutor:
    def __init__(self, max_workers: Optional[int] = None):
        self.max_workers = max(1, max_workers or settings.MAX_CONCURRENT_JOBS)
        self._pool = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="ffmpeg")

    async def _submit(self, fn: Callable[..., T], *args) -> T:
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(self._pool, fn, *args)
        try:
            return await asyncio.shield(future)
        except asyncio.CancelledError:
            # 엔진은 끝까지 돈다. 끝난 뒤에 취소를 올려야 정리가 결과 파일과 겹치지 않음
            await asyncio.wait({future})
            raise

    async def run(self, job: EngineJob) -> EngineOutcome:
        outcome = await self._submit(_run, job)
        if isinstance(outcome, Failure):
            logger.error("FFmpeg 실패 | job=%s\n%s", job.label, outcome.message)
        return outcome

    async def run_or_raise(self, job: EngineJob, summary: str) -> Path:
        outcome = await self.run(job)
        if isinstance(outcome, Failure):
            raise EngineFailure(summary, outcome.message)
        return outcome.output_path

    async def probe_duration(self, path: Path) -> Optional[float]:
        return await self._submit(probe.probe_duration_sec, path)

    async def has_audio(self, path: Path) -> bool:
        return await self._submit(probe.has_audio_stream, path)

    def shutdown(self) -> None:
        self._pool.shutdown(wait=True)
