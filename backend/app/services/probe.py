"""
ffprobe 유틸 (블로킹 - TranscodeExecutor 풀 안에서 호출)
"""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Optional

from backend.app.core.config import settings
from backend.app.core.logger import get_logger

logger = get_logger(__name__)


def _ffprobe(args: list[str]) -> subprocess.CompletedProcess:
    cmd = [settings.ffprobe_bin, "-v", "error", *args]
    try:
        return subprocess.run(cmd, capture_output=True, text=True)
    except OSError as e:
        return subprocess.CompletedProcess(cmd, 127, "", str(e))


def probe_duration_sec(path: Path) -> Optional[float]:
    # 컨테이너 기준 길이(초). 측정 실패면 None
    p = _ffprobe([
        "-show_entries", "format=duration",
        "-of", "default=noprint_wrappers=1:nokey=1",
        str(path),
    ])
    if p.returncode != 0:
        logger.warning("ffprobe 실패: %s\n%s", path, p.stderr)
        return None
    try:
        value = float((p.stdout or "").strip())
    except ValueError:
        return None
    return value if value > 0 else None


def has_audio_stream(path: Path) -> bool:
    p = _ffprobe([
        "-select_streams", "a",
        "-show_entries", "stream=index",
        "-of", "csv=p=0",
        str(path),
    ])
    if p.returncode != 0:
        # 판정 불가면 있다고 보고 진행 (없으면 재인코딩 단계에서 엔진이 에러를 냄)
        logger.warning("ffprobe 실패: %s\n%s", path, p.stderr)
        return True
    return bool((p.stdout or "").strip())
