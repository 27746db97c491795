"""
설정 로더

- .env + 환경변수에서 읽고, 모르는 키는 무시(extra ignore)
- Python 3.9+ 호환 (`str | None` 같은 3.10+ 문법 금지)
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Optional, Tuple

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_workers() -> int:
    # 인코딩은 CPU를 다 먹으므로 코어 절반만 동시에 돌린다
    return max(1, (os.cpu_count() or 2) // 2)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # --- Paths / Engine ---
    TEMP_DIR: str = Field(default_factory=tempfile.gettempdir)
    FFMPEG_BIN: str = "ffmpeg"
    FFPROBE_BIN: Optional[str] = None

    # --- Video ---
    CANVAS_SIZE: str = "1920x1080"  # 16:9, 모든 레시피 공통 캔버스
    OUTPUT_FPS: int = 30

    # --- Slideshow ---
    SLIDESHOW_DEFAULT_DURATION: float = 3.0
    SLIDESHOW_MAX_IMAGES: int = 20

    # --- Concurrency ---
    MAX_CONCURRENT_JOBS: int = Field(default_factory=_default_workers)

    # --- Download ---
    DOWNLOAD_TIMEOUT: float = 120.0
    DOWNLOAD_CHUNK_SIZE: int = 1024 * 1024
    MAX_DOWNLOAD_BYTES: int = 500 * 1024 * 1024

    # --- Server ---
    LOG_LEVEL: str = "INFO"
    API_HOST: str = "127.0.0.1"
    API_PORT: int = 3000

    @property
    def canvas(self) -> Tuple[int, int]:
        w, h = self.CANVAS_SIZE.lower().split("x")
        return int(w), int(h)

    @property
    def ffprobe_bin(self) -> str:
        # ffprobe도 같은 prefix를 쓰도록 맞추기
        if self.FFPROBE_BIN:
            return self.FFPROBE_BIN
        if Path(self.FFMPEG_BIN).name == "ffmpeg":
            return "ffprobe"
        return str(Path(self.FFMPEG_BIN).with_name("ffprobe"))


settings = Settings()
