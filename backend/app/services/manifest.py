"""
concat demuxer용 리스트 파일

형식 (ffmpeg -f concat -safe 0 -i list.txt)

    file '/tmp/a.jpg'
    duration 3
    file '/tmp/b.jpg'
    duration 3
    file '/tmp/b.jpg'

duration을 쓰는 경우 마지막 파일을 한 번 더 적어야 마지막 duration이 먹는다.
(마지막 줄은 실제로 재생되지 않음)
경로는 그대로 쓴다. 절대경로/존재 여부는 호출하는 쪽 책임.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence, Union

from backend.app.services.storage import TempArtifactSet

PathLike = Union[str, Path]


def _format_duration(seconds: float) -> str:
    # 3.0 -> "3", 2.5 -> "2.5"
    return f"{seconds:g}"


def build_manifest(paths: Sequence[PathLike], duration: Optional[float] = None) -> str:
    if not paths:
        raise ValueError("manifest needs at least one file")

    lines = []
    for p in paths:
        lines.append(f"file '{p}'")
        if duration is not None:
            lines.append(f"duration {_format_duration(duration)}")

    if duration is not None:
        lines.append(f"file '{paths[-1]}'")
    return "\n".join(lines) + "\n"


def write_manifest(
    artifacts: TempArtifactSet,
    paths: Sequence[PathLike],
    duration: Optional[float] = None,
    stem: str = "list",
) -> Path:
    list_path = artifacts.allocate(stem, ".txt")
    list_path.write_text(build_manifest(paths, duration), encoding="utf-8")
    return list_path
