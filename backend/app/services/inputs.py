"""
입력 해석(InputResolver)

슬롯 하나(image / audio / video1 ...)에 들어온 입력을 로컬 파일로 만든다.

- Uploaded : 업로드 계층이 이미 TempArtifactSet 안에 저장해 둠 -> 그대로 통과
- Remote   : requests 스트리밍 GET으로 임시 경로에 바로 기록
             실패하면 부분 파일을 지우고 InputUnavailable
"""

from __future__ import annotations

import asyncio
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, BinaryIO, List, Optional, Sequence, Tuple, TypeVar, Union
from urllib.parse import urlparse

import requests
from fastapi.concurrency import run_in_threadpool

from backend.app.core.config import settings
from backend.app.core.errors import InputUnavailable
from backend.app.core.logger import get_logger
from backend.app.services.storage import MaterializedFile, TempArtifactSet

logger = get_logger(__name__)

T = TypeVar("T")

# 슬롯 종류별 기본 확장자 (URL/파일명에 확장자가 없을 때)
FALLBACK_SUFFIX = {
    "image": ".jpg",
    "audio": ".mp3",
    "video": ".mp4",
}


@dataclass(frozen=True)
class Uploaded:
    local_path: Path


@dataclass(frozen=True)
class Remote:
    url: str


InputDescriptor = Union[Uploaded, Remote]


def slot_kind(slot: str) -> str:
    # "video1" -> "video", "images" -> "image"
    for kind in FALLBACK_SUFFIX:
        if slot.startswith(kind):
            return kind
    return slot


def suffix_for(name: Optional[str], slot: str) -> str:
    """URL path 또는 업로드 파일명에서 확장자 추출 (쿼리스트링 제외)."""
    path = urlparse(name).path if name else ""
    suffix = Path(path).suffix.lower()
    if suffix and len(suffix) <= 6:
        return suffix
    return FALLBACK_SUFFIX.get(slot_kind(slot), ".bin")


def descriptor_for(upload_path: Optional[Path], url: Optional[str]) -> Optional[InputDescriptor]:
    if upload_path is not None:
        return Uploaded(upload_path)
    url = (url or "").strip()
    if url:
        return Remote(url)
    return None


async def save_upload(fileobj: BinaryIO, filename: Optional[str], slot: str, artifacts: TempArtifactSet) -> Uploaded:
    """업로드 스트림을 요청 전용 임시 경로에 복사."""
    dest = artifacts.allocate(slot, suffix_for(filename, slot))

    def _copy() -> None:
        fileobj.seek(0)
        with dest.open("wb") as f:
            shutil.copyfileobj(fileobj, f, settings.DOWNLOAD_CHUNK_SIZE)

    await run_in_threadpool(_copy)
    return Uploaded(dest)


def download_file(url: str, dest: Path, slot: str) -> None:
    """
    스트리밍 다운로드 (블로킹, 스레드풀에서 호출)

    - 2xx가 아니면 실패
    - MAX_DOWNLOAD_BYTES 넘으면 중단
    - 어떤 이유로든 실패하면 부분 파일 삭제
    """
    try:
        with requests.get(url, stream=True, timeout=settings.DOWNLOAD_TIMEOUT, allow_redirects=True) as r:
            if not 200 <= r.status_code < 300:
                raise InputUnavailable(f"Failed to download {slot}: HTTP {r.status_code}", slot=slot)

            total = 0
            with dest.open("wb") as f:
                for chunk in r.iter_content(chunk_size=settings.DOWNLOAD_CHUNK_SIZE):
                    if not chunk:
                        continue
                    total += len(chunk)
                    if total > settings.MAX_DOWNLOAD_BYTES:
                        raise InputUnavailable(f"Failed to download {slot}: file too large", slot=slot)
                    f.write(chunk)
    except InputUnavailable:
        dest.unlink(missing_ok=True)
        raise
    except (requests.RequestException, OSError) as e:
        dest.unlink(missing_ok=True)
        raise InputUnavailable(f"Failed to download {slot}: {e}", slot=slot) from e

    logger.info("다운로드 완료 | slot=%s bytes=%d path=%s", slot, total, dest)


async def resolve(
    descriptor: Optional[InputDescriptor],
    slot: str,
    artifacts: TempArtifactSet,
) -> MaterializedFile:
    if descriptor is None:
        raise InputUnavailable(f"Missing required input: {slot}", slot=slot)

    if isinstance(descriptor, Uploaded):
        return artifacts.materialize(descriptor.local_path)

    url = descriptor.url
    if urlparse(url).scheme not in ("http", "https"):
        raise InputUnavailable(f"Invalid URL for {slot}: {url}", slot=slot)

    dest = artifacts.allocate(slot, suffix_for(url, slot))
    logger.info("다운로드 시작 | slot=%s url=%s", slot, url)
    await run_in_threadpool(download_file, url, dest, slot)
    return artifacts.materialize(dest)


async def gather_settled(*aws: Awaitable[T]) -> List[T]:
    """
    전부 끝날 때까지 기다린 뒤 첫 번째 에러를 올림 (결과 순서 = 인자 순서)

    gather 기본 동작처럼 먼저 터진 에러만 올리면, 아직 쓰는 중인
    다운로드/인코딩이 정리(release)와 겹친다.
    """
    results = await asyncio.gather(*aws, return_exceptions=True)
    for r in results:
        if isinstance(r, BaseException):
            raise r
    return list(results)


async def resolve_all(
    slots: Sequence[Tuple[Optional[InputDescriptor], str]],
    artifacts: TempArtifactSet,
) -> List[MaterializedFile]:
    """같은 요청의 입력 여러 개를 동시에 해석. 결과 순서 = 선언 순서."""
    return await gather_settled(*(resolve(d, slot, artifacts) for d, slot in slots))
