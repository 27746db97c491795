"""
스토리지 유틸 - 요청 단위 임시 파일 관리

규칙
- 요청 하나 = TempArtifactSet 하나. 이 요청이 만든 경로는 전부 여기에 등록
  (업로드 사본, 다운로드, 중간 재인코딩, concat 리스트, 결과 mp4)
- 파일 이름은 `<recipe>-<ms timestamp>-<hex>-<stem>-<n><suffix>` 라서
  요청끼리 같은 경로를 절대 공유하지 않는다
- release()는 몇 번 불러도 한 번만 지운다 (없는 파일은 그냥 넘어감)
"""

from __future__ import annotations

import itertools
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Union

from backend.app.core.config import settings
from backend.app.core.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class MaterializedFile:
    path: Path
    owning_request: str
    created_at: datetime = field(default_factory=datetime.now)


class TempArtifactSet:
    def __init__(self, label: str, root: Optional[Union[str, Path]] = None):
        self.root = Path(root or settings.TEMP_DIR)
        self.request_id = f"{label}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"
        self.handed_off = False
        self._paths: List[Path] = []
        self._released = False
        self._seq = itertools.count(1)

    @property
    def paths(self) -> Tuple[Path, ...]:
        return tuple(self._paths)

    @property
    def released(self) -> bool:
        return self._released

    def add(self, path: Union[str, Path]) -> Path:
        if self._released:
            raise RuntimeError(f"artifact set {self.request_id} already released")
        path = Path(path)
        if path not in self._paths:
            self._paths.append(path)
        return path

    def allocate(self, stem: str, suffix: str) -> Path:
        """새 임시 경로를 예약하고 등록한다 (파일은 만들지 않음)."""
        self.root.mkdir(parents=True, exist_ok=True)
        path = self.root / f"{self.request_id}-{stem}-{next(self._seq)}{suffix}"
        return self.add(path)

    def materialize(self, path: Union[str, Path]) -> MaterializedFile:
        return MaterializedFile(path=self.add(path), owning_request=self.request_id)

    def hand_off(self) -> None:
        # 응답 스트리밍이 끝난 뒤 release하는 쪽으로 소유권을 넘김
        self.handed_off = True

    def release(self) -> int:
        if self._released:
            return 0
        self._released = True

        removed = 0
        for path in self._paths:
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning("임시 파일 삭제 실패: %s (%s)", path, e)
        logger.info("정리 완료 | request=%s removed=%d tracked=%d", self.request_id, removed, len(self._paths))
        return removed


@contextmanager
def artifact_scope(label: str, root: Optional[Union[str, Path]] = None) -> Iterator[TempArtifactSet]:
    """
    요청 하나의 임시 파일 수명

    - 예외로 빠져나가면 즉시 release
    - 정상 종료인데 hand_off()가 안 됐으면 여기서 release
    - hand_off()가 됐으면 응답 전송이 끝난 뒤 응답 객체가 release
    """
    artifacts = TempArtifactSet(label, root)
    try:
        yield artifacts
    except BaseException:
        artifacts.release()
        raise
    else:
        if not artifacts.handed_off:
            artifacts.release()
