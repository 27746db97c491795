"""
합성 파이프라인 예외

- InputUnavailable : 입력 슬롯 누락, 잘못된 URL, 다운로드 실패 (400)
- InvalidInput     : mode 오류, 이미지 개수 오류, 깨진 요청 바디 (400)
- EngineFailure    : FFmpeg가 에러를 보고함 (500, details에 엔진 메시지 그대로)

main.py의 exception handler 하나가 전부 {error, details?} JSON으로 바꾼다.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class CompositionError(Exception):
    status_code = 400

    def __init__(self, summary: str, details: Optional[str] = None):
        super().__init__(summary)
        self.summary = summary
        self.details = details

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.summary}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class InputUnavailable(CompositionError):
    def __init__(self, summary: str, slot: Optional[str] = None):
        super().__init__(summary)
        self.slot = slot


class InvalidInput(CompositionError):
    pass


class EngineFailure(CompositionError):
    status_code = 500

    def __init__(self, summary: str, details: str):
        super().__init__(summary, details)
