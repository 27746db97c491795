"""
Pydantic 스키마

- 요청: 텍스트 필드(URL, duration, mode). multipart 폼이든 JSON 바디든 같은 모델로 검증
- 응답: 에러 JSON, GET / 서비스 설명
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class _Fields(BaseModel):
    model_config = ConfigDict(extra="ignore")


class ImageAudioFields(_Fields):
    imageUrl: Optional[str] = Field(default=None, description="이미지 URL (image 파일 대신)")
    audioUrl: Optional[str] = Field(default=None, description="오디오 URL (audio 파일 대신)")


class SlideshowFields(_Fields):
    imageUrls: Union[List[str], str, None] = Field(default=None, description="이미지 URL 배열 또는 콤마 구분 문자열")
    duration: Any = Field(default=None, description="장당 초 (기본 3)")

    def url_list(self) -> List[str]:
        raw = self.imageUrls
        if raw is None:
            return []
        if isinstance(raw, str):
            raw = raw.split(",")
        return [u.strip() for u in raw if u and u.strip()]


class ConcatFields(_Fields):
    video1Url: Optional[str] = None
    video2Url: Optional[str] = None


class VideoAudioFields(_Fields):
    videoUrl: Optional[str] = None
    audioUrl: Optional[str] = None
    mode: Optional[str] = Field(default=None, description="replace | background (기본 replace)")


class ErrorResponse(BaseModel):
    error: str
    details: Optional[str] = None


class ServiceInfo(BaseModel):
    status: str = "FFmpeg Service Running"
    version: str
    endpoints: Dict[str, str]
