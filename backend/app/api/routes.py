"""
API 라우터

- 엔드포인트 4개 + GET / 서비스 설명
- 입력 슬롯마다 파일 업로드(multipart) 또는 URL(폼 필드/JSON 바디) 둘 중 하나
- 요청마다 artifact_scope 하나: 업로드 사본부터 결과 mp4까지 전부 여기서 정리됨
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ValidationError
from starlette.datastructures import UploadFile

from backend.app.api.responses import stream_result
from backend.app.core.errors import InvalidInput
from backend.app.core.logger import get_logger
from backend.app.schemas import (
    ConcatFields,
    ErrorResponse,
    ImageAudioFields,
    ServiceInfo,
    SlideshowFields,
    VideoAudioFields,
)
from backend.app.services.compose import (
    compose_audio_mix,
    compose_concat,
    compose_image_audio,
    compose_slideshow,
)
from backend.app.services.engine import TranscodeExecutor
from backend.app.services.inputs import InputDescriptor, Remote, Uploaded, descriptor_for, save_upload
from backend.app.services.jobs import Recipe
from backend.app.services.storage import TempArtifactSet, artifact_scope

logger = get_logger(__name__)
router = APIRouter(tags=["composition"])

SERVICE_VERSION = "1.0.0"

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "입력 누락/다운로드 실패/잘못된 파라미터"},
    500: {"model": ErrorResponse, "description": "FFmpeg 실패 (details에 엔진 메시지)"},
}

F = TypeVar("F", bound=BaseModel)


def get_executor(request: Request) -> TranscodeExecutor:
    return request.app.state.executor


@dataclass
class RequestInputs:
    fields: Any
    uploads: Dict[str, List[Uploaded]] = field(default_factory=dict)

    def upload(self, slot: str) -> Optional[Uploaded]:
        files = self.uploads.get(slot) or []
        return files[0] if files else None

    def descriptor(self, slot: str, url: Optional[str]) -> Optional[InputDescriptor]:
        uploaded = self.upload(slot)
        return descriptor_for(uploaded.local_path if uploaded else None, url)


async def read_inputs(
    request: Request,
    model: Type[F],
    file_slots: Sequence[str],
    artifacts: TempArtifactSet,
) -> RequestInputs:
    """
    multipart 폼 또는 JSON 바디를 읽어서
    - 파일은 요청 전용 임시 경로로 복사 (artifacts에 등록)
    - 텍스트 필드는 model로 검증
    """
    uploads: Dict[str, List[Uploaded]] = {}
    data: Dict[str, Any] = {}

    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            raise InvalidInput("Malformed JSON body") from None
        if not isinstance(body, dict):
            raise InvalidInput("JSON body must be an object")
        data = body
    else:
        async with request.form() as form:
            for key, value in form.multi_items():
                if isinstance(value, UploadFile):
                    # 빈 파일 필드(파일 선택 안 함)는 무시
                    if key in file_slots and value.filename:
                        saved = await save_upload(value.file, value.filename, key, artifacts)
                        uploads.setdefault(key, []).append(saved)
                    continue
                if key in data:
                    prev = data[key]
                    data[key] = (prev if isinstance(prev, list) else [prev]) + [value]
                else:
                    data[key] = value

    try:
        fields = model.model_validate(data)
    except ValidationError as e:
        raise InvalidInput(f"Invalid request fields: {e.errors()[0].get('msg', 'invalid value')}") from None
    return RequestInputs(fields=fields, uploads=uploads)


@router.get("/", response_model=ServiceInfo)
def service_info():
    return ServiceInfo(
        version=SERVICE_VERSION,
        endpoints={
            "/image-audio": "POST - Combine image and audio into video",
            "/slideshow": "POST - Create slideshow from multiple images",
            "/concat-videos": "POST - Concatenate two videos",
            "/video-audio": "POST - Add audio to video (replace or background)",
        },
    )


@router.post("/image-audio", responses=ERROR_RESPONSES)
async def image_audio(request: Request, executor: TranscodeExecutor = Depends(get_executor)):
    with artifact_scope(Recipe.IMAGE_AUDIO.value) as artifacts:
        inputs = await read_inputs(request, ImageAudioFields, ("image", "audio"), artifacts)
        output = await compose_image_audio(
            inputs.descriptor("image", inputs.fields.imageUrl),
            inputs.descriptor("audio", inputs.fields.audioUrl),
            artifacts,
            executor,
        )
        return stream_result(output, Recipe.IMAGE_AUDIO, artifacts)


@router.post("/slideshow", responses=ERROR_RESPONSES)
async def slideshow(request: Request, executor: TranscodeExecutor = Depends(get_executor)):
    with artifact_scope(Recipe.SLIDESHOW.value) as artifacts:
        inputs = await read_inputs(request, SlideshowFields, ("images",), artifacts)
        # 업로드 먼저, 그다음 URL 순서
        images: List[InputDescriptor] = list(inputs.uploads.get("images", []))
        images += [Remote(url) for url in inputs.fields.url_list()]
        output = await compose_slideshow(images, inputs.fields.duration, artifacts, executor)
        return stream_result(output, Recipe.SLIDESHOW, artifacts)


@router.post("/concat-videos", responses=ERROR_RESPONSES)
async def concat_videos(request: Request, executor: TranscodeExecutor = Depends(get_executor)):
    with artifact_scope(Recipe.CONCAT.value) as artifacts:
        inputs = await read_inputs(request, ConcatFields, ("video1", "video2"), artifacts)
        output = await compose_concat(
            inputs.descriptor("video1", inputs.fields.video1Url),
            inputs.descriptor("video2", inputs.fields.video2Url),
            artifacts,
            executor,
        )
        return stream_result(output, Recipe.CONCAT, artifacts)


@router.post("/video-audio", responses=ERROR_RESPONSES)
async def video_audio(request: Request, executor: TranscodeExecutor = Depends(get_executor)):
    with artifact_scope(Recipe.AUDIO_MIX.value) as artifacts:
        inputs = await read_inputs(request, VideoAudioFields, ("video", "audio"), artifacts)
        output = await compose_audio_mix(
            inputs.descriptor("video", inputs.fields.videoUrl),
            inputs.descriptor("audio", inputs.fields.audioUrl),
            inputs.fields.mode,
            artifacts,
            executor,
        )
        return stream_result(output, Recipe.AUDIO_MIX, artifacts)
