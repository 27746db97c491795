"""
레시피별 합성 오케스트레이션 (CompositionHandler)

상태: validating -> resolving -> building -> executing -> (streaming -> cleaning) -> done
      어느 단계에서든 failed 가능

여기 함수들은 결과 mp4 경로만 돌려준다.
스트리밍과 정리는 api 계층의 artifact_scope / 응답 객체가 맡는다.
모든 임시 경로는 인자로 받은 TempArtifactSet에 등록된다.
"""

from __future__ import annotations

from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Dict, Iterator, Optional, Sequence

from backend.app.core.config import settings
from backend.app.core.errors import InputUnavailable, InvalidInput
from backend.app.core.logger import get_logger
from backend.app.services.engine import TranscodeExecutor
from backend.app.services.inputs import InputDescriptor, gather_settled, resolve_all
from backend.app.services.jobs import (
    AudioMixSpec,
    ConcatSpec,
    ImageAudioSpec,
    Recipe,
    SlideshowSpec,
    build_audio_mix_job,
    build_concat_job,
    build_image_audio_job,
    build_normalize_job,
    build_slideshow_job,
    parse_duration,
    parse_mode,
)
from backend.app.services.manifest import write_manifest
from backend.app.services.storage import TempArtifactSet

logger = get_logger(__name__)


class Stage(str, Enum):
    VALIDATING = "validating"
    RESOLVING = "resolving"
    BUILDING = "building"
    EXECUTING = "executing"
    STREAMING = "streaming"
    CLEANING = "cleaning"
    DONE = "done"
    FAILED = "failed"


class StageLog:
    def __init__(self, recipe: Recipe, artifacts: TempArtifactSet, stage: Stage = Stage.VALIDATING):
        self.recipe = recipe
        self.request_id = artifacts.request_id
        self.stage = stage
        self._log()

    def enter(self, stage: Stage) -> None:
        self.stage = stage
        self._log()

    def _log(self) -> None:
        logger.info("stage=%s | recipe=%s request=%s", self.stage.value, self.recipe.value, self.request_id)


@contextmanager
def tracked(recipe: Recipe, artifacts: TempArtifactSet) -> Iterator[StageLog]:
    stages = StageLog(recipe, artifacts)
    try:
        yield stages
    except Exception as e:
        logger.warning(
            "stage=%s | recipe=%s request=%s failed at %s: %s",
            Stage.FAILED.value, recipe.value, stages.request_id, stages.stage.value, e,
        )
        raise


def _require(slots: Dict[str, Optional[InputDescriptor]]) -> None:
    # 하나라도 없으면 다운로드 시작 전에 실패
    for slot, descriptor in slots.items():
        if descriptor is None:
            raise InputUnavailable(f"Missing required input: {slot}", slot=slot)


async def compose_image_audio(
    image: Optional[InputDescriptor],
    audio: Optional[InputDescriptor],
    artifacts: TempArtifactSet,
    executor: TranscodeExecutor,
) -> Path:
    recipe = Recipe.IMAGE_AUDIO
    with tracked(recipe, artifacts) as stages:
        _require({"image": image, "audio": audio})

        stages.enter(Stage.RESOLVING)
        image_file, audio_file = await resolve_all([(image, "image"), (audio, "audio")], artifacts)

        stages.enter(Stage.BUILDING)
        w, h = settings.canvas
        spec = ImageAudioSpec(
            image_path=image_file.path,
            audio_path=audio_file.path,
            target_width=w,
            target_height=h,
            audio_duration=await executor.probe_duration(audio_file.path),
        )
        output = artifacts.allocate("output", ".mp4")
        job = build_image_audio_job(spec, output, fps=settings.OUTPUT_FPS)

        stages.enter(Stage.EXECUTING)
        return await executor.run_or_raise(job, recipe.error_summary)


async def compose_slideshow(
    images: Sequence[InputDescriptor],
    duration,
    artifacts: TempArtifactSet,
    executor: TranscodeExecutor,
) -> Path:
    """
    images 순서 그대로 슬라이드쇼 (업로드가 URL보다 앞에 오도록 호출자가 정렬)
    duration: 장당 초. 이상한 값이면 기본값(3초)
    """
    recipe = Recipe.SLIDESHOW
    with tracked(recipe, artifacts) as stages:
        if not images:
            raise InvalidInput("No images provided")
        if len(images) > settings.SLIDESHOW_MAX_IMAGES:
            raise InvalidInput(f"Too many images: at most {settings.SLIDESHOW_MAX_IMAGES} allowed")
        seconds = parse_duration(duration, settings.SLIDESHOW_DEFAULT_DURATION)

        stages.enter(Stage.RESOLVING)
        files = await resolve_all([(d, f"image{i}") for i, d in enumerate(images, start=1)], artifacts)

        stages.enter(Stage.BUILDING)
        spec = SlideshowSpec(tuple(f.path for f in files), seconds)
        list_path = write_manifest(artifacts, spec.ordered_image_paths, spec.per_image_duration)
        output = artifacts.allocate("output", ".mp4")
        w, h = settings.canvas
        job = build_slideshow_job(list_path, output, w, h, fps=settings.OUTPUT_FPS)

        stages.enter(Stage.EXECUTING)
        return await executor.run_or_raise(job, recipe.error_summary)


async def compose_concat(
    video1: Optional[InputDescriptor],
    video2: Optional[InputDescriptor],
    artifacts: TempArtifactSet,
    executor: TranscodeExecutor,
) -> Path:
    """
    2단계

    1) 각 영상을 공통 포맷으로 재인코딩 (코덱/해상도/fps/샘플레이트 통일)
    2) 리스트 파일로 -c copy concat

    1단계를 건너뛰면 코덱 파라미터가 다른 세그먼트에서 copy concat이 깨진다.
    """
    recipe = Recipe.CONCAT
    with tracked(recipe, artifacts) as stages:
        _require({"video1": video1, "video2": video2})

        stages.enter(Stage.RESOLVING)
        sources = await resolve_all([(video1, "video1"), (video2, "video2")], artifacts)

        stages.enter(Stage.BUILDING)
        spec = ConcatSpec(tuple(f.path for f in sources))
        w, h = settings.canvas
        audio_flags = await gather_settled(*(executor.has_audio(p) for p in spec.video_paths))
        normalize_jobs = [
            build_normalize_job(
                src,
                artifacts.allocate(f"norm{i}", ".mp4"),
                has_audio=has_audio,
                width=w,
                height=h,
                fps=settings.OUTPUT_FPS,
            )
            for i, (src, has_audio) in enumerate(zip(spec.video_paths, audio_flags), start=1)
        ]

        stages.enter(Stage.EXECUTING)
        normalized = await gather_settled(
            *(executor.run_or_raise(job, recipe.error_summary) for job in normalize_jobs)
        )
        list_path = write_manifest(artifacts, normalized, stem="concat-list")
        output = artifacts.allocate("output", ".mp4")
        return await executor.run_or_raise(build_concat_job(list_path, output), recipe.error_summary)


async def compose_audio_mix(
    video: Optional[InputDescriptor],
    audio: Optional[InputDescriptor],
    mode: Optional[str],
    artifacts: TempArtifactSet,
    executor: TranscodeExecutor,
) -> Path:
    recipe = Recipe.AUDIO_MIX
    with tracked(recipe, artifacts) as stages:
        mix_mode = parse_mode(mode)
        _require({"video": video, "audio": audio})

        stages.enter(Stage.RESOLVING)
        video_file, audio_file = await resolve_all([(video, "video"), (audio, "audio")], artifacts)

        stages.enter(Stage.BUILDING)
        spec = AudioMixSpec(video_file.path, audio_file.path, mix_mode)
        output = artifacts.allocate("output", ".mp4")
        job = build_audio_mix_job(spec, output)

        stages.enter(Stage.EXECUTING)
        return await executor.run_or_raise(job, recipe.error_summary)
