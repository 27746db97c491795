"""
레시피 -> 엔진 작업(EngineJob) 변환

레시피 4종
- ImageAudio : 이미지 1장을 오디오 길이만큼 루프, 1920x1080 레터박스
- Slideshow  : 이미지 N장 x duration초, concat demuxer + 같은 캔버스
- Concat     : 영상 2개를 각각 공통 포맷으로 재인코딩 -> 리스트로 -c copy 이어붙이기
- AudioMix   : replace(원본 오디오 버림, 짧은 쪽 기준) / background(amix, 원본 오디오 길이 기준)

여기서는 FFmpeg를 실행하지 않는다. 입력/필터/출력 옵션만 만든다.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple, Union

from backend.app.core.errors import InvalidInput

PathLike = Union[str, Path]

AUDIO_CODEC = ["-c:a", "aac", "-b:a", "192k"]
VIDEO_CODEC = ["-c:v", "libx264", "-preset", "ultrafast", "-pix_fmt", "yuv420p"]

# Concat 중간 파일 공통 스펙 (copy concat은 세그먼트 코덱 파라미터가 같아야 함)
NORMALIZED_SAMPLE_RATE = 44100
NORMALIZED_CHANNELS = 2
NORMALIZED_TIMESCALE = 90000


class Recipe(str, Enum):
    IMAGE_AUDIO = "image-audio"
    SLIDESHOW = "slideshow"
    CONCAT = "concat"
    AUDIO_MIX = "video-audio"

    @property
    def download_name(self) -> str:
        return _DOWNLOAD_NAMES[self]

    @property
    def error_summary(self) -> str:
        return _ERROR_SUMMARIES[self]


_DOWNLOAD_NAMES = {
    Recipe.IMAGE_AUDIO: "output.mp4",
    Recipe.SLIDESHOW: "slideshow.mp4",
    Recipe.CONCAT: "concatenated.mp4",
    Recipe.AUDIO_MIX: "video-with-audio.mp4",
}

_ERROR_SUMMARIES = {
    Recipe.IMAGE_AUDIO: "Error processing video",
    Recipe.SLIDESHOW: "Error creating slideshow",
    Recipe.CONCAT: "Error concatenating videos",
    Recipe.AUDIO_MIX: "Error processing video",
}


class AudioMixMode(str, Enum):
    REPLACE = "replace"
    BACKGROUND = "background"


def parse_mode(value: Optional[str]) -> AudioMixMode:
    raw = (value or "").strip() or AudioMixMode.REPLACE.value
    try:
        return AudioMixMode(raw)
    except ValueError:
        raise InvalidInput(f"Invalid mode '{raw}': expected 'replace' or 'background'") from None


def parse_duration(value, default: float) -> float:
    """숫자가 아니거나 0 이하이면 기본값으로."""
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(seconds) or seconds <= 0:
        return default
    return seconds


# ---------------------------------------------------------------------------
# Job specs (검증이 끝난 레시피 파라미터)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ImageAudioSpec:
    image_path: Path
    audio_path: Path
    target_width: int = 1920
    target_height: int = 1080
    audio_duration: Optional[float] = None


@dataclass(frozen=True)
class SlideshowSpec:
    ordered_image_paths: Tuple[Path, ...]
    per_image_duration: float

    def __post_init__(self):
        if not self.ordered_image_paths:
            raise InvalidInput("No images provided")


@dataclass(frozen=True)
class ConcatSpec:
    video_paths: Tuple[Path, ...]

    def __post_init__(self):
        if len(self.video_paths) != 2:
            raise InvalidInput("Exactly two videos are required")


@dataclass(frozen=True)
class AudioMixSpec:
    video_path: Path
    audio_path: Path
    mode: AudioMixMode = AudioMixMode.REPLACE


# ---------------------------------------------------------------------------
# Engine job (엔진에 넘길 선언형 작업)
# ---------------------------------------------------------------------------


@dataclass
class EngineInput:
    source: str
    options: List[str] = field(default_factory=list)  # -i 앞에 붙는 입력 옵션


@dataclass
class EngineJob:
    inputs: List[EngineInput]
    output: Path
    output_options: List[str] = field(default_factory=list)
    filter_complex: Optional[str] = None
    label: str = ""

    def input_paths(self) -> List[str]:
        return [i.source for i in self.inputs if "lavfi" not in i.options]


def letterbox_filter(width: int, height: int) -> str:
    # 비율 유지하고 캔버스 안에 맞춘 뒤 가운데 정렬 패딩
    return (
        f"scale={width}:{height}:force_original_aspect_ratio=decrease,"
        f"pad={width}:{height}:(ow-iw)/2:(oh-ih)/2,"
        f"setsar=1"
    )


def build_image_audio_job(spec: ImageAudioSpec, output: Path, fps: int = 30) -> EngineJob:
    w, h = spec.target_width, spec.target_height
    opts = [
        "-map", "0:v:0",
        "-map", "1:a:0",
        "-vf", f"{letterbox_filter(w, h)},format=yuv420p",
        "-c:v", "libx264",
        "-tune", "stillimage",
        "-preset", "ultrafast",
        "-pix_fmt", "yuv420p",
        *AUDIO_CODEC,
        "-shortest",
    ]
    # 루프 이미지가 오디오보다 길게 남지 않도록 길이를 못박는다
    if spec.audio_duration:
        opts += ["-t", f"{spec.audio_duration:.3f}"]
    opts += ["-movflags", "+faststart"]

    return EngineJob(
        inputs=[
            EngineInput(str(spec.image_path), ["-loop", "1", "-framerate", str(fps)]),
            EngineInput(str(spec.audio_path)),
        ],
        output=output,
        output_options=opts,
        label="image-audio",
    )


def build_slideshow_job(
    manifest_path: Path,
    output: Path,
    width: int = 1920,
    height: int = 1080,
    fps: int = 30,
) -> EngineJob:
    return EngineJob(
        inputs=[EngineInput(str(manifest_path), ["-f", "concat", "-safe", "0"])],
        output=output,
        output_options=[
            "-vf", f"{letterbox_filter(width, height)},fps={fps},format=yuv420p",
            *VIDEO_CODEC,
            "-movflags", "+faststart",
        ],
        label="slideshow",
    )


def build_normalize_job(
    source: Path,
    output: Path,
    has_audio: bool = True,
    width: int = 1920,
    height: int = 1080,
    fps: int = 30,
) -> EngineJob:
    """Concat 1단계: 세그먼트 하나를 공통 코덱/해상도/샘플레이트로 재인코딩."""
    inputs = [EngineInput(str(source))]
    audio_map = "0:a:0"
    if not has_audio:
        # 오디오 없는 영상은 무음 트랙을 채워 넣어 스트림 구성을 맞춘다
        inputs.append(
            EngineInput(
                f"anullsrc=channel_layout=stereo:sample_rate={NORMALIZED_SAMPLE_RATE}",
                ["-f", "lavfi"],
            )
        )
        audio_map = "1:a:0"

    opts = [
        "-map", "0:v:0",
        "-map", audio_map,
        "-vf", f"{letterbox_filter(width, height)},fps={fps},format=yuv420p",
        *VIDEO_CODEC,
        *AUDIO_CODEC,
        "-ar", str(NORMALIZED_SAMPLE_RATE),
        "-ac", str(NORMALIZED_CHANNELS),
        "-video_track_timescale", str(NORMALIZED_TIMESCALE),
    ]
    if not has_audio:
        opts.append("-shortest")
    opts += ["-movflags", "+faststart"]

    return EngineJob(inputs=inputs, output=output, output_options=opts, label="normalize")


def build_concat_job(manifest_path: Path, output: Path) -> EngineJob:
    """Concat 2단계: 정규화된 세그먼트를 재인코딩 없이 이어붙이기."""
    return EngineJob(
        inputs=[EngineInput(str(manifest_path), ["-f", "concat", "-safe", "0"])],
        output=output,
        output_options=["-c", "copy", "-movflags", "+faststart"],
        label="concat",
    )


def build_audio_mix_job(spec: AudioMixSpec, output: Path) -> EngineJob:
    inputs = [EngineInput(str(spec.video_path)), EngineInput(str(spec.audio_path))]

    if spec.mode is AudioMixMode.REPLACE:
        # 원본 오디오는 매핑하지 않음, 짧은 스트림에서 끊김
        return EngineJob(
            inputs=inputs,
            output=output,
            output_options=[
                "-map", "0:v:0",
                "-map", "1:a:0",
                "-c:v", "copy",
                *AUDIO_CODEC,
                "-shortest",
            ],
            label="audio-replace",
        )

    # background: 길이는 첫 입력(원본 영상 오디오)을 따른다
    return EngineJob(
        inputs=inputs,
        output=output,
        filter_complex="[0:a][1:a]amix=inputs=2:duration=first[aout]",
        output_options=[
            "-map", "0:v:0",
            "-map", "[aout]",
            "-c:v", "copy",
            *AUDIO_CODEC,
        ],
        label="audio-background",
    )
