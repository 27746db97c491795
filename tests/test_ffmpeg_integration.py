"""ffmpeg/ffprobe가 PATH에 있을 때만 도는 실제 인코딩 테스트."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from backend.app.core.config import settings
from backend.app.main import create_app
from backend.app.services.engine import TranscodeExecutor
from backend.app.services.probe import has_audio_stream, probe_duration_sec

pytestmark = pytest.mark.skipif(
    shutil.which("ffmpeg") is None or shutil.which("ffprobe") is None,
    reason="ffmpeg/ffprobe not installed",
)


def _ffmpeg(*args: str) -> None:
    subprocess.run(["ffmpeg", "-hide_banner", "-loglevel", "error", "-y", *args], check=True)


@pytest.fixture(scope="module")
def media(tmp_path_factory) -> dict:
    d = tmp_path_factory.mktemp("media")
    out = {
        "image": d / "red.png",
        "image_tall": d / "tall.png",
        "audio_2s": d / "tone2.wav",
        "audio_1s": d / "tone1.wav",
        "video_a": d / "a.mp4",
        "video_b": d / "b.mp4",
        "broken": d / "broken.mp4",
    }
    _ffmpeg("-f", "lavfi", "-i", "color=c=red:s=640x480", "-frames:v", "1", str(out["image"]))
    _ffmpeg("-f", "lavfi", "-i", "color=c=blue:s=480x640", "-frames:v", "1", str(out["image_tall"]))
    _ffmpeg("-f", "lavfi", "-i", "sine=frequency=440:duration=2", str(out["audio_2s"]))
    _ffmpeg("-f", "lavfi", "-i", "sine=frequency=660:duration=1", str(out["audio_1s"]))
    _ffmpeg(
        "-f", "lavfi", "-i", "testsrc=size=640x360:rate=25:duration=2",
        "-f", "lavfi", "-i", "sine=frequency=220:duration=2",
        "-c:v", "libx264", "-pix_fmt", "yuv420p", "-c:a", "aac", "-shortest",
        str(out["video_a"]),
    )
    # 다른 코덱/해상도/fps, 오디오 없음
    _ffmpeg(
        "-f", "lavfi", "-i", "testsrc2=size=320x240:rate=15:duration=1",
        "-c:v", "mpeg4",
        str(out["video_b"]),
    )
    out["broken"].write_bytes(b"this is not a video")
    return out


@pytest.fixture()
def real_client(temp_dir: Path):
    with TestClient(create_app(TranscodeExecutor(max_workers=2))) as c:
        yield c


def _save(tmp_path: Path, content: bytes) -> Path:
    path = tmp_path / "result.mp4"
    path.write_bytes(content)
    return path


def _upload(field: str, path: Path):
    return (field, (path.name, path.read_bytes(), "application/octet-stream"))


def test_image_audio_duration_follows_audio(real_client, media, tmp_path, leftovers) -> None:
    r = real_client.post("/image-audio", files=[_upload("image", media["image"]), _upload("audio", media["audio_2s"])])

    assert r.status_code == 200, r.text
    duration = probe_duration_sec(_save(tmp_path, r.content))
    assert duration == pytest.approx(2.0, abs=1 / settings.OUTPUT_FPS + 0.05)
    assert leftovers() == []


def test_slideshow_duration(real_client, media, tmp_path, leftovers) -> None:
    r = real_client.post(
        "/slideshow",
        files=[_upload("images", media["image"]), _upload("images", media["image"])],
        data={"duration": "1"},
    )

    assert r.status_code == 200, r.text
    assert probe_duration_sec(_save(tmp_path, r.content)) == pytest.approx(2.0, abs=0.3)
    assert leftovers() == []


def test_concat_differing_sources(real_client, media, tmp_path, leftovers) -> None:
    r = real_client.post("/concat-videos", files=[_upload("video1", media["video_a"]), _upload("video2", media["video_b"])])

    assert r.status_code == 200, r.text
    result = _save(tmp_path, r.content)
    assert probe_duration_sec(result) == pytest.approx(3.0, abs=0.3)
    assert has_audio_stream(result)
    assert leftovers() == []


def test_audio_replace_is_shortest(real_client, media, tmp_path, leftovers) -> None:
    r = real_client.post(
        "/video-audio",
        files=[_upload("video", media["video_a"]), _upload("audio", media["audio_1s"])],
        data={"mode": "replace"},
    )

    assert r.status_code == 200, r.text
    assert probe_duration_sec(_save(tmp_path, r.content)) == pytest.approx(1.0, abs=0.5)
    assert leftovers() == []


def test_audio_background_follows_original_audio(real_client, media, tmp_path, leftovers) -> None:
    r = real_client.post(
        "/video-audio",
        files=[_upload("video", media["video_a"]), _upload("audio", media["audio_1s"])],
        data={"mode": "background"},
    )

    assert r.status_code == 200, r.text
    assert probe_duration_sec(_save(tmp_path, r.content)) == pytest.approx(2.0, abs=0.3)
    assert leftovers() == []


def test_engine_error_cleans_up(real_client, media, leftovers) -> None:
    r = real_client.post(
        "/video-audio",
        files=[_upload("video", media["broken"]), _upload("audio", media["audio_1s"])],
    )

    assert r.status_code == 500
    body = r.json()
    assert body["error"] == "Error processing video"
    assert body["details"]
    assert leftovers() == []


def test_probe_helpers(media) -> None:
    assert probe_duration_sec(media["audio_2s"]) == pytest.approx(2.0, abs=0.05)
    assert has_audio_stream(media["video_a"])
    assert not has_audio_stream(media["video_b"])
    assert probe_duration_sec(media["broken"]) is None
