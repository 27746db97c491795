"""
결과 mp4 스트리밍 응답

본문 전송이 끝난 뒤(또는 전송 중 끊긴 뒤) 요청의 임시 파일을 정리한다.
BackgroundTask는 전송 실패 시 실행되지 않아서 __call__을 직접 감싼다.
"""

from __future__ import annotations

from pathlib import Path

from fastapi.responses import FileResponse

from backend.app.services.compose import Stage, StageLog
from backend.app.services.jobs import Recipe
from backend.app.services.storage import TempArtifactSet


class CleanupFileResponse(FileResponse):
    def __init__(self, path: Path, recipe: Recipe, artifacts: TempArtifactSet):
        super().__init__(path, media_type="video/mp4", filename=recipe.download_name)
        self.artifacts = artifacts
        self.stages = StageLog(recipe, artifacts, Stage.STREAMING)

    async def __call__(self, scope, receive, send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            self.stages.enter(Stage.CLEANING)
            self.artifacts.release()
            self.stages.enter(Stage.DONE)


def stream_result(output: Path, recipe: Recipe, artifacts: TempArtifactSet) -> CleanupFileResponse:
    response = CleanupFileResponse(output, recipe, artifacts)
    artifacts.hand_off()
    return response
