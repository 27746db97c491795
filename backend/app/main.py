"""
FastAPI 엔트리포인트

- POST /image-audio, /slideshow, /concat-videos, /video-audio : 합성 후 mp4 다운로드
- GET  /        : 서비스 설명
- GET  /health  : 헬스체크

실행: uvicorn backend.app.main:app --port 3000
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.app.api.routes import SERVICE_VERSION
from backend.app.api.routes import router as api_router
from backend.app.core.config import settings
from backend.app.core.errors import CompositionError
from backend.app.core.logger import get_logger
from backend.app.services.engine import TranscodeExecutor

logger = get_logger(__name__)


def create_app(executor: Optional[TranscodeExecutor] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        Path(settings.TEMP_DIR).mkdir(parents=True, exist_ok=True)
        logger.info(
            "FrameFusion 시작 | temp_dir=%s max_concurrent_jobs=%d",
            settings.TEMP_DIR, app.state.executor.max_workers,
        )
        yield
        app.state.executor.shutdown()

    app = FastAPI(title="FrameFusion API", version=SERVICE_VERSION, lifespan=lifespan)
    app.state.executor = executor or TranscodeExecutor()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(CompositionError)
    async def composition_error_handler(request: Request, exc: CompositionError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    app.include_router(api_router)

    @app.get("/health")
    def health():
        return {"ok": True}

    return app


app = create_app()
