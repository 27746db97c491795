#!/usr/bin/env python3
"""
FastAPI(합성 API) + Streamlit(데모 화면)을 같이 띄우는 실행 스크립트.

실행:
  python run.py            # API + 데모
  python run.py --api-only # API만
"""

import os
import signal
import socket
import subprocess
import sys
from pathlib import Path

from backend.app.core.config import settings

PROJECT_ROOT = Path(__file__).parent
FRONTEND_APP = PROJECT_ROOT / "frontend" / "app.py"

processes: list[subprocess.Popen] = []


def pick_free_port(start: int = 8501, end: int = 8510, host: str = "127.0.0.1") -> int:
    """start~end 중 사용 가능한 첫 포트를 선택"""
    for port in range(start, end + 1):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            try:
                s.bind((host, port))
                return port
            except OSError:
                continue
    # 다 찼으면 그냥 기본값 반환(실패할 수도 있음)
    return start


def shutdown(*_):
    print("\n🛑 종료 신호 받음. 프로세스 정리 중...")
    for p in processes:
        if p.poll() is None:
            p.terminate()
    for p in processes:
        try:
            p.wait(timeout=5)
        except subprocess.TimeoutExpired:
            p.kill()
    print("✅ 종료 완료")
    sys.exit(0)


def main():
    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    api_cmd = [
        sys.executable, "-m", "uvicorn",
        "backend.app.main:app",
        "--host", settings.API_HOST,
        "--port", str(settings.API_PORT),
    ]
    print("🎬 Starting FrameFusion API:", " ".join(api_cmd))
    processes.append(subprocess.Popen(api_cmd, cwd=str(PROJECT_ROOT)))

    if "--api-only" not in sys.argv[1:]:
        st_port = pick_free_port(start=8501, end=8510, host="127.0.0.1")
        st_cmd = [
            sys.executable, "-m", "streamlit",
            "run", str(FRONTEND_APP),
            "--server.port", str(st_port),
            "--server.address", "127.0.0.1",
        ]
        env = dict(os.environ, API_BASE=f"http://{settings.API_HOST}:{settings.API_PORT}")
        print(f"✅ Streamlit port: {st_port}")
        print("🚀 Starting Streamlit:", " ".join(st_cmd))
        processes.append(subprocess.Popen(st_cmd, cwd=str(PROJECT_ROOT), env=env))

    for p in processes:
        p.wait()


if __name__ == "__main__":
    main()
