"""
api/app.py — FastAPI 앱 인스턴스 + 컨트롤러 수명 주기 + static 파일 서빙
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from fastapi.responses import FileResponse

from config import STATIC_DIR, STORAGE_FILE, STORAGE_QUOTA_BYTES
from api.routes import router
from quiz_tracker.services.kv_store import JsonFileStore, MemoryStore
from quiz_tracker.services.progress_store import ProgressStore
from quiz_tracker.services.quiz_controller import QuizController

logger = logging.getLogger(__name__)


def build_controller() -> QuizController:
    """영구 저장소는 JSON 파일, 휘발성 저장소는 프로세스 메모리."""
    durable = JsonFileStore(STORAGE_FILE, quota_bytes=STORAGE_QUOTA_BYTES)
    store = ProgressStore(durable=durable, volatile=MemoryStore())
    return QuizController(store)


def create_app(controller: Optional[QuizController] = None) -> FastAPI:
    quiz = controller or build_controller()

    # 시작 시 문제/진행 기록을 읽고, 종료 시 세션 시간을 반드시 반영
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await asyncio.to_thread(quiz.load)
        try:
            yield
        finally:
            await asyncio.to_thread(quiz.close)
            logger.info("세션 종료 처리 완료")

    app = FastAPI(title="Certification Quiz", docs_url=None, redoc_url=None, lifespan=lifespan)
    app.state.controller = quiz

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)

    # static 파일 마운트
    if os.path.isdir(STATIC_DIR):
        app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

    # 루트 → index.html
    @app.get("/")
    async def serve_index():
        index_path = os.path.join(STATIC_DIR, "index.html")
        if os.path.exists(index_path):
            return FileResponse(index_path)
        return {"error": "index.html not found"}

    return app
