"""
main.py — 자격시험 문제 풀이 앱 진입점
"""

import os
import socket
import sys
import time
import threading
import logging
import traceback
import webbrowser

# ── 패키지 경로 설정 (반드시 최상단) ──────────────────────────────────────────
_BASE_DIR = os.path.dirname(os.path.abspath(__file__))
if _BASE_DIR not in sys.path:
    sys.path.insert(0, _BASE_DIR)

from config import BASE_DIR, DATA_DIR, LOG_FILE, DEFAULT_HOST, DEFAULT_PORT

# ── 로깅 설정 ────────────────────────────────────────────────────────────────
try:
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        handlers=[
            logging.FileHandler(LOG_FILE, encoding='utf-8'),
            logging.StreamHandler(sys.stdout)
        ]
    )
except PermissionError:
    # 로그 파일 점유 시 콘솔 출력만 사용
    logging.basicConfig(level=logging.INFO)

logger = logging.getLogger(__name__)

# ── 서버 및 네트워크 유틸 ───────────────────────────────────────────────────

def _find_free_port(preferred: int = DEFAULT_PORT) -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        try:
            s.bind((DEFAULT_HOST, preferred))
        except OSError:
            s.bind((DEFAULT_HOST, 0))
        return s.getsockname()[1]

def _wait_for_server(port: int, timeout: float = 15.0) -> bool:
    deadline = time.time() + timeout
    while time.time() < deadline:
        try:
            with socket.create_connection((DEFAULT_HOST, port), timeout=0.5):
                return True
        except OSError:
            time.sleep(0.1)
    return False

def _make_server(port: int):
    import uvicorn
    from api.app import create_app
    app = create_app()
    return uvicorn.Server(uvicorn.Config(app, host=DEFAULT_HOST, port=port, log_level="warning"))

def _run_server(server) -> None:
    try:
        logger.info(f"Uvicorn 서버 시작 - Port: {server.config.port}")
        server.run()
    except Exception:
        logger.error(f"서버 오류 발생:\n{traceback.format_exc()}")

# ── 메인 실행 ────────────────────────────────────────────────────────────────

if __name__ == "__main__":
    logger.info("=== Quiz Application Started ===")
    os.chdir(BASE_DIR)
    os.makedirs(DATA_DIR, exist_ok=True)

    port = _find_free_port()
    server = _make_server(port)
    if "--no-browser" in sys.argv:
        # 포그라운드 실행: Ctrl+C 시 uvicorn 이 lifespan 종료를 처리
        _run_server(server)
        sys.exit(0)

    server_thread = threading.Thread(target=_run_server, args=(server,), daemon=True)
    server_thread.start()

    if _wait_for_server(port):
        logger.info("서버 준비 완료. 브라우저를 엽니다.")
        webbrowser.open(f"http://{DEFAULT_HOST}:{port}")

        # 메인 스레드 유지
        try:
            while True:
                time.sleep(10)
        except KeyboardInterrupt:
            logger.info("사용자에 의해 종료되었습니다.")
            # lifespan 종료 단계에서 세션 시간을 반영하도록 정상 종료 요청
            server.should_exit = True
            server_thread.join(timeout=10)
    else:
        logger.error("서버 시작 제한 시간을 초과했습니다.")
        sys.exit(1)
