import os

# 기본 디렉토리 설정
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# 경로 설정
STATIC_DIR = os.path.join(BASE_DIR, "static")
DATA_DIR = os.getenv("QUIZ_DATA_DIR", os.path.join(BASE_DIR, "data"))
QUESTIONS_DIR = os.getenv("QUIZ_QUESTIONS_DIR", os.path.join(BASE_DIR, "questions"))
LOG_FILE = os.path.join(BASE_DIR, "launch.log")

# 서버 설정
DEFAULT_HOST = os.getenv("HOST", "127.0.0.1")
DEFAULT_PORT = int(os.getenv("PORT", "8000"))

# 영구 저장소 설정
STORAGE_FILE = os.path.join(DATA_DIR, "progress_store.json")
STORAGE_QUOTA_BYTES = int(os.getenv("STORAGE_QUOTA_BYTES", str(5 * 1024 * 1024)))  # 브라우저 origin 한도와 동일

# 세션 집계 설정
SESSION_GAP_MINUTES = 30    # 마지막 마커 이후 이 시간을 넘기면 새 세션
TIMER_TICK_SECONDS = 1.0    # 세션 타이머 간격 (초)
UPDATE_EVERY_TICKS = 60     # 이 틱 수마다 세션 시간 반영
