"""
services/kv_store.py — 문자열 키-값 저장소

- MemoryStore   : 프로세스 수명 동안만 유지되는 저장소 (휘발성 세션 마커, 테스트용 fake)
- JsonFileStore : 키 공간 전체를 JSON 파일 하나에 보관하는 영구 저장소

두 저장소 모두 get/set/remove 만 제공하며 동기식이다.
용량 한도(quota)는 키와 값의 문자 수 합으로 계산한다.
"""

import json
import logging
import os
import tempfile
import threading
from typing import Dict, Optional, Protocol

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """저장소 접근 실패."""


class StorageQuotaExceeded(StorageError):
    """쓰기 결과가 용량 한도를 넘는 경우."""


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


def _usage(data: Dict[str, str]) -> int:
    return sum(len(k) + len(v) for k, v in data.items())


class MemoryStore:
    """스레드 안전한 인메모리 저장소."""

    def __init__(self, quota_bytes: Optional[int] = None) -> None:
        self._lock = threading.Lock()
        self._data: Dict[str, str] = {}
        self.quota_bytes = quota_bytes

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            candidate = dict(self._data)
            candidate[key] = value
            if self.quota_bytes is not None and _usage(candidate) > self.quota_bytes:
                raise StorageQuotaExceeded(f"저장소 용량 초과: {key}")
            self._data = candidate

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


class JsonFileStore:
    """
    JSON 파일 기반 영구 저장소.

    최초 접근 시 파일을 읽어 들이고, 쓰기마다 임시 파일 + os.replace 로
    전체 키 공간을 원자적으로 기록한다. 손상된 파일은 빈 저장소로 취급한다.
    """

    def __init__(self, path: str, quota_bytes: Optional[int] = None) -> None:
        self.path = path
        self.quota_bytes = quota_bytes
        self._lock = threading.Lock()
        self._data: Optional[Dict[str, str]] = None

    def _ensure_loaded(self) -> Dict[str, str]:
        if self._data is not None:
            return self._data
        data: Dict[str, str] = {}
        if os.path.exists(self.path):
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    raw = json.load(f)
                if isinstance(raw, dict):
                    data = {str(k): str(v) for k, v in raw.items()}
                else:
                    logger.error(f"저장소 파일 형식 오류 (객체 아님): {self.path}")
            except (OSError, json.JSONDecodeError) as e:
                logger.error(f"저장소 파일 읽기 실패, 빈 저장소로 시작: {e}")
        self._data = data
        return data

    def _flush(self, data: Dict[str, str]) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except OSError as e:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise StorageError(f"저장소 파일 쓰기 실패: {e}") from e

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._ensure_loaded().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            candidate = dict(self._ensure_loaded())
            candidate[key] = value
            if self.quota_bytes is not None and _usage(candidate) > self.quota_bytes:
                raise StorageQuotaExceeded(f"저장소 용량 초과: {key}")
            self._flush(candidate)
            self._data = candidate

    def remove(self, key: str) -> None:
        with self._lock:
            data = self._ensure_loaded()
            if key not in data:
                return
            candidate = {k: v for k, v in data.items() if k != key}
            self._flush(candidate)
            self._data = candidate
