"""
services/data_sources.py — 문제은행(데이터 소스) 레지스트리
"""

import os
from dataclasses import dataclass
from typing import Dict, List, Optional

from config import QUESTIONS_DIR


@dataclass(frozen=True)
class DataSource:
    id: str
    name: str
    file_path: str


AVAILABLE_DATA_SOURCES: List[DataSource] = [
    DataSource(
        id="data_cloud",
        name="Data Cloud コンサルタント",
        file_path=os.path.join(QUESTIONS_DIR, "salesforce_data_cloud_questions_complete.csv"),
    ),
    DataSource(
        id="agentforce",
        name="Agentforce スペシャリスト",
        file_path=os.path.join(QUESTIONS_DIR, "salesforce_agentforce_specialist_questions.csv"),
    ),
]

# 선택된 데이터 소스를 기록하는 영구 저장소 키 (진행 기록과 별도)
DATA_SOURCE_STORAGE_KEY = "quiz_selected_data_source"

DEFAULT_DATA_SOURCE_ID = "data_cloud"


def registry(sources: Optional[List[DataSource]] = None) -> Dict[str, DataSource]:
    return {s.id: s for s in (sources if sources is not None else AVAILABLE_DATA_SOURCES)}
