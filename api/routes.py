"""
api/routes.py — FastAPI 엔드포인트
"""

import asyncio
from typing import List, Union

from fastapi import APIRouter, HTTPException, Request, Response
from pydantic import BaseModel

from quiz_tracker.models.question_model import Question
from quiz_tracker.services.quiz_controller import QuizController

router = APIRouter()

# ── Pydantic request bodies ──────────────────────────────────────────────────

class AnswerBody(BaseModel):
    answer: Union[str, List[str]]

class NavigateBody(BaseModel):
    index: int = 0

class DataSourceBody(BaseModel):
    id: str


# ── 헬퍼 ─────────────────────────────────────────────────────────────────────

def _controller(request: Request) -> QuizController:
    return request.app.state.controller


def _require_questions(quiz: QuizController) -> None:
    if quiz.load_error:
        raise HTTPException(status_code=503, detail=f"문제를 불러오지 못했습니다: {quiz.load_error}")


def _question_to_dict(q: Question) -> dict:
    return {
        "number": q.number,
        "question": q.question,
        "choices": q.choices,
        "correct_answer": q.correct_answer,
        "explanation": q.explanation,
        "is_multiple_choice": QuizController.is_multiple_choice(q),
    }


def _state(quiz: QuizController) -> dict:
    return {
        "data_source": quiz.source_id,
        "data_source_name": quiz.data_source.name,
        "total": len(quiz.questions),
        "current_index": quiz.current_index,
        "progress": quiz.progress,
        "answered_count": quiz.answered_count,
        "correct_count": quiz.correct_count,
        "accuracy": quiz.accuracy,
        "incorrect_list": quiz.incorrect_list,
        "session_time": quiz.session_time,
        "is_loading": quiz.is_loading,
        "load_error": quiz.load_error,
    }


# ── 엔드포인트 ───────────────────────────────────────────────────────────────

@router.get("/api/state")
async def get_state(request: Request):
    return _state(_controller(request))


@router.get("/api/question/{index}")
async def get_question(index: int, request: Request):
    quiz = _controller(request)
    _require_questions(quiz)
    if not (0 <= index < len(quiz.questions)):
        raise HTTPException(status_code=404, detail="문제를 찾을 수 없습니다.")

    d = _question_to_dict(quiz.questions[index])
    d.update({
        "saved_answer": quiz.user_answers[index],
        "index": index,
        "total": len(quiz.questions),
    })
    return d


@router.post("/api/answer")
async def submit_answer(body: AnswerBody, request: Request):
    quiz = _controller(request)
    _require_questions(quiz)
    is_correct = await asyncio.to_thread(quiz.submit_answer, body.answer)
    if is_correct is None:
        raise HTTPException(status_code=404, detail="현재 문제가 없습니다.")
    return {"ok": True, "is_correct": is_correct, **_state(quiz)}


@router.post("/api/navigate")
async def navigate(body: NavigateBody, request: Request):
    quiz = _controller(request)
    moved = await asyncio.to_thread(quiz.go_to_question, body.index)
    return {"index": quiz.current_index, "ok": moved}


@router.get("/api/data-sources")
async def list_data_sources(request: Request):
    quiz = _controller(request)
    return {
        "selected": quiz.source_id,
        "sources": [{"id": s.id, "name": s.name} for s in quiz.sources.values()],
    }


@router.post("/api/data-source")
async def change_data_source(body: DataSourceBody, request: Request):
    quiz = _controller(request)
    if not await asyncio.to_thread(quiz.change_data_source, body.id):
        raise HTTPException(status_code=400, detail=f"알 수 없는 데이터 소스입니다: {body.id}")
    return {"ok": True, **_state(quiz)}


@router.get("/api/statistics")
async def get_statistics(request: Request):
    quiz = _controller(request)
    stats, today = await asyncio.to_thread(
        lambda: (quiz.learning_stats, quiz.store.get_today_study_time(quiz.source_id))
    )
    return {**stats.model_dump(by_alias=True), "todayStudyTimeMinutes": today}


@router.get("/api/review")
async def get_review(request: Request):
    quiz = _controller(request)
    progress = await asyncio.to_thread(quiz.store.load, quiz.source_id)
    return progress.review.model_dump(by_alias=True)


@router.get("/api/daily-records")
async def get_daily_records(request: Request):
    quiz = _controller(request)
    records = await asyncio.to_thread(quiz.store.get_weekly_study_records, quiz.source_id)
    return {"records": [r.model_dump(by_alias=True) for r in records]}


@router.get("/api/export")
async def export_progress(request: Request):
    quiz = _controller(request)
    content = await asyncio.to_thread(quiz.export_progress)
    return Response(
        content=content,
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="quiz_progress.json"'},
    )


@router.post("/api/reset")
async def reset_progress(request: Request):
    quiz = _controller(request)
    await asyncio.to_thread(quiz.reset_progress)
    return {"ok": True, **_state(quiz)}
