"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the quizcraft backend.
Controllers are intentionally thin: they accept requests, delegate to
services, and return JSON responses. Structured service results with
`error: True` are mapped to HTTP errors by `_unwrap`.

Endpoints implemented:
- POST /auth/register, /auth/login, /auth/logout; GET /auth/me
- POST /quiz-auth/login, /quiz-auth/logout; GET /quiz-auth/me
- GET/POST /dashboard/quizzes; GET/DELETE /dashboard/quizzes/{id}
- POST /dashboard/quizzes/{id}/live|status|schedule|shuffle
- GET /dashboard/reports, /dashboard/reports/{id}, /dashboard/stats
- GET /q/{short_id}
- POST /q/{short_id}/attempts; GET /q/{short_id}/attempts/{attempt_id}
- PUT /q/{short_id}/attempts/{attempt_id}/answers/{question_id}
- POST /q/{short_id}/attempts/{attempt_id}/submit
"""

import json
import logging
import os
import time
import uuid
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI, Form, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session

from . import models, services
from .auth import Identity, get_current_user, main_auth, quiz_auth
from .config import settings
from .database import create_db_and_tables, get_session
from .errors import QuizcraftError
from .schemas import (
    AnswerIn, LiveIn, LoginIn, QuizLoginIn, QuizUpsertIn, RegisterIn, ScheduleIn, ShuffleIn,
    StatusIn, SubmissionIn, TokenOut,
)
from .utils.short_id import decode_uuid

app = FastAPI(title="quizcraft API")
logger = logging.getLogger("quizcraft.api")
if not logger.handlers:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))

# Wide-open CORS keeps local frontends working without extra config in dev.
if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

create_db_and_tables()

_STATUS_BY_ERROR = {
    "validation": 400,
    "authorization": 403,
    "not_found": 404,
    "conflict": 409,
    "storage": 500,
}


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception(
            "request_failed %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "duration_ms": elapsed_ms,
                    "client": request.client.host if request.client else "unknown",
                },
                ensure_ascii=True,
            ),
        )
        raise
    response.headers["X-Request-ID"] = req_id
    elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
    if request.url.path != "/health":
        logger.info(
            "request_done %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "status_code": response.status_code,
                    "duration_ms": elapsed_ms,
                    "client": request.client.host if request.client else "unknown",
                },
                ensure_ascii=True,
            ),
        )
    return response


def _http_error(exc: QuizcraftError) -> HTTPException:
    return HTTPException(status_code=_STATUS_BY_ERROR.get(exc.error_type, 400), detail=exc.message)


def _unwrap(result: dict) -> dict:
    """Raise the HTTP error matching a failed service result, else return it."""
    if result.get("error"):
        raise HTTPException(status_code=_STATUS_BY_ERROR.get(result.get("error_type"), 400), detail=result["message"])
    return result


def _quiz_id_from_short(short_id: str) -> str:
    try:
        return decode_uuid(short_id)
    except ValueError:
        raise HTTPException(status_code=404, detail="quiz not found")


def _user_out(user: models.User) -> dict:
    return {"id": user.id, "name": user.name, "email": user.email}


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}


@app.post('/auth/register')
def register(payload: RegisterIn, db: Session = Depends(get_session)):
    """Register a new creator account."""
    try:
        user = services.AuthService(db).register(payload.name, payload.email, payload.password)
    except QuizcraftError as e:
        raise _http_error(e)
    return _user_out(user)


@app.post('/auth/login', response_model=TokenOut)
def login(payload: LoginIn, response: Response, db: Session = Depends(get_session)):
    """Authenticate a creator and start the main session.

    The signed token is returned and also set as the main session cookie.
    """
    token = services.AuthService(db).authenticate(payload.email, payload.password)
    if not token:
        raise HTTPException(status_code=401, detail='invalid credentials')
    main_auth.set_cookie(response, token)
    return {'access_token': token}


@app.post('/auth/logout')
def logout(response: Response):
    main_auth.clear_cookie(response)
    return {'status': 'ok'}


@app.get('/auth/me')
def me(user: models.User = Depends(get_current_user)):
    return _user_out(user)


@app.post('/quiz-auth/login', response_model=TokenOut)
def quiz_login(payload: QuizLoginIn, response: Response, db: Session = Depends(get_session)):
    """Email-only participant login scoped to the quiz-taking routes."""
    try:
        token = services.AuthService(db).quiz_login(payload.email, payload.name)
    except QuizcraftError as e:
        raise _http_error(e)
    quiz_auth.set_cookie(response, token)
    return {'access_token': token}


@app.post('/quiz-auth/logout')
def quiz_logout(response: Response):
    quiz_auth.clear_cookie(response)
    return {'status': 'ok'}


@app.get('/quiz-auth/me')
def quiz_me(identity: Identity = Depends(quiz_auth.require_identity)):
    return {'id': identity.id, 'email': identity.email, 'name': identity.name}


@app.get('/dashboard/quizzes')
def list_quizzes(search: Optional[str] = None, status: Optional[str] = None,
                 db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Library view of the creator's quizzes, filterable by text and status."""
    return services.QuizService(db).list_quizzes(user.id, search=search, status=status)


@app.post('/dashboard/quizzes')
def upsert_quiz(
    quiz_id: Optional[str] = Form(default=None),
    title: Optional[str] = Form(default=None),
    description: Optional[str] = Form(default=None),
    timer_mode: Optional[str] = Form(default=None),
    timer: Optional[str] = Form(default=None),
    shuffle_questions: Optional[bool] = Form(default=None),
    questions: str = Form(default="[]"),
    db: Session = Depends(get_session),
    user: models.User = Depends(get_current_user),
):
    """Create a quiz, or replace an existing one when `quiz_id` is posted.

    `questions` is the JSON-serialised question list of the authoring form.
    """
    data = QuizUpsertIn(
        quiz_id=quiz_id,
        title=title,
        description=description,
        timer_mode=timer_mode,
        timer=timer,
        shuffle_questions=shuffle_questions,
        questions=questions,
    )
    return _unwrap(services.QuizService(db).upsert_quiz(data, user_id=user.id))


@app.get('/dashboard/quizzes/{quiz_id}')
def get_quiz(quiz_id: str, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Full creator view of one quiz, answer keys included."""
    try:
        quiz = services.QuizService(db).get_owned_quiz(quiz_id, user.id)
    except QuizcraftError as e:
        raise _http_error(e)
    return services.quiz_payload(quiz)


@app.delete('/dashboard/quizzes/{quiz_id}')
def delete_quiz(quiz_id: str, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return _unwrap(services.QuizService(db).delete_quiz(quiz_id, user_id=user.id))


@app.post('/dashboard/quizzes/{quiz_id}/live')
def set_quiz_live(quiz_id: str, payload: LiveIn, db: Session = Depends(get_session),
                  user: models.User = Depends(get_current_user)):
    return _unwrap(services.QuizService(db).set_quiz_live(quiz_id, payload.is_live, user_id=user.id))


@app.post('/dashboard/quizzes/{quiz_id}/status')
def set_quiz_status(quiz_id: str, payload: StatusIn, db: Session = Depends(get_session),
                    user: models.User = Depends(get_current_user)):
    return _unwrap(services.QuizService(db).set_quiz_status(quiz_id, payload.status, user_id=user.id))


@app.post('/dashboard/quizzes/{quiz_id}/schedule')
def schedule_quiz(quiz_id: str, payload: ScheduleIn, db: Session = Depends(get_session),
                  user: models.User = Depends(get_current_user)):
    return _unwrap(services.QuizService(db).schedule_quiz(
        quiz_id, payload.scheduled_at, payload.ended_at, user_id=user.id
    ))


@app.post('/dashboard/quizzes/{quiz_id}/shuffle')
def set_shuffle_questions(quiz_id: str, payload: ShuffleIn, db: Session = Depends(get_session),
                          user: models.User = Depends(get_current_user)):
    return _unwrap(services.QuizService(db).set_shuffle_questions(
        quiz_id, payload.shuffle_questions, user_id=user.id
    ))


@app.get('/dashboard/reports')
def list_reports(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Every quiz of the creator with participant count, accuracy and completion."""
    return services.ReportService(db).list_reports(user.id)


@app.get('/dashboard/reports/{quiz_id}')
def quiz_report(quiz_id: str, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    try:
        return services.ReportService(db).quiz_report(quiz_id, user_id=user.id)
    except QuizcraftError as e:
        raise _http_error(e)


@app.get('/dashboard/stats')
def dashboard_stats(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.ReportService(db).dashboard_stats(user.id)


@app.get('/q/{short_id}')
def public_quiz(short_id: str, db: Session = Depends(get_session),
                identity: Optional[Identity] = Depends(quiz_auth.optional_identity)):
    """Public quiz page: the taking form when live, otherwise an offline state.

    Renderings are cached per quiz under the quiz's `updated_at`, so any
    committed change is picked up on the next request, in every worker.
    `participant` tells the page whether the quiz login is still needed.
    """
    quiz_id = _quiz_id_from_short(short_id)
    quiz_service = services.QuizService(db)
    version = quiz_service.page_version(quiz_id)
    if version is None:
        raise HTTPException(status_code=404, detail="quiz not found")

    def render():
        quiz = quiz_service.get_quiz(quiz_id)
        if quiz is None:
            return None
        return services.public_quiz_payload(quiz, now=datetime.now(timezone.utc))

    payload = services.page_cache.get_or_render(quiz_id, render, version=version)
    if payload is None:
        raise HTTPException(status_code=404, detail="quiz not found")
    participant = None
    if identity is not None:
        participant = {'email': identity.email, 'name': identity.name}
    return {**payload, 'participant': participant}


@app.post('/q/{short_id}/attempts')
def start_attempt(short_id: str, db: Session = Depends(get_session),
                  identity: Identity = Depends(quiz_auth.require_identity)):
    """Start (or resume) the caller's attempt on a live quiz."""
    quiz_id = _quiz_id_from_short(short_id)
    return _unwrap(services.AttemptService(db).start_attempt(quiz_id, identity))


@app.get('/q/{short_id}/attempts/{attempt_id}')
def get_attempt(short_id: str, attempt_id: str, db: Session = Depends(get_session),
                identity: Identity = Depends(quiz_auth.require_identity)):
    quiz_id = _quiz_id_from_short(short_id)
    return _unwrap(services.AttemptService(db).get_attempt(attempt_id, participant_id=identity.id, quiz_id=quiz_id))


@app.put('/q/{short_id}/attempts/{attempt_id}/answers/{question_id}')
def save_answer(short_id: str, attempt_id: str, question_id: str, payload: AnswerIn,
                db: Session = Depends(get_session), identity: Identity = Depends(quiz_auth.require_identity)):
    """Autosave a single answer while the attempt is open."""
    quiz_id = _quiz_id_from_short(short_id)
    return _unwrap(services.AttemptService(db).save_answer(
        attempt_id, question_id, payload.answer, participant_id=identity.id, quiz_id=quiz_id
    ))


@app.post('/q/{short_id}/attempts/{attempt_id}/submit')
def submit_attempt(short_id: str, attempt_id: str, submission: SubmissionIn,
                   db: Session = Depends(get_session), identity: Identity = Depends(quiz_auth.require_identity)):
    """Grade and close the attempt.

    The request body contains a list of {question_id, answer} items; they
    override previously autosaved answers.
    """
    quiz_id = _quiz_id_from_short(short_id)
    answers = [{'question_id': a.question_id, 'answer': a.answer} for a in submission.answers]
    return _unwrap(services.AttemptService(db).submit_attempt(
        attempt_id, answers, participant_id=identity.id, quiz_id=quiz_id
    ))


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "quizcraft.main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        reload=settings.ENV == "dev",
    )
