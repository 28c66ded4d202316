"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories,
grading rules and report aggregation. Services perform validation,
execute domain logic and persist aggregates via repositories.

Mutating authoring and attempt operations are wrapped with `action`:
they never raise across the service boundary and instead return
`{"message": ...}` on success or `{"message": ..., "error": True,
"error_type": ...}` on failure, rolling the session back. Read
operations raise the domain errors from `errors` and leave the mapping
to the caller.
"""

import functools
import logging
import random
from datetime import datetime
from typing import List, Optional

import pydantic
from passlib.context import CryptContext
from pydantic import TypeAdapter
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from . import models, repositories
from .auth import Identity, main_auth, quiz_auth
from .config import settings
from .errors import AuthorizationError, ConflictError, NotFoundError, QuizcraftError, ValidationError
from .schemas import QuestionIn, QuizUpsertIn
from .utils.grading import grade_answer, parse_bool, split_accepted
from .utils.page_cache import PageCache
from .utils.presentation import TAKING, presentation_message, resolve_presentation_state
from .utils.reporting import compute_dashboard_stats, compute_quiz_report, participant_rows, question_stats
from .utils.short_id import encode_uuid
from .utils.timer import ensure_utc, is_past_deadline, remaining_seconds

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
logger = logging.getLogger("quizcraft.services")
page_cache = PageCache(ttl_seconds=settings.PAGE_CACHE_TTL_SECONDS)

_QUESTIONS = TypeAdapter(List[QuestionIn])

STATUS_MESSAGES = {
    "active": "Quiz is now active",
    "draft": "Quiz has been set to draft",
    "paused": "Quiz has been paused",
    "scheduled": "Quiz has been scheduled",
    "ended": "Quiz has ended",
}


def failure(message: str, error_type: str = "error") -> dict:
    return {"message": message, "error": True, "error_type": error_type}


def action(failure_message: str):
    """Turn a service method into a structured-result operation.

    Domain errors keep their message; storage errors are logged and
    reported with `failure_message`. The session is rolled back on any
    failure so no partial write survives.
    """
    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(self, *args, **kwargs):
            try:
                return fn(self, *args, **kwargs)
            except QuizcraftError as exc:
                self.session.rollback()
                logger.info("%s rejected: %s", fn.__name__, exc.message)
                return failure(exc.message, exc.error_type)
            except SQLAlchemyError:
                self.session.rollback()
                logger.exception("%s failed", fn.__name__)
                return failure(failure_message, "storage")
        return wrapper
    return decorator


def _require_id(value: Optional[str], label: str) -> str:
    if not value or not str(value).strip():
        raise ValidationError(f"{label} ID is required")
    return str(value).strip()


def time_limit(quiz: models.Quiz) -> Optional[int]:
    """Total seconds allowed for an attempt, or None when untimed."""
    if quiz.timer_mode == "global" and quiz.timer:
        return quiz.timer
    if quiz.timer_mode == "question":
        total = sum(q.timer or 0 for q in quiz.questions)
        return total or None
    return None


def choice_payload(choice: models.Choice, reveal: bool) -> dict:
    out = {"id": choice.id, "text": choice.text}
    if reveal:
        out["is_correct"] = choice.is_correct
    return out


def question_payload(question: models.Question, reveal: bool) -> dict:
    """Serialise a question; answer keys are only included when `reveal`."""
    out = {
        "id": question.id,
        "position": question.position,
        "type": question.type,
        "text": question.text,
        "timer": question.timer,
        "points": question.points,
    }
    if question.type == "multiple_choice":
        out["choices"] = [choice_payload(c, reveal) for c in question.choices]
    elif question.type == "open_ended":
        out["guidelines"] = question.guidelines
    if reveal:
        if question.type == "true_false":
            out["correct_answer"] = question.correct_bool
            out["explanation"] = question.explanation
        elif question.type == "fill_in_blank":
            out["correct_answer"] = question.correct_text
            out["accepted_answers"] = split_accepted(question.accepted_answers)
    return out


def quiz_summary(quiz: models.Quiz, question_count: int) -> dict:
    return {
        "id": quiz.id,
        "short_id": encode_uuid(quiz.id),
        "title": quiz.title,
        "description": quiz.description,
        "timer_mode": quiz.timer_mode,
        "timer": quiz.timer,
        "shuffle_questions": quiz.shuffle_questions,
        "status": quiz.status,
        "is_live": quiz.is_live,
        "scheduled_at": ensure_utc(quiz.scheduled_at),
        "ended_at": ensure_utc(quiz.ended_at),
        "created_by": quiz.created_by,
        "created_at": ensure_utc(quiz.created_at),
        "updated_at": ensure_utc(quiz.updated_at),
        "question_count": question_count,
    }


def quiz_payload(quiz: models.Quiz) -> dict:
    """Full creator view of a quiz including answer keys."""
    out = quiz_summary(quiz, len(quiz.questions))
    out["questions"] = [question_payload(q, reveal=True) for q in quiz.questions]
    return out


def public_quiz_payload(quiz: models.Quiz, now: Optional[datetime] = None) -> dict:
    """What the public quiz route renders: the taking form or an offline state."""
    state = resolve_presentation_state(quiz.status, quiz.is_live)
    out = {
        "short_id": encode_uuid(quiz.id),
        "title": quiz.title,
        "state": state,
        "message": presentation_message(state, quiz.scheduled_at, now),
    }
    if state == TAKING:
        out.update({
            "description": quiz.description,
            "timer_mode": quiz.timer_mode,
            "timer": quiz.timer,
            "time_limit": time_limit(quiz),
            "question_count": len(quiz.questions),
            "questions": [question_payload(q, reveal=False) for q in quiz.questions],
        })
    return out


class AuthService:
    """Authentication related operations for both session scopes."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def register(self, name: str, email: str, password: str) -> models.User:
        """Create a new creator account with a hashed password.

        Raises ValidationError for missing fields and ConflictError when
        the email is already registered.
        """
        email = (email or "").strip().lower()
        if not name or not name.strip():
            raise ValidationError("Name is required")
        if "@" not in email:
            raise ValidationError("A valid email is required")
        if not password:
            raise ValidationError("Password is required")
        if self.user_repo.get_by_email(email):
            raise ConflictError("Email is already registered")
        hashed = PWD_CTX.hash(password)
        user = self.user_repo.create(models.User(name=name.strip(), email=email, password_hash=hashed))
        logger.info("registered user %s", user.id)
        return user

    def authenticate(self, email: str, password: str) -> Optional[str]:
        """Verify credentials and return a signed main-session token on success.

        Returns `None` if authentication fails.
        """
        user = self.user_repo.get_by_email(email or "")
        if not user or not user.password_hash:
            return None
        if not PWD_CTX.verify(password, user.password_hash):
            return None
        return main_auth.issue_token(Identity(id=user.id, email=user.email, name=user.name))

    def quiz_login(self, email: str, name: Optional[str] = None) -> str:
        """Issue a quiz-session token for an email-only participant login."""
        email = (email or "").strip().lower()
        if "@" not in email:
            raise ValidationError("A valid email is required")
        display = (name or "").strip() or None
        return quiz_auth.issue_token(Identity(id=email, email=email, name=display))


class QuizService:
    """Create, edit, publish and delete quizzes.

    Editing uses replace semantics: a save deletes every question of the
    quiz and re-inserts the submitted list, inside a single transaction.
    """
    def __init__(self, session: Session):
        self.session = session
        self.quiz_repo = repositories.QuizRepository(session)

    def _owned(self, quiz_id: str, user_id: Optional[str]) -> models.Quiz:
        quiz = self.quiz_repo.get(quiz_id)
        if not quiz:
            raise NotFoundError("Quiz not found")
        if user_id is not None and quiz.created_by != user_id:
            raise AuthorizationError("You do not have access to this quiz")
        return quiz

    # reads

    def get_quiz(self, quiz_id: str) -> Optional[models.Quiz]:
        return self.quiz_repo.get_with_questions(quiz_id)

    def page_version(self, quiz_id: str) -> Optional[str]:
        """Version of the quiz's public page; changes with every quiz mutation."""
        return self.quiz_repo.version(quiz_id)

    def get_owned_quiz(self, quiz_id: str, user_id: str) -> models.Quiz:
        quiz = self.quiz_repo.get_with_questions(quiz_id)
        if not quiz:
            raise NotFoundError("Quiz not found")
        if quiz.created_by != user_id:
            raise AuthorizationError("You do not have access to this quiz")
        return quiz

    def list_quizzes(self, user_id: str, search: Optional[str] = None, status: Optional[str] = None) -> List[dict]:
        """Library view: a creator's quizzes with their question counts."""
        quizzes = self.quiz_repo.list_for_user(user_id, search=search, status=status)
        counts = self.quiz_repo.question_counts([q.id for q in quizzes])
        return [quiz_summary(q, counts.get(q.id, 0)) for q in quizzes]

    # validation

    def _parse_timer(self, raw) -> Optional[int]:
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            return None
        try:
            return int(str(raw).strip())
        except ValueError:
            raise ValidationError("Timer must be a whole number of seconds")

    def _parse_questions(self, raw: str) -> List[QuestionIn]:
        try:
            return _QUESTIONS.validate_json(raw or "[]")
        except pydantic.ValidationError as exc:
            loc = exc.errors()[0].get("loc", ())
            if loc and isinstance(loc[0], int):
                field = ".".join(str(p) for p in loc[1:]) or "data"
                raise ValidationError(f"Question {loc[0] + 1}: invalid {field}")
            raise ValidationError("Invalid questions data")

    def _coerce_correct_bool(self, value) -> Optional[bool]:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return parse_bool(value)
        return None

    def _validate_question(self, index: int, q: QuestionIn, timer_mode: str) -> None:
        """Validate one parsed question and raise ValidationError on error."""
        n = index + 1
        if len(q.text.strip()) < models.QUESTION_TEXT_MIN_LENGTH:
            raise ValidationError(f"Question {n}: text must be at least {models.QUESTION_TEXT_MIN_LENGTH} characters")
        if not models.MIN_POINTS <= q.points <= models.MAX_POINTS:
            raise ValidationError(f"Question {n}: points must be between {models.MIN_POINTS} and {models.MAX_POINTS}")
        if q.timer is not None and q.timer < 0:
            raise ValidationError(f"Question {n}: timer must be 0 or more seconds")
        if timer_mode == "question" and q.timer is None:
            raise ValidationError(f"Question {n}: a timer is required when each question is timed")
        if q.type == "multiple_choice":
            if len(q.choices) < 2:
                raise ValidationError(f"Question {n}: multiple choice questions need at least 2 choices")
            if any(not c.text.strip() for c in q.choices):
                raise ValidationError(f"Question {n}: every choice needs text")
            if not any(c.is_correct for c in q.choices):
                raise ValidationError(f"Question {n}: mark at least one choice as correct")
        elif q.type == "true_false":
            if self._coerce_correct_bool(q.correct_answer) is None:
                raise ValidationError(f"Question {n}: true/false questions need a correct answer")
        elif q.type == "fill_in_blank":
            if not isinstance(q.correct_answer, str) or not q.correct_answer.strip():
                raise ValidationError(f"Question {n}: fill in the blank questions need a correct answer")

    def _build_question(self, quiz_id: str, position: int, q: QuestionIn):
        question = models.Question(
            quiz_id=quiz_id,
            position=position,
            type=q.type,
            text=q.text.strip(),
            timer=q.timer,
            points=q.points,
        )
        choices = []
        if q.type == "multiple_choice":
            choices = [
                models.Choice(question_id=question.id, position=i, text=c.text.strip(), is_correct=c.is_correct)
                for i, c in enumerate(q.choices)
            ]
        elif q.type == "true_false":
            question.correct_bool = self._coerce_correct_bool(q.correct_answer)
            question.explanation = (q.explanation or "").strip() or None
        elif q.type == "fill_in_blank":
            question.correct_text = q.correct_answer.strip()
            accepted = q.accepted_answers
            if isinstance(accepted, list):
                accepted = ", ".join(a.strip() for a in accepted if a and a.strip())
            question.accepted_answers = (accepted or "").strip() or None
        elif q.type == "open_ended":
            question.guidelines = (q.guidelines or "").strip()
        return question, choices

    # mutations

    @action("Failed to upsert quiz")
    def upsert_quiz(self, data, user_id: Optional[str] = None) -> dict:
        """Create a quiz (no `quiz_id`) or replace an existing one.

        `data` is a `QuizUpsertIn` (or a dict of its fields). Returns the
        effective quiz id and its public short id.
        """
        if isinstance(data, dict):
            try:
                data = QuizUpsertIn(**data)
            except pydantic.ValidationError:
                raise ValidationError("Invalid quiz data")
        title = (data.title or "").strip()
        if not title:
            raise ValidationError("Title is required")
        if len(title) > models.TITLE_MAX_LENGTH:
            raise ValidationError(f"Title must be at most {models.TITLE_MAX_LENGTH} characters")
        description = (data.description or "").strip() or None
        if description and len(description) > models.DESCRIPTION_MAX_LENGTH:
            raise ValidationError(f"Description must be at most {models.DESCRIPTION_MAX_LENGTH} characters")
        timer_mode = (data.timer_mode or "").strip()
        if not timer_mode:
            raise ValidationError("Timer mode is required")
        if timer_mode not in models.TIMER_MODES:
            raise ValidationError(f"Timer mode must be one of: {', '.join(models.TIMER_MODES)}")
        timer = self._parse_timer(data.timer)
        if timer_mode == "global":
            if timer is None or timer < models.MIN_GLOBAL_TIMER_SECONDS:
                raise ValidationError(f"A global timer of at least {models.MIN_GLOBAL_TIMER_SECONDS} seconds is required")
        else:
            timer = None
        questions = self._parse_questions(data.questions)
        for i, q in enumerate(questions):
            self._validate_question(i, q, timer_mode)

        quiz_id = (data.quiz_id or "").strip()
        if quiz_id:
            quiz = self._owned(quiz_id, user_id)
            quiz.title = title
            quiz.description = description
            quiz.timer_mode = timer_mode
            quiz.timer = timer
            if data.shuffle_questions is not None:
                quiz.shuffle_questions = data.shuffle_questions
            quiz.updated_at = models.utcnow()
            self.session.add(quiz)
            removed = self.quiz_repo.delete_questions(quiz)
            logger.info("replacing %d questions of quiz %s", removed, quiz.id)
        else:
            if not user_id:
                raise AuthorizationError("User not authenticated")
            quiz = self.quiz_repo.add(models.Quiz(
                title=title,
                description=description,
                timer_mode=timer_mode,
                timer=timer,
                shuffle_questions=bool(data.shuffle_questions),
                status="draft",
                is_live=False,
                created_by=user_id,
            ))
        for position, q in enumerate(questions):
            question, choices = self._build_question(quiz.id, position, q)
            self.quiz_repo.add_question(question, choices)
        self.session.commit()
        page_cache.invalidate(quiz.id)
        logger.info("%s quiz %s with %d questions", "updated" if quiz_id else "created", quiz.id, len(questions))
        return {
            "message": "Quiz updated successfully" if quiz_id else "Quiz created successfully",
            "quiz_id": quiz.id,
            "short_id": encode_uuid(quiz.id),
        }

    @action("Failed to delete quiz")
    def delete_quiz(self, quiz_id: Optional[str], user_id: Optional[str] = None) -> dict:
        """Delete a quiz and everything it owns; unknown ids succeed silently."""
        quiz_id = _require_id(quiz_id, "Quiz")
        quiz = self.quiz_repo.get(quiz_id)
        if quiz is not None:
            if user_id is not None and quiz.created_by != user_id:
                raise AuthorizationError("You do not have access to this quiz")
            self.quiz_repo.delete(quiz)
            self.session.commit()
            logger.info("deleted quiz %s", quiz_id)
        page_cache.invalidate(quiz_id)
        return {"message": "Quiz deleted successfully"}

    @action("Failed to update quiz status")
    def set_quiz_live(self, quiz_id: Optional[str], is_live: bool, user_id: Optional[str] = None) -> dict:
        quiz = self._owned(_require_id(quiz_id, "Quiz"), user_id)
        quiz.is_live = bool(is_live)
        if quiz.is_live:
            quiz.status = "active"
        elif quiz.status == "active":
            quiz.status = "paused"
        quiz.updated_at = models.utcnow()
        self.session.add(quiz)
        self.session.commit()
        page_cache.invalidate(quiz.id)
        logger.info("quiz %s live=%s", quiz.id, quiz.is_live)
        return {"message": "Quiz is now live" if quiz.is_live else "Quiz is now offline", "is_live": quiz.is_live}

    @action("Failed to update quiz status")
    def set_quiz_status(self, quiz_id: Optional[str], status: str, user_id: Optional[str] = None) -> dict:
        quiz_id = _require_id(quiz_id, "Quiz")
        status = (status or "").strip().lower()
        if status not in models.QUIZ_STATUSES:
            raise ValidationError(f"Status must be one of: {', '.join(models.QUIZ_STATUSES)}")
        quiz = self._owned(quiz_id, user_id)
        quiz.status = status
        quiz.is_live = status == "active"
        if status == "ended" and quiz.ended_at is None:
            quiz.ended_at = models.utcnow()
        quiz.updated_at = models.utcnow()
        self.session.add(quiz)
        self.session.commit()
        page_cache.invalidate(quiz.id)
        return {"message": STATUS_MESSAGES[status], "status": status, "is_live": quiz.is_live}

    @action("Failed to schedule quiz")
    def schedule_quiz(self, quiz_id: Optional[str], scheduled_at: datetime, ended_at: Optional[datetime] = None,
                      user_id: Optional[str] = None) -> dict:
        quiz_id = _require_id(quiz_id, "Quiz")
        if scheduled_at is None:
            raise ValidationError("Scheduled time is required")
        start = ensure_utc(scheduled_at)
        end = ensure_utc(ended_at)
        if end is not None and end <= start:
            raise ValidationError("End time must be after the scheduled start")
        quiz = self._owned(quiz_id, user_id)
        quiz.status = "scheduled"
        quiz.is_live = False
        quiz.scheduled_at = start
        if end is not None:
            quiz.ended_at = end
        quiz.updated_at = models.utcnow()
        self.session.add(quiz)
        self.session.commit()
        page_cache.invalidate(quiz.id)
        message = "Quiz has been scheduled with end time" if end is not None else "Quiz has been scheduled"
        return {"message": message}

    @action("Failed to update shuffle setting")
    def set_shuffle_questions(self, quiz_id: Optional[str], shuffle: bool, user_id: Optional[str] = None) -> dict:
        quiz = self._owned(_require_id(quiz_id, "Quiz"), user_id)
        quiz.shuffle_questions = bool(shuffle)
        quiz.updated_at = models.utcnow()
        self.session.add(quiz)
        self.session.commit()
        page_cache.invalidate(quiz.id)
        message = "Questions will be shuffled" if quiz.shuffle_questions else "Questions will not be shuffled"
        return {"message": message}


class AttemptService:
    """Start, autosave, submit and grade quiz attempts."""
    def __init__(self, session: Session):
        self.session = session
        self.quiz_repo = repositories.QuizRepository(session)
        self.attempt_repo = repositories.AttemptRepository(session)
        self.user_repo = repositories.UserRepository(session)

    def _load(self, attempt_id: Optional[str], participant_id: Optional[str], quiz_id: Optional[str]) -> models.Attempt:
        attempt = self.attempt_repo.get(_require_id(attempt_id, "Attempt"))
        if not attempt or (quiz_id is not None and attempt.quiz_id != quiz_id):
            raise NotFoundError("Attempt not found")
        if participant_id is not None and attempt.participant_id != participant_id:
            raise AuthorizationError("This attempt belongs to another participant")
        return attempt

    def attempt_payload(self, attempt: models.Attempt, quiz: models.Quiz, now: Optional[datetime] = None) -> dict:
        """Participant view of an attempt: ordered questions, answers, countdown."""
        submitted = attempt.submitted_at is not None
        questions = list(quiz.questions)
        if quiz.shuffle_questions:
            random.Random(attempt.id).shuffle(questions)
        by_question = {a.question_id: a for a in self.attempt_repo.list_answers(attempt.id)}
        limit = time_limit(quiz)
        answers = []
        for q in questions:
            row = by_question.get(q.id)
            if row is None:
                continue
            item = {"question_id": q.id, "answer": row.answer, "updated_at": ensure_utc(row.updated_at)}
            if submitted:
                item.update({"is_correct": row.is_correct, "points_awarded": row.points_awarded})
            answers.append(item)
        return {
            "id": attempt.id,
            "quiz_id": attempt.quiz_id,
            "quiz_title": quiz.title,
            "participant_email": attempt.participant_email,
            "participant_name": attempt.participant_name,
            "started_at": ensure_utc(attempt.started_at),
            "submitted_at": ensure_utc(attempt.submitted_at),
            "submitted": submitted,
            "score": attempt.score,
            "max_score": attempt.max_score,
            "is_late": attempt.is_late,
            "time_limit": limit,
            "remaining_seconds": None if (limit is None or submitted) else remaining_seconds(attempt.started_at, limit, now),
            "questions": [question_payload(q, reveal=submitted) for q in questions],
            "answers": answers,
        }

    @action("An error occurred while starting quiz attempt")
    def start_attempt(self, quiz_id: Optional[str], identity: Identity) -> dict:
        """Start a new attempt, or resume the participant's open one."""
        quiz_id = _require_id(quiz_id, "Quiz")
        if identity is None or not identity.email:
            raise ValidationError("Email is required")
        quiz = self.quiz_repo.get_with_questions(quiz_id)
        if not quiz:
            raise NotFoundError("Quiz not found")
        if not quiz.is_live:
            raise ConflictError("Quiz is not live")
        existing = self.attempt_repo.get_for_participant(quiz.id, identity.id)
        if existing:
            if existing.submitted_at is not None:
                raise ConflictError("Quiz already submitted")
            return {"message": "Quiz attempt resumed", "attempt": self.attempt_payload(existing, quiz)}
        user = self.user_repo.get_by_email(identity.email)
        attempt = self.attempt_repo.add(models.Attempt(
            quiz_id=quiz.id,
            participant_id=identity.id,
            participant_email=identity.email,
            participant_name=identity.name,
            user_id=user.id if user else None,
            max_score=sum(q.points for q in quiz.questions),
        ))
        self.session.commit()
        logger.info("attempt %s started on quiz %s", attempt.id, quiz.id)
        return {"message": "Quiz attempt started", "attempt": self.attempt_payload(attempt, quiz)}

    @action("Failed to auto-save answer")
    def save_answer(self, attempt_id: Optional[str], question_id: Optional[str], answer: str,
                    participant_id: Optional[str] = None, quiz_id: Optional[str] = None) -> dict:
        """Autosave one answer of an open attempt (no grading yet)."""
        question_id = _require_id(question_id, "Question")
        attempt = self._load(attempt_id, participant_id, quiz_id)
        if attempt.submitted_at is not None:
            raise ConflictError("Quiz already submitted")
        quiz = self.quiz_repo.get(attempt.quiz_id)
        if not quiz.is_live:
            raise ConflictError("Quiz is not live")
        question = self.session.get(models.Question, question_id)
        if not question or question.quiz_id != attempt.quiz_id:
            raise NotFoundError("Question not found")
        existed = self.attempt_repo.get_answer(attempt.id, question_id) is not None
        self.attempt_repo.upsert_answer(attempt.id, question_id, answer or "")
        self.session.commit()
        return {"message": "Answer updated successfully" if existed else "Answer saved successfully"}

    @action("Failed to submit quiz")
    def submit_attempt(self, attempt_id: Optional[str], answers: Optional[List[dict]] = None,
                       participant_id: Optional[str] = None, quiz_id: Optional[str] = None,
                       now: Optional[datetime] = None) -> dict:
        """Grade and close an attempt.

        `answers` is a list of `{question_id, answer}` dicts that override
        any autosaved answers. Each stored answer is graded with its
        question's rule; the score is the sum of awarded points.
        """
        attempt = self._load(attempt_id, participant_id, quiz_id)
        if attempt.submitted_at is not None:
            raise ConflictError("Quiz already submitted")
        quiz = self.quiz_repo.get_with_questions(attempt.quiz_id)
        if not quiz.is_live:
            raise ConflictError("Quiz is not live")
        questions = {q.id: q for q in quiz.questions}
        answers = answers or []
        for item in answers:
            if item.get("question_id") not in questions:
                raise ValidationError(f"Question not found in quiz: {item.get('question_id')}")

        now = ensure_utc(now) or models.utcnow()
        limit = time_limit(quiz)
        late = limit is not None and is_past_deadline(
            attempt.started_at, limit, settings.LATE_SUBMISSION_GRACE_SECONDS, now
        )
        if late and settings.REJECT_LATE_SUBMISSIONS:
            raise ConflictError("Time limit exceeded")

        for item in answers:
            self.attempt_repo.upsert_answer(attempt.id, item["question_id"], item.get("answer") or "")

        score = 0
        answered = 0
        items = []
        for row in self.attempt_repo.list_answers(attempt.id):
            question = questions.get(row.question_id)
            if question is None:
                continue
            is_correct, points = grade_answer(question, row.answer)
            row.is_correct = is_correct
            row.points_awarded = points
            self.session.add(row)
            score += points
            if (row.answer or "").strip():
                answered += 1
            items.append({
                "question_id": question.id,
                "answer": row.answer,
                "is_correct": is_correct,
                "points_awarded": points,
                "points": question.points,
            })

        attempt.score = score
        attempt.max_score = sum(q.points for q in questions.values())
        attempt.submitted_at = now
        attempt.is_late = late
        self.session.add(attempt)
        self.session.commit()
        logger.info("attempt %s submitted: %d/%d", attempt.id, score, attempt.max_score)
        return {
            "message": "Quiz submitted successfully",
            "attempt_id": attempt.id,
            "score": score,
            "max_score": attempt.max_score,
            "completion": round(answered / len(questions), 4) if questions else 0.0,
            "is_late": late,
            "items": items,
        }

    @action("Error fetching attempt answers")
    def get_attempt(self, attempt_id: Optional[str], participant_id: Optional[str] = None,
                    quiz_id: Optional[str] = None, now: Optional[datetime] = None) -> dict:
        attempt = self._load(attempt_id, participant_id, quiz_id)
        quiz = self.quiz_repo.get_with_questions(attempt.quiz_id)
        return {"message": "Attempt answers fetched successfully", "attempt": self.attempt_payload(attempt, quiz, now)}


class ReportService:
    """Per-quiz reports and the dashboard rollup for a creator."""
    def __init__(self, session: Session):
        self.session = session
        self.quiz_repo = repositories.QuizRepository(session)
        self.attempt_repo = repositories.AttemptRepository(session)

    def list_reports(self, user_id: str) -> List[dict]:
        """Every quiz of the creator with its aggregate report."""
        quizzes = self.quiz_repo.list_for_user(user_id, with_questions=True)
        ids = [q.id for q in quizzes]
        by_quiz = {}
        for attempt in self.attempt_repo.list_for_quizzes(ids):
            by_quiz.setdefault(attempt.quiz_id, []).append(attempt)
        out = []
        for quiz in quizzes:
            entry = quiz_summary(quiz, len(quiz.questions))
            entry.update(compute_quiz_report(quiz, by_quiz.get(quiz.id, [])))
            out.append(entry)
        return out

    def dashboard_stats(self, user_id: str) -> dict:
        return compute_dashboard_stats(self.list_reports(user_id))

    def quiz_report(self, quiz_id: str, user_id: Optional[str] = None) -> dict:
        """Detailed report: summary figures, per-question stats and participants."""
        quiz = self.quiz_repo.get_with_questions(quiz_id)
        if not quiz:
            raise NotFoundError("Quiz not found")
        if user_id is not None and quiz.created_by != user_id:
            raise AuthorizationError("You do not have access to this quiz")
        attempts = self.attempt_repo.list_for_quiz(quiz.id)
        by_question = {}
        for attempt in attempts:
            for answer in attempt.answers:
                by_question.setdefault(answer.question_id, []).append(answer)
        return {
            "quiz": quiz_summary(quiz, len(quiz.questions)),
            "report": compute_quiz_report(quiz, attempts),
            "questions": [question_stats(q, by_question.get(q.id, [])) for q in quiz.questions],
            "participants": participant_rows(quiz, attempts),
        }
