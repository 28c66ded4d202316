"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users,
quizzes with their questions, attempts with their answers).
Repositories return SQLModel objects. Apart from user registration they
only `flush`: services own the transaction and commit once per
operation, so a quiz save with its question replacement is atomic.
"""

from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import selectinload
from sqlmodel import Session, select

from . import models


class UserRepository:
    """CRUD operations for `User` objects."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, user: models.User) -> models.User:
        """Persist a new user and return the managed instance."""
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def get_by_email(self, email: str) -> Optional[models.User]:
        """Return a `User` by (case-insensitive) email or `None` if not found."""
        stmt = select(models.User).where(models.User.email == email.strip().lower())
        return self.session.exec(stmt).first()

    def get(self, user_id: str) -> Optional[models.User]:
        """Get a `User` by primary key."""
        return self.session.get(models.User, user_id)


class QuizRepository:
    """Operations on `Quiz` rows and their owned questions/choices."""
    def __init__(self, session: Session):
        self.session = session

    def get(self, quiz_id: str) -> Optional[models.Quiz]:
        return self.session.get(models.Quiz, quiz_id)

    def get_with_questions(self, quiz_id: str) -> Optional[models.Quiz]:
        """Fetch a quiz with its ordered questions and choices eagerly loaded."""
        stmt = (
            select(models.Quiz)
            .where(models.Quiz.id == quiz_id)
            .options(selectinload(models.Quiz.questions).selectinload(models.Question.choices))
        )
        return self.session.exec(stmt).first()

    def version(self, quiz_id: str) -> Optional[str]:
        """The quiz's `updated_at` as a cache version, or None for unknown ids."""
        stmt = select(models.Quiz.updated_at).where(models.Quiz.id == quiz_id)
        updated_at = self.session.exec(stmt).first()
        return updated_at.isoformat() if updated_at is not None else None

    def list_for_user(self, user_id: str, search: Optional[str] = None, status: Optional[str] = None,
                      with_questions: bool = False) -> List[models.Quiz]:
        """Return a creator's quizzes, newest first, optionally filtered."""
        stmt = select(models.Quiz).where(models.Quiz.created_by == user_id)
        if with_questions:
            stmt = stmt.options(selectinload(models.Quiz.questions))
        if search:
            pattern = f"%{search.strip().lower()}%"
            stmt = stmt.where(or_(
                func.lower(models.Quiz.title).like(pattern),
                func.lower(func.coalesce(models.Quiz.description, "")).like(pattern),
            ))
        if status:
            stmt = stmt.where(models.Quiz.status == status)
        stmt = stmt.order_by(models.Quiz.created_at.desc())
        return self.session.exec(stmt).all()

    def question_counts(self, quiz_ids: List[str]) -> dict:
        """Map quiz id -> number of questions for the given quizzes."""
        if not quiz_ids:
            return {}
        stmt = (
            select(models.Question.quiz_id, func.count(models.Question.id))
            .where(models.Question.quiz_id.in_(quiz_ids))
            .group_by(models.Question.quiz_id)
        )
        return {quiz_id: count for quiz_id, count in self.session.exec(stmt).all()}

    def add(self, quiz: models.Quiz) -> models.Quiz:
        self.session.add(quiz)
        self.session.flush()
        return quiz

    def add_question(self, question: models.Question, choices: List[models.Choice]) -> models.Question:
        """Attach a question and its choices; ids are assigned client-side."""
        self.session.add(question)
        for c in choices:
            c.question_id = question.id
            self.session.add(c)
        self.session.flush()
        return question

    def delete_questions(self, quiz: models.Quiz) -> int:
        """Delete every question of `quiz` (cascading to choices and answers)."""
        removed = 0
        for q in list(quiz.questions):
            self.session.delete(q)
            removed += 1
        self.session.flush()
        self.session.expire(quiz, ['questions'])
        return removed

    def delete(self, quiz: models.Quiz) -> None:
        self.session.delete(quiz)
        self.session.flush()


class AttemptRepository:
    """Persist attempts and their per-question answers."""
    def __init__(self, session: Session):
        self.session = session

    def get(self, attempt_id: str) -> Optional[models.Attempt]:
        return self.session.get(models.Attempt, attempt_id)

    def get_for_participant(self, quiz_id: str, participant_id: str) -> Optional[models.Attempt]:
        stmt = select(models.Attempt).where(
            models.Attempt.quiz_id == quiz_id,
            models.Attempt.participant_id == participant_id,
        )
        return self.session.exec(stmt).first()

    def list_for_quiz(self, quiz_id: str) -> List[models.Attempt]:
        """All attempts of a quiz with their answers eagerly loaded."""
        stmt = (
            select(models.Attempt)
            .where(models.Attempt.quiz_id == quiz_id)
            .options(selectinload(models.Attempt.answers))
        )
        return self.session.exec(stmt).all()

    def list_for_quizzes(self, quiz_ids: List[str]) -> List[models.Attempt]:
        if not quiz_ids:
            return []
        stmt = (
            select(models.Attempt)
            .where(models.Attempt.quiz_id.in_(quiz_ids))
            .options(selectinload(models.Attempt.answers))
        )
        return self.session.exec(stmt).all()

    def add(self, attempt: models.Attempt) -> models.Attempt:
        self.session.add(attempt)
        self.session.flush()
        return attempt

    def get_answer(self, attempt_id: str, question_id: str) -> Optional[models.AttemptAnswer]:
        stmt = select(models.AttemptAnswer).where(
            models.AttemptAnswer.attempt_id == attempt_id,
            models.AttemptAnswer.question_id == question_id,
        )
        return self.session.exec(stmt).first()

    def upsert_answer(self, attempt_id: str, question_id: str, answer: str) -> models.AttemptAnswer:
        """Create or overwrite the single answer row for (attempt, question)."""
        existing = self.get_answer(attempt_id, question_id)
        if existing:
            existing.answer = answer
            existing.updated_at = models.utcnow()
            self.session.add(existing)
            self.session.flush()
            return existing
        row = models.AttemptAnswer(attempt_id=attempt_id, question_id=question_id, answer=answer)
        self.session.add(row)
        self.session.flush()
        return row

    def list_answers(self, attempt_id: str) -> List[models.AttemptAnswer]:
        stmt = select(models.AttemptAnswer).where(models.AttemptAnswer.attempt_id == attempt_id)
        return self.session.exec(stmt).all()
