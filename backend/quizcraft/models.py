"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Each class maps to a table and uses relationships where appropriate.
Identifiers are UUID4 strings so quizzes can be addressed publicly by a
short, reversible encoding of their id (see `utils.short_id`).

Ownership is compositional: a quiz owns its questions and attempts, a
question owns its choices and the answers given to it, an attempt owns
its answers. Deletes cascade both through the ORM relationships and the
`ON DELETE CASCADE` foreign keys.
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field, Relationship

TIMER_MODES = ("none", "global", "question")
QUIZ_STATUSES = ("draft", "scheduled", "active", "paused", "ended")

TITLE_MAX_LENGTH = 80
DESCRIPTION_MAX_LENGTH = 1024
QUESTION_TEXT_MIN_LENGTH = 5
MIN_GLOBAL_TIMER_SECONDS = 60
MIN_POINTS, MAX_POINTS = 1, 10

_CASCADE = {"cascade": "all, delete"}


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    """A registered creator.

    Fields:
    - `email`: unique login, stored lower-cased
    - `password_hash`: hashed password string; null for accounts created
      through an external identity provider
    """
    id: str = Field(default_factory=new_id, primary_key=True)
    name: str
    email: str = Field(index=True, nullable=False, unique=True)
    password_hash: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    quizzes: List['Quiz'] = Relationship(back_populates='creator', sa_relationship_kwargs=_CASCADE)


class Quiz(SQLModel, table=True):
    """A named collection of questions with timing, shuffle and liveness settings.

    `is_live` is the only flag that gates quiz taking; `status` drives the
    offline message shown to participants.
    """
    id: str = Field(default_factory=new_id, primary_key=True)
    title: str = Field(max_length=TITLE_MAX_LENGTH)
    description: Optional[str] = Field(default=None, max_length=DESCRIPTION_MAX_LENGTH)
    timer_mode: str = "none"
    timer: Optional[int] = None
    shuffle_questions: bool = False
    status: str = Field(default="draft", index=True)
    is_live: bool = False
    scheduled_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    created_by: str = Field(foreign_key='user.id', index=True, ondelete='CASCADE')
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    creator: Optional[User] = Relationship(back_populates='quizzes')
    questions: List['Question'] = Relationship(
        back_populates='quiz',
        sa_relationship_kwargs={**_CASCADE, "order_by": "Question.position"},
    )
    attempts: List['Attempt'] = Relationship(back_populates='quiz', sa_relationship_kwargs=_CASCADE)


class Question(SQLModel, table=True):
    """A question of one of the four variants.

    The variant payload lives in nullable columns on the same row:
    `correct_bool`/`explanation` for true/false, `correct_text` and the
    comma-separated `accepted_answers` for fill in the blank,
    `guidelines` for open ended, and the `choices` rows for multiple
    choice.
    """
    id: str = Field(default_factory=new_id, primary_key=True)
    quiz_id: str = Field(foreign_key='quiz.id', index=True, ondelete='CASCADE')
    position: int = 0
    type: str
    text: str
    timer: Optional[int] = None
    points: int = 1
    correct_bool: Optional[bool] = None
    explanation: Optional[str] = None
    correct_text: Optional[str] = None
    accepted_answers: Optional[str] = None
    guidelines: Optional[str] = None
    quiz: Optional[Quiz] = Relationship(back_populates='questions')
    choices: List['Choice'] = Relationship(
        back_populates='question',
        sa_relationship_kwargs={**_CASCADE, "order_by": "Choice.position"},
    )
    answers: List['AttemptAnswer'] = Relationship(back_populates='question', sa_relationship_kwargs=_CASCADE)


class Choice(SQLModel, table=True):
    """Possible answer for a multiple choice `Question`."""
    id: str = Field(default_factory=new_id, primary_key=True)
    question_id: str = Field(foreign_key='question.id', index=True, ondelete='CASCADE')
    position: int = 0
    text: str
    is_correct: bool = False
    question: Optional[Question] = Relationship(back_populates='choices')


class Attempt(SQLModel, table=True):
    """One participant's single pass through a quiz.

    `participant_id` is the identity resolved from the quiz session (the
    email for email-only logins). The row is frozen once `submitted_at`
    is set.
    """
    __table_args__ = (UniqueConstraint('quiz_id', 'participant_id'),)

    id: str = Field(default_factory=new_id, primary_key=True)
    quiz_id: str = Field(foreign_key='quiz.id', index=True, ondelete='CASCADE')
    participant_id: str = Field(index=True)
    participant_email: str
    participant_name: Optional[str] = None
    user_id: Optional[str] = Field(default=None, foreign_key='user.id', ondelete='SET NULL')
    started_at: datetime = Field(default_factory=utcnow)
    submitted_at: Optional[datetime] = None
    score: int = 0
    max_score: int = 0
    is_late: bool = False
    quiz: Optional[Quiz] = Relationship(back_populates='attempts')
    answers: List['AttemptAnswer'] = Relationship(back_populates='attempt', sa_relationship_kwargs=_CASCADE)


class AttemptAnswer(SQLModel, table=True):
    """A participant's answer to one question inside an `Attempt`.

    `is_correct` is null until graded, and stays null for open ended
    questions.
    """
    __table_args__ = (UniqueConstraint('attempt_id', 'question_id'),)

    id: str = Field(default_factory=new_id, primary_key=True)
    attempt_id: str = Field(foreign_key='attempt.id', index=True, ondelete='CASCADE')
    question_id: str = Field(foreign_key='question.id', index=True, ondelete='CASCADE')
    answer: str = ""
    is_correct: Optional[bool] = None
    points_awarded: int = 0
    updated_at: datetime = Field(default_factory=utcnow)
    attempt: Optional[Attempt] = Relationship(back_populates='answers')
    question: Optional[Question] = Relationship(back_populates='answers')
