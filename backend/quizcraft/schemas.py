"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable and provide validation for
controller handlers and tests. Question payloads accept both snake_case
and the camelCase keys posted by the authoring form (`isCorrect`,
`correctAnswer`, `acceptedAnswers`).
"""

from datetime import datetime
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class RegisterIn(BaseModel):
    """Payload for creator registration."""
    name: str
    email: str
    password: str


class LoginIn(BaseModel):
    """Payload for the creator (main session) login."""
    email: str
    password: str


class QuizLoginIn(BaseModel):
    """Payload for the participant (quiz session) login; no password."""
    email: str
    name: Optional[str] = None


class TokenOut(BaseModel):
    """Authentication response containing an access token."""
    access_token: str


class _FormModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChoiceIn(_FormModel):
    """A multiple choice option as posted by the authoring form.

    `id` is accepted but ignored: every save re-creates choices.
    """
    id: Optional[str] = None
    text: str = ""
    is_correct: bool = False


class QuestionIn(_FormModel):
    """A question as posted by the authoring form.

    Only the fields belonging to `type` are persisted.
    """
    id: Optional[str] = None
    text: str = ""
    type: Literal["multiple_choice", "true_false", "fill_in_blank", "open_ended"]
    timer: Optional[int] = None
    points: int = 1
    choices: List[ChoiceIn] = Field(default_factory=list)
    correct_answer: Optional[Union[bool, str]] = None
    explanation: Optional[str] = None
    accepted_answers: Optional[Union[str, List[str]]] = None
    guidelines: Optional[str] = None


class QuizUpsertIn(BaseModel):
    """Authoring form for creating (no `quiz_id`) or updating a quiz.

    `questions` is the serialised JSON list of `QuestionIn` items and
    `timer` arrives as text; both are parsed by `QuizService`. An update
    that leaves `shuffle_questions` out keeps the stored setting.
    """
    quiz_id: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    timer_mode: Optional[str] = None
    timer: Optional[Union[int, str]] = None
    shuffle_questions: Optional[bool] = None
    questions: str = "[]"


class LiveIn(BaseModel):
    is_live: bool


class StatusIn(BaseModel):
    status: str


class ScheduleIn(BaseModel):
    scheduled_at: datetime
    ended_at: Optional[datetime] = None


class ShuffleIn(BaseModel):
    shuffle_questions: bool


def _answer_to_text(value):
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


class AnswerIn(BaseModel):
    """A single autosaved answer."""
    answer: str

    @field_validator("answer", mode="before")
    @classmethod
    def coerce_answer(cls, value):
        return _answer_to_text(value)


class SubmittedAnswer(BaseModel):
    """One `{question_id, answer}` item of a submission.

    For multiple choice questions `answer` is the chosen choice id;
    booleans are accepted for true/false questions.
    """
    question_id: str
    answer: str

    @field_validator("answer", mode="before")
    @classmethod
    def coerce_answer(cls, value):
        return _answer_to_text(value)


class SubmissionIn(BaseModel):
    """Request model for submitting an attempt.

    Answers listed here override previously autosaved ones.
    """
    answers: List[SubmittedAnswer] = Field(default_factory=list)
