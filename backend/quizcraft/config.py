"""Application settings and validation."""

import os
from pathlib import Path

BASE = Path(__file__).resolve().parent.parent


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class Settings:
    ENV: str
    DATABASE_URL: str
    JWT_SECRET: str
    JWT_ALGORITHM: str
    JWT_EXPIRE_HOURS: int
    QUIZ_JWT_EXPIRE_HOURS: int
    MAIN_SESSION_COOKIE: str
    QUIZ_SESSION_COOKIE: str
    COOKIE_SECURE: bool
    ALLOW_INSECURE_JWT: bool
    ALLOW_DEV_CORS: bool
    PAGE_CACHE_TTL_SECONDS: int
    REJECT_LATE_SUBMISSIONS: bool
    LATE_SUBMISSION_GRACE_SECONDS: int

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE / 'app.db'}")
        self.JWT_SECRET = os.getenv("JWT_SECRET", "change_me_for_prod")
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRE_HOURS", "24"))
        self.QUIZ_JWT_EXPIRE_HOURS = int(os.getenv("QUIZ_JWT_EXPIRE_HOURS", "12"))
        self.MAIN_SESSION_COOKIE = os.getenv("MAIN_SESSION_COOKIE", "quizcraft.session-token")
        self.QUIZ_SESSION_COOKIE = os.getenv("QUIZ_SESSION_COOKIE", "quizcraft.quiz.session-token")
        # secure cookies are the default everywhere except local dev
        self.COOKIE_SECURE = _flag("COOKIE_SECURE", "false" if self.ENV == "dev" else "true")
        self.ALLOW_INSECURE_JWT = _flag("ALLOW_INSECURE_JWT", "false")
        self.ALLOW_DEV_CORS = _flag("ALLOW_DEV_CORS", "true")
        self.PAGE_CACHE_TTL_SECONDS = int(os.getenv("PAGE_CACHE_TTL_SECONDS", "60"))
        self.REJECT_LATE_SUBMISSIONS = _flag("REJECT_LATE_SUBMISSIONS", "false")
        self.LATE_SUBMISSION_GRACE_SECONDS = int(os.getenv("LATE_SUBMISSION_GRACE_SECONDS", "30"))
        self._validate()

    def _validate(self):
        if self.ENV != "dev" and not self.ALLOW_INSECURE_JWT and self.JWT_SECRET == "change_me_for_prod":
            raise RuntimeError("JWT_SECRET must be set to a non-default value in non-dev environments")
        if self.PAGE_CACHE_TTL_SECONDS < 0:
            raise RuntimeError("PAGE_CACHE_TTL_SECONDS must be >= 0")


settings = Settings()
