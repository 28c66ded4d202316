"""CLI script to seed a demo creator and a live sample quiz.

Usage: python scripts/seed_demo.py [--email EMAIL] [--password PASSWORD]
"""
import argparse
import json

from sqlmodel import Session

from quizcraft import services
from quizcraft.database import create_db_and_tables, engine
from quizcraft.repositories import UserRepository

SAMPLE_QUESTIONS = [
    {
        "type": "multiple_choice",
        "text": "Which keyword defines a function in Python?",
        "points": 2,
        "choices": [
            {"text": "def", "isCorrect": True},
            {"text": "func", "isCorrect": False},
            {"text": "lambda", "isCorrect": False},
        ],
    },
    {
        "type": "true_false",
        "text": "Python lists are immutable.",
        "correctAnswer": False,
        "explanation": "Lists can be changed in place; tuples cannot.",
    },
    {
        "type": "fill_in_blank",
        "text": "The built-in used to get the length of a list is ____.",
        "correctAnswer": "len",
        "acceptedAnswers": "len()",
    },
    {
        "type": "open_ended",
        "text": "Explain the difference between a process and a thread.",
        "guidelines": "Mention memory sharing and scheduling.",
    },
]


def main(email: str, password: str):
    """Create the demo account (if missing) and one live quiz.

    Results are printed to stdout for a quick CLI feedback loop.
    """
    create_db_and_tables()
    with Session(engine) as session:
        auth = services.AuthService(session)
        user = UserRepository(session).get_by_email(email)
        if user is None:
            user = auth.register("Demo Creator", email, password)
            print(f"Created user {user.email}")
        quizzes = services.QuizService(session)
        result = quizzes.upsert_quiz(
            {
                "title": "Python basics",
                "description": "A short warm-up quiz.",
                "timer_mode": "global",
                "timer": "300",
                "questions": json.dumps(SAMPLE_QUESTIONS),
            },
            user_id=user.id,
        )
        if result.get("error"):
            print(f"Seeding failed: {result['message']}")
            return
        quizzes.set_quiz_live(result["quiz_id"], True, user_id=user.id)
        print(f"Live quiz at /q/{result['short_id']}")


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description="Seed a demo creator and quiz")
    parser.add_argument('--email', default='demo@example.com')
    parser.add_argument('--password', default='demo')
    args = parser.parse_args()
    main(args.email, args.password)
