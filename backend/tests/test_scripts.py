import run_migrations
from conftest import unique_email
from quizcraft import services
from quizcraft.repositories import UserRepository
from scripts import seed_demo


def test_run_migrations_reports_tables(capsys):
    run_migrations.run()
    out = capsys.readouterr().out
    assert "Table ready: quiz" in out
    assert "Table ready: attemptanswer" in out


def test_seed_demo_creates_live_quiz(db, capsys):
    email = unique_email("demo")
    seed_demo.main(email, "demo")
    out = capsys.readouterr().out
    assert f"Created user {email}" in out
    assert "Live quiz at /q/" in out

    user = UserRepository(db).get_by_email(email)
    quizzes = services.QuizService(db).list_quizzes(user.id)
    assert len(quizzes) == 1
    assert quizzes[0]["is_live"] is True
    assert quizzes[0]["question_count"] == len(seed_demo.SAMPLE_QUESTIONS)

    # a second run reuses the account
    seed_demo.main(email, "demo")
    assert "Created user" not in capsys.readouterr().out
