"""Report aggregation over already-loaded quiz rows.

All functions are pure: they read `Quiz`/`Attempt`/`AttemptAnswer`
objects (or anything shaped like them) and return plain dicts ready for
JSON. Every division is guarded so empty inputs yield zeros.
"""

from collections import Counter
from typing import Dict, Iterable, List

from .grading import accepted_set, normalize, parse_bool
from .timer import ensure_utc


def _pct(numerator: float, denominator: float) -> float:
    if not denominator:
        return 0.0
    return round(numerator * 100.0 / denominator, 1)


def _is_answered(answer) -> bool:
    return bool((answer.answer or "").strip())


def compute_quiz_report(quiz, attempts: Iterable) -> Dict:
    """Summarise all attempts of `quiz`.

    - participant_count: distinct participant identities
    - accuracy: mean of awarded/max points over graded answers, in percent
    - completion_rate: mean of answered/total questions over attempts, in percent
    - last_attempt: latest submission time, None when nothing was submitted
    """
    attempts = list(attempts)
    points = {q.id: q.points for q in quiz.questions}
    question_count = len(points)

    ratios: List[float] = []
    completions: List[float] = []
    submitted = []
    for attempt in attempts:
        answered = 0
        for answer in attempt.answers:
            max_points = points.get(answer.question_id)
            if max_points is None:
                continue
            if _is_answered(answer):
                answered += 1
            if answer.is_correct is not None and max_points > 0:
                ratios.append(answer.points_awarded / max_points)
        completions.append(answered / question_count if question_count else 0.0)
        if attempt.submitted_at is not None:
            submitted.append(ensure_utc(attempt.submitted_at))

    return {
        'participant_count': len({a.participant_id for a in attempts}),
        'accuracy': _pct(sum(ratios), len(ratios)),
        'completion_rate': _pct(sum(completions), len(completions)),
        'last_attempt': max(submitted) if submitted else None,
    }


def compute_dashboard_stats(reports: List[Dict]) -> Dict:
    """Roll per-quiz reports up into dashboard figures (mean of means)."""
    count = len(reports)
    return {
        'total_quizzes': count,
        'total_participants': sum(r['participant_count'] for r in reports),
        'avg_accuracy': round(sum(r['accuracy'] for r in reports) / max(count, 1), 1),
        'completion_rate': round(sum(r['completion_rate'] for r in reports) / max(count, 1), 1),
    }


def question_stats(question, answers: Iterable) -> Dict:
    """Answer statistics and distribution for a single question."""
    answers = [a for a in answers if _is_answered(a)]
    graded = [a for a in answers if a.is_correct is not None]
    correct = sum(1 for a in graded if a.is_correct)
    distribution = []
    if question.type == 'multiple_choice':
        picks = Counter(a.answer.strip() for a in answers)
        distribution = [
            {'text': c.text, 'is_correct': c.is_correct, 'count': picks.get(c.id, 0)}
            for c in question.choices
        ]
    elif question.type == 'true_false':
        picks = Counter(parse_bool(a.answer) for a in answers)
        distribution = [
            {'text': 'True', 'is_correct': question.correct_bool is True, 'count': picks.get(True, 0)},
            {'text': 'False', 'is_correct': question.correct_bool is False, 'count': picks.get(False, 0)},
        ]
    elif question.type == 'fill_in_blank':
        accepted = accepted_set(question)
        picks = Counter(normalize(a.answer) for a in answers)
        distribution = [
            {'text': text, 'is_correct': text in accepted, 'count': n}
            for text, n in picks.most_common()
        ]
    return {
        'question_id': question.id,
        'text': question.text,
        'type': question.type,
        'points': question.points,
        'answer_count': len(answers),
        'correct_count': correct,
        'accuracy': _pct(correct, len(graded)),
        'distribution': distribution,
    }


def participant_rows(quiz, attempts: Iterable) -> List[Dict]:
    """One row per attempt for the participants table, newest first."""
    question_ids = {q.id for q in quiz.questions}
    rows = []
    for attempt in attempts:
        answered = sum(1 for a in attempt.answers if a.question_id in question_ids and _is_answered(a))
        rows.append({
            'attempt_id': attempt.id,
            'participant_email': attempt.participant_email,
            'participant_name': attempt.participant_name,
            'started_at': ensure_utc(attempt.started_at),
            'submitted_at': ensure_utc(attempt.submitted_at),
            'score': attempt.score,
            'max_score': attempt.max_score,
            'percentage': _pct(attempt.score, attempt.max_score),
            'answered': answered,
            'status': 'submitted' if attempt.submitted_at is not None else 'in_progress',
            'is_late': attempt.is_late,
        })
    rows.sort(key=lambda r: r['started_at'], reverse=True)
    return rows
