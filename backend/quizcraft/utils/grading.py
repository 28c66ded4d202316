"""Correctness rules per question variant.

Every rule takes a `Question` row (with its `choices` loaded for
multiple choice) and the participant's raw answer text, and returns
`(is_correct, points_awarded)`. `is_correct` is None for answers that
cannot be graded automatically (open ended).
"""

from typing import Optional, Set, Tuple

_TRUE = {"true", "t", "yes", "y", "1"}
_FALSE = {"false", "f", "no", "n", "0"}


def normalize(text: Optional[str]) -> str:
    return text.strip().lower() if isinstance(text, str) else ""


def parse_bool(raw: Optional[str]) -> Optional[bool]:
    """Parse a submitted true/false answer; None when unrecognised."""
    value = normalize(raw)
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    return None


def split_accepted(accepted: Optional[str]) -> list:
    """Split a comma-separated accepted answers string into clean entries."""
    if not accepted:
        return []
    return [part.strip() for part in accepted.split(',') if part.strip()]


def accepted_set(question) -> Set[str]:
    """All normalised texts accepted for a fill in the blank question."""
    out = {normalize(a) for a in split_accepted(question.accepted_answers)}
    if normalize(question.correct_text):
        out.add(normalize(question.correct_text))
    return out


def _multiple_choice(question, raw: str) -> bool:
    chosen = (raw or "").strip()
    return any(c.id == chosen and c.is_correct for c in question.choices)


def _true_false(question, raw: str) -> bool:
    given = parse_bool(raw)
    return given is not None and question.correct_bool is not None and given == question.correct_bool


def _fill_in_blank(question, raw: str) -> bool:
    given = normalize(raw)
    return bool(given) and given in accepted_set(question)


_RULES = {
    "multiple_choice": _multiple_choice,
    "true_false": _true_false,
    "fill_in_blank": _fill_in_blank,
}


def grade_answer(question, raw: Optional[str]) -> Tuple[Optional[bool], int]:
    rule = _RULES.get(question.type)
    if rule is None:
        # open ended: left for manual review
        return None, 0
    correct = rule(question, raw or "")
    return correct, (question.points if correct else 0)
