# Answers are graded by position: answer i against question i.
import math
import re
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from pydantic import BaseModel

GRADE_THRESHOLDS = (
    (90, "A+"),
    (85, "A"),
    (80, "A-"),
    (75, "B+"),
    (70, "B"),
    (65, "C+"),
    (60, "C"),
)
FAILING_GRADE = "F"

INDEXED_TYPES = ("mcq", "tf")

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


class EvaluatedAnswer(BaseModel):
    questionId: str
    selectedAnswer: Any = None
    isCorrect: bool
    timeSpent: float = 0


class Evaluation(BaseModel):
    score: float
    totalMarks: float
    percentage: float
    grade: str
    answers: List[EvaluatedAnswer] = []


def parse_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return None
        return int(value)
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        return int(match.group(1)) if match else None
    return None


def normalize_correct_answer(value: Any, question_type: str = "mcq", options: Sequence[str] = ()) -> Any:
    # unusable mcq/tf keys fall back to index 0
    if question_type not in INDEXED_TYPES:
        return "" if value is None else str(value)
    index = parse_int(value)
    if index is None or index < 0:
        return 0
    if options and index >= len(options):
        return 0
    return index


def normalize_marks(value: Any) -> int:
    marks = parse_int(value)
    if not marks or marks < 0:
        return 1
    return marks


def question_marks(question: Mapping[str, Any]) -> float:
    marks = question.get("marks")
    if isinstance(marks, bool) or not isinstance(marks, (int, float)) or not marks:
        return 1
    return marks


def sum_marks(questions: Iterable[Mapping[str, Any]]) -> float:
    return sum(question_marks(q) for q in questions if isinstance(q, Mapping))


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def answers_match(selected: Any, correct: Any) -> bool:
    if _is_number(selected) and _is_number(correct):
        return selected == correct
    if isinstance(selected, str) and isinstance(correct, str):
        return selected == correct
    if isinstance(selected, bool) and isinstance(correct, bool):
        return selected == correct
    return False


def round_percentage(score: float, total_marks: float) -> float:
    if not total_marks or total_marks <= 0:
        return 0.0
    value = Decimal(str(score)) * 100 / Decimal(str(total_marks))
    return float(value.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def get_grade(percentage: float) -> str:
    for threshold, grade in GRADE_THRESHOLDS:
        if percentage >= threshold:
            return grade
    return FAILING_GRADE


def evaluate_submission(
    questions: Sequence[Mapping[str, Any]],
    answers: Sequence[Any],
    stored_total_marks: Optional[float] = None,
) -> Evaluation:
    score = 0
    graded = []
    for i, answer in enumerate(answers):
        if i >= len(questions):
            break
        question = questions[i]
        if not isinstance(question, Mapping):
            continue
        if isinstance(answer, Mapping):
            selected = answer.get("selectedAnswer")
            time_spent = answer.get("timeSpent")
        else:
            selected, time_spent = answer, None

        is_correct = answers_match(selected, question.get("correctAnswer"))
        if is_correct:
            score += question_marks(question)

        graded.append(EvaluatedAnswer(
            questionId=str(question.get("id") or f"q{i}"),
            selectedAnswer=selected,
            isCorrect=is_correct,
            timeSpent=time_spent if _is_number(time_spent) else 0,
        ))

    total_marks = stored_total_marks if _is_number(stored_total_marks) and stored_total_marks > 0 else sum_marks(questions)
    percentage = round_percentage(score, total_marks)
    return Evaluation(
        score=score,
        totalMarks=total_marks,
        percentage=percentage,
        grade=get_grade(percentage),
        answers=graded,
    )
