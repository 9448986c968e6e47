"""
Scoring engine: earned points per question, totals, percent and the manual-review flag.

Per-type rules (earned is always within [0, points]):
- single_choice: full points when the chosen index equals the key.
- multi_select: (match - incorrect) / |correct| * points, floored at 0; each
  wrong selection cancels one right one.
- free_text: 0; any free_text question puts the whole submission in manual review.
- matching: full points only when every pair position holds its right side.
- ordered_list: full points only for the exact sequence.
- matrix: share of correct rows * points, rounded half-up to one decimal.

Pure computation: no persistence, no side effects.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP

from assessments.exceptions import EmptyTestError
from assessments.questions import (
    MANUAL_REVIEW_TYPES,
    as_index,
    as_index_set,
    coerce_points,
    normalize_answers,
    normalize_question,
)

logger = logging.getLogger(__name__)

ZERO = Decimal('0')
HUNDRED = Decimal('100')
ONE_DECIMAL = Decimal('0.1')


def _position(answer, i):
    """i-th slot of a position-aligned answer (list, or dict keyed by index)."""
    if isinstance(answer, (list, tuple)):
        return answer[i] if i < len(answer) else None
    if isinstance(answer, dict):
        return normalize_answers(answer).get(i)
    return None


def score_single_choice(question, answer, points):
    correct = as_index(question['correct'])
    chosen = as_index(answer)
    if correct is None or chosen is None:
        return ZERO
    return points if chosen == correct else ZERO


def score_multi_select(question, answer, points):
    correct = as_index_set(question['correct'])
    if not correct or answer is None:
        return ZERO
    selected = as_index_set(answer)
    match = len(selected & correct)
    incorrect = len(selected - correct)
    raw = Decimal(match - incorrect) / Decimal(len(correct)) * points
    return max(ZERO, raw)


def score_free_text(question, answer, points):
    # Model answer is advisory; an administrator marks these
    return ZERO


def score_matching(question, answer, points):
    pairs = question['pairs']
    if not pairs or answer is None:
        return ZERO
    if all(_position(answer, i) == pair['right'] for i, pair in enumerate(pairs)):
        return points
    return ZERO


def score_ordered_list(question, answer, points):
    items = question['items']
    if not items or not isinstance(answer, (list, tuple)):
        return ZERO
    return points if list(answer) == items else ZERO


def score_matrix(question, answer, points):
    rows = question['rows']
    if not rows or answer is None:
        return ZERO
    correct = question['correct']
    correct_rows = 0
    for row in range(len(rows)):
        expected = correct.get(str(row))
        if expected is not None and as_index(_position(answer, row)) == expected:
            correct_rows += 1
    partial = Decimal(correct_rows) / Decimal(len(rows)) * points
    return partial.quantize(ONE_DECIMAL, rounding=ROUND_HALF_UP)


SCORERS = {
    'single_choice': score_single_choice,
    'multi_select': score_multi_select,
    'free_text': score_free_text,
    'matching': score_matching,
    'ordered_list': score_ordered_list,
    'matrix': score_matrix,
}


def compute_percent(earned, max_points) -> int:
    """round-half-up(earned / max * 100), clamped to [0, 100]; 0 when max is 0."""
    earned = Decimal(str(earned))
    max_points = Decimal(str(max_points))
    if max_points <= 0:
        return 0
    percent = (earned / max_points * HUNDRED).quantize(Decimal('1'), rounding=ROUND_HALF_UP)
    return int(min(max(percent, ZERO), HUNDRED))


def score_test(test, answers) -> dict:
    """
    Score a test definition against answers keyed by question index.
    Missing answers score zero. Raises EmptyTestError for a test without
    questions and UnknownQuestionType for a question the engine cannot score.

    Returns {earned_points, max_points, percent, requires_manual_review, breakdown}.
    """
    questions = test.get('questions') if isinstance(test, dict) else None
    if not questions:
        raise EmptyTestError('Test has no questions to score')

    answers = normalize_answers(answers)
    earned_points = ZERO
    max_points = ZERO
    requires_manual_review = False
    breakdown = []

    for index, question in enumerate(questions):
        q = normalize_question(question)
        points = coerce_points(q['points'])
        earned = SCORERS[q['type']](q, answers.get(index), points)
        earned = min(max(earned, ZERO), points)
        if q['type'] in MANUAL_REVIEW_TYPES:
            requires_manual_review = True
        earned_points += earned
        max_points += points
        breakdown.append({
            'index': index,
            'type': q['type'],
            'earned': earned,
            'points': points,
            'requiresManualReview': q['type'] in MANUAL_REVIEW_TYPES,
        })

    percent = compute_percent(earned_points, max_points)
    logger.debug(
        "score_test test_id=%s earned=%s max=%s percent=%s manual=%s",
        test.get('id'), earned_points, max_points, percent, requires_manual_review,
    )
    return {
        'earned_points': earned_points,
        'max_points': max_points,
        'percent': percent,
        'requires_manual_review': requires_manual_review,
        'breakdown': breakdown,
    }
