"""
Question-type registry: the six question kinds and their answer-key shapes.

single_choice  options: [str], correct: index
multi_select   options: [str], correct: [index]
free_text      modelAnswer: str (advisory only, never auto-scored)
matching       pairs: [{left, right}]
ordered_list   items: [str] in correct order
matrix         rows: [str], cols: [str], correct: {row index: column index}

Legacy type names from stored tests are mapped on read (live_practical is a
manually reviewed free_text question). Anything else is a
configuration error (UnknownQuestionType), never silently scored as zero.
"""
from decimal import Decimal, InvalidOperation

from core.utils import normalize_id
from assessments.exceptions import UnknownQuestionType, InvalidTestDefinition

QUESTION_TYPES = ('single_choice', 'multi_select', 'free_text', 'matching', 'ordered_list', 'matrix')
LEGACY_TYPES = {
    'multiple_choice': 'single_choice',
    'text': 'free_text',
    'ranking': 'ordered_list',
    'drag_drop': 'ordered_list',
    'live_practical': 'free_text',
}
MANUAL_REVIEW_TYPES = {'free_text'}
TEST_TYPES = ('standard', 'vetting')


def canonical_type(raw_type) -> str:
    qtype = str(raw_type or '').strip().lower()
    qtype = LEGACY_TYPES.get(qtype, qtype)
    if qtype not in QUESTION_TYPES:
        raise UnknownQuestionType(f'Unknown question type "{raw_type}"')
    return qtype


def coerce_points(value) -> Decimal:
    """Positive point weight; 1 when absent, unparseable or not positive."""
    if value is None or isinstance(value, bool):
        return Decimal('1')
    try:
        points = Decimal(str(value).strip())
    except (InvalidOperation, TypeError, ValueError):
        return Decimal('1')
    if not points.is_finite() or points <= 0:
        return Decimal('1')
    return points


def as_index(value):
    """
    Integer index from an int or a numeric string ("2" -> 2). None when the value
    is not an index (blank, bool, text, non-ASCII digits).
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    text = str(value).strip()
    if text.isascii() and text.lstrip('-').isdecimal():
        return int(text)
    return None


def as_index_set(values) -> set:
    if not isinstance(values, (list, tuple, set)):
        return set()
    indexes = (as_index(v) for v in values)
    return {i for i in indexes if i is not None}


def _strings(values) -> list:
    if not isinstance(values, (list, tuple)):
        return []
    return ['' if v is None else str(v) for v in values]


def _json_number(points: Decimal):
    return int(points) if points == points.to_integral_value() else float(points)


def _matrix_key(values) -> dict:
    """{"0": 2, "1": 0}: row index (string key, JSON-safe) -> column index."""
    if isinstance(values, (list, tuple)):
        values = dict(enumerate(values))
    if not isinstance(values, dict):
        return {}
    out = {}
    for row, col in values.items():
        row_idx, col_idx = as_index(row), as_index(col)
        if row_idx is not None and col_idx is not None:
            out[str(row_idx)] = col_idx
    return out


def normalize_question(data) -> dict:
    """
    Canonical question dict: canonical type, JSON-safe positive points, and only
    the answer-key fields of that type (missing containers default to empty).
    """
    if not isinstance(data, dict):
        raise InvalidTestDefinition('Question must be an object')
    qtype = canonical_type(data.get('type'))
    question = {
        'id': normalize_id(data.get('id')),
        'type': qtype,
        'text': str(data.get('text') or ''),
        'points': _json_number(coerce_points(data.get('points'))),
    }
    if data.get('linkedToPrevious'):
        question['linkedToPrevious'] = True

    if qtype == 'single_choice':
        question['options'] = _strings(data.get('options'))
        question['correct'] = as_index(data.get('correct'))
    elif qtype == 'multi_select':
        question['options'] = _strings(data.get('options'))
        question['correct'] = sorted(as_index_set(data.get('correct')))
    elif qtype == 'free_text':
        question['modelAnswer'] = str(data.get('modelAnswer') or '')
    elif qtype == 'matching':
        pairs = data.get('pairs') if isinstance(data.get('pairs'), list) else []
        question['pairs'] = [
            {'left': str(p.get('left') or ''), 'right': str(p.get('right') or '')}
            for p in pairs if isinstance(p, dict)
        ]
    elif qtype == 'ordered_list':
        question['items'] = _strings(data.get('items'))
    elif qtype == 'matrix':
        question['rows'] = _strings(data.get('rows'))
        question['cols'] = _strings(data.get('cols'))
        question['correct'] = _matrix_key(data.get('correct'))
    return question


def normalize_test(data) -> dict:
    """Canonical test definition {id, title, type, duration, shuffle, questions}."""
    if not isinstance(data, dict):
        raise InvalidTestDefinition('Test must be an object')
    test_type = str(data.get('type') or 'standard').strip().lower()
    duration = as_index(data.get('duration'))
    return {
        'id': normalize_id(data.get('id')),
        'title': str(data.get('title') or '').strip(),
        'type': test_type if test_type in TEST_TYPES else 'standard',
        'duration': duration if test_type == 'vetting' and duration else None,
        'shuffle': bool(data.get('shuffle')),
        'questions': [normalize_question(q) for q in (data.get('questions') or [])],
    }


def normalize_answers(raw) -> dict:
    """Answers keyed by integer question index ({"0": 1} -> {0: 1}); a list is taken positionally."""
    if isinstance(raw, list):
        raw = dict(enumerate(raw))
    if not isinstance(raw, dict):
        return {}
    answers = {}
    for key, value in raw.items():
        index = as_index(key)
        if index is not None:
            answers[index] = value
    return answers


def validate_question(data, index=0) -> list:
    """Builder checks for one question. Returns a list of error messages."""
    label = f'questions[{index}]'
    if not isinstance(data, dict):
        return [f'{label} must be an object']
    try:
        q = normalize_question(data)
    except UnknownQuestionType as e:
        return [f'{label}: {e.messages[0]}']

    errors = []
    if not q['text'].strip():
        errors.append(f'{label}: "text" required')
    qtype = q['type']
    if qtype == 'single_choice':
        if not q['options']:
            errors.append(f'{label}: single_choice question must have "options"')
        elif q['correct'] is None or not 0 <= q['correct'] < len(q['options']):
            errors.append(f'{label}: "correct" must be an index into options')
    elif qtype == 'multi_select':
        if not q['options']:
            errors.append(f'{label}: multi_select question must have "options"')
        elif not q['correct']:
            errors.append(f'{label}: "correct" must list at least one option index')
        elif any(not 0 <= i < len(q['options']) for i in q['correct']):
            errors.append(f'{label}: "correct" indexes must point into options')
    elif qtype == 'matching':
        if not q['pairs']:
            errors.append(f'{label}: matching question must have "pairs"')
        elif any(not p['left'] or not p['right'] for p in q['pairs']):
            errors.append(f'{label}: every pair needs "left" and "right"')
    elif qtype == 'ordered_list':
        if not q['items']:
            errors.append(f'{label}: ordered_list question must have "items"')
    elif qtype == 'matrix':
        if not q['rows'] or not q['cols']:
            errors.append(f'{label}: matrix question must have "rows" and "cols"')
        else:
            for row in range(len(q['rows'])):
                col = q['correct'].get(str(row))
                if col is None or not 0 <= col < len(q['cols']):
                    errors.append(f'{label}: row {row} needs a correct column')
    return errors


def validate_test(data) -> tuple[bool, list[str]]:
    """
    Validate a test definition before saving or scoring.
    Returns (is_valid, list of error messages).
    """
    if not isinstance(data, dict):
        return False, ['test must be an object']
    errors = []
    if not str(data.get('title') or '').strip():
        errors.append('"title" required')
    test_type = str(data.get('type') or 'standard').strip().lower()
    if test_type not in TEST_TYPES:
        errors.append(f'"type" must be one of {", ".join(TEST_TYPES)}')
    elif test_type == 'vetting':
        duration = as_index(data.get('duration'))
        if duration is None or duration <= 0:
            errors.append('vetting test needs a positive "duration" in minutes')

    questions = data.get('questions')
    if not isinstance(questions, list):
        errors.append('"questions" must be an array')
        return False, errors
    if not questions:
        errors.append('test must have at least one question')
    for i, q in enumerate(questions):
        errors.extend(validate_question(q, i))
    return len(errors) == 0, errors
