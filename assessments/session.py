"""
Trainee test-taking session.

A session holds a private copy of the test (possibly shuffled), the answers keyed
by display position, and enough state to be saved in `draft_assessment` (one
draft per trainee) and resumed. Submitting remaps answers back to the original
question order before scoring, so shuffling never changes the result.
"""
import copy
import logging
import random
from datetime import timedelta

from django.utils import timezone
from django.utils.dateparse import parse_datetime

from core.store import DocumentStore
from assessments.exceptions import ActiveSubmissionExists, AssessmentError, SessionClosed
from assessments.questions import normalize_answers, normalize_test
from assessments.submissions import DRAFT_KEY, discard_draft, find_active_submission, get_test, submit_assessment

logger = logging.getLogger(__name__)


def shuffle_questions(questions, rng):
    """
    Shuffle questions keeping linkedToPrevious chains together and in order.
    The first question of a test never links backwards.
    """
    blocks = []
    for i, question in enumerate(questions):
        if question.get('linkedToPrevious') and i > 0:
            blocks[-1].append(question)
        else:
            blocks.append([question])
    rng.shuffle(blocks)
    return [q for block in blocks for q in block]


def scaffold_answer(question, rng):
    """Starting answer for a question as presented to the trainee."""
    qtype = question['type']
    if qtype == 'ordered_list':
        items = list(question.get('items') or [])
        rng.shuffle(items)
        return items
    if qtype == 'matching':
        return [''] * len(question.get('pairs') or [])
    if qtype == 'matrix':
        return {}
    if qtype == 'multi_select':
        return []
    return None


class AssessmentSession:
    """One trainee working through one test. Closed after submit() or abandon()."""

    def __init__(self, store, test, trainee, questions, order, answers, started_at, arena=False):
        self.store = store
        self.test = test
        self.trainee = trainee
        self.questions = questions
        self.order = order
        self.answers = answers
        self.started_at = started_at
        self.arena = arena
        self.closed = False

    @classmethod
    def start(cls, store, test_id, trainee, arena=False, rng=None):
        store = store or DocumentStore()
        rng = rng or random.Random()
        test = normalize_test(get_test(store, test_id))

        if test['type'] == 'vetting' and not arena:
            raise AssessmentError('Vetting tests must be taken in the Vetting Arena.', code='arena_required')
        if find_active_submission(store.load('submissions'), trainee, test['id']):
            raise ActiveSubmissionExists(
                'You have already completed this assessment. Please contact your Admin if you require a retake.'
            )

        indexed = [dict(q, _originalIndex=i) for i, q in enumerate(copy.deepcopy(test['questions']))]
        if test['shuffle']:
            indexed = shuffle_questions(indexed, rng)
        order = [q.pop('_originalIndex') for q in indexed]
        answers = {}
        for position, question in enumerate(indexed):
            scaffold = scaffold_answer(question, rng)
            if scaffold is not None:
                answers[position] = scaffold

        logger.info("session_start test_id=%s trainee=%s arena=%s shuffled=%s", test['id'], trainee, arena, test['shuffle'])
        return cls(store, test, trainee, indexed, order, answers, timezone.now(), arena=arena)

    @classmethod
    def restore(cls, store, trainee):
        """Resume trainee's saved draft, or None when they have none."""
        store = store or DocumentStore()
        draft = (store.load(DRAFT_KEY) or {}).get(trainee)
        if not draft:
            return None
        started_at = parse_datetime(draft.get('startedAt') or '') or timezone.now()
        return cls(
            store,
            draft['test'],
            draft['trainee'],
            draft['questions'],
            [int(i) for i in draft['order']],
            normalize_answers(draft.get('answers')),
            started_at,
            arena=bool(draft.get('arena')),
        )

    def _check_open(self):
        if self.closed:
            raise SessionClosed('This assessment session has already ended.')

    def _question(self, index):
        self._check_open()
        if not isinstance(index, int) or not 0 <= index < len(self.questions):
            raise AssessmentError(f'No question at position {index}', code='invalid_question')
        return self.questions[index]

    # Answer operations, all by display position

    def answer(self, index, value):
        self._question(index)
        self.answers[index] = value

    def set_matching(self, index, slot, value):
        question = self._question(index)
        slots = list(self.answers.get(index) or [''] * len(question['pairs']))
        if not 0 <= slot < len(slots):
            raise AssessmentError(f'No pair at slot {slot}', code='invalid_slot')
        slots[slot] = value
        self.answers[index] = slots

    def set_matrix(self, index, row, col):
        self._question(index)
        grid = dict(self.answers.get(index) or {})
        grid[str(row)] = col
        self.answers[index] = grid

    def toggle_option(self, index, option):
        self._question(index)
        selected = list(self.answers.get(index) or [])
        if option in selected:
            selected.remove(option)
        else:
            selected.append(option)
        self.answers[index] = selected

    def move_item(self, index, from_pos, to_pos):
        self._question(index)
        items = list(self.answers.get(index) or [])
        if not (0 <= from_pos < len(items) and 0 <= to_pos < len(items)):
            raise AssessmentError('Item position out of range', code='invalid_slot')
        items.insert(to_pos, items.pop(from_pos))
        self.answers[index] = items

    @property
    def expires_at(self):
        if self.test['type'] == 'vetting' and self.test.get('duration'):
            return self.started_at + timedelta(minutes=self.test['duration'])
        return None

    def expire(self, now=None):
        """Force-submit once the vetting deadline has passed. Returns the result or None."""
        self._check_open()
        deadline = self.expires_at
        if deadline is None or (now or timezone.now()) < deadline:
            return None
        logger.warning("session_expired test_id=%s trainee=%s", self.test['id'], self.trainee)
        return self.submit(force=True)

    def original_answers(self):
        """Answers keyed by the question's position in the stored test."""
        return {self.order[pos]: value for pos, value in self.answers.items()}

    def save_draft(self):
        self._check_open()
        drafts = self.store.load(DRAFT_KEY) or {}
        drafts[self.trainee] = {
            'test': self.test,
            'trainee': self.trainee,
            'questions': self.questions,
            'order': self.order,
            'answers': {str(k): v for k, v in self.answers.items()},
            'startedAt': self.started_at.isoformat(),
            'arena': self.arena,
            'timestamp': int(timezone.now().timestamp() * 1000),
        }
        self.store.set(DRAFT_KEY, drafts)

    def submit(self, force=False, backend=None):
        self._check_open()
        result = submit_assessment(self.store, self.test, self.trainee, self.original_answers(), force=force, backend=backend)
        self.closed = True
        return result

    def abandon(self):
        self._check_open()
        discard_draft(self.store, self.trainee)
        self.closed = True
        logger.info("session_abandoned test_id=%s trainee=%s", self.test['id'], self.trainee)
