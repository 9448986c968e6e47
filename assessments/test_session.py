"""
Tests for the trainee test-taking session: shuffling, scaffolding, drafts, expiry.
"""
import random
from datetime import timedelta

from django.test import SimpleTestCase, TestCase
from django.utils import timezone

from core.store import DocumentStore
from core.sync import SyncOutcome
from assessments.exceptions import ActiveSubmissionExists, AssessmentError, AssessmentNotFound, SessionClosed
from assessments.session import AssessmentSession, shuffle_questions

TEST = {
    'id': 't1',
    'title': 'Module 1',
    'shuffle': True,
    'questions': [
        {'type': 'single_choice', 'text': 'Q0', 'options': ['a', 'b'], 'correct': 1},
        {'type': 'ordered_list', 'text': 'Q1', 'items': ['x', 'y', 'z']},
        {'type': 'matching', 'text': 'Q2', 'pairs': [{'left': 'A', 'right': '1'}, {'left': 'B', 'right': '2'}],
         'linkedToPrevious': True},
        {'type': 'matrix', 'text': 'Q3', 'rows': ['r0', 'r1'], 'cols': ['c0', 'c1'], 'correct': {'0': 1, '1': 0}},
        {'type': 'multi_select', 'text': 'Q4', 'options': ['a', 'b', 'c'], 'correct': [0, 2]},
    ],
}

VETTING = {
    'id': 'v1',
    'title': 'Final Vetting',
    'type': 'vetting',
    'duration': 30,
    'questions': [{'type': 'single_choice', 'text': 'Q', 'options': ['a', 'b'], 'correct': 0}],
}


class NullBackend:
    def push(self, keys, force=False):
        return SyncOutcome(ok=True, keys=keys, forced=force)


class TestShuffleQuestions(SimpleTestCase):
    def test_linked_chain_stays_together(self):
        questions = [{'n': 0}, {'n': 1}, {'n': 2, 'linkedToPrevious': True}, {'n': 3, 'linkedToPrevious': True}, {'n': 4}]
        for seed in range(20):
            order = [q['n'] for q in shuffle_questions(questions, random.Random(seed))]
            start = order.index(1)
            self.assertEqual(order[start:start + 3], [1, 2, 3])
            self.assertEqual(sorted(order), [0, 1, 2, 3, 4])

    def test_first_question_link_ignored(self):
        questions = [{'n': 0, 'linkedToPrevious': True}, {'n': 1}]
        order = [q['n'] for q in shuffle_questions(questions, random.Random(1))]
        self.assertEqual(sorted(order), [0, 1])


class SessionTestCase(TestCase):
    def setUp(self):
        self.store = DocumentStore()
        self.store.set('tests', [TEST, VETTING])
        self.store.set('rosters', {'2024-05': ['Bob']})

    def _position(self, session, text):
        return next(i for i, q in enumerate(session.questions) if q['text'] == text)


class TestSessionStart(SessionTestCase):
    def test_scaffolds_answers(self):
        session = AssessmentSession.start(self.store, 't1', 'Bob', rng=random.Random(3))
        self.assertEqual(sorted(session.order), [0, 1, 2, 3, 4])
        ordered = self._position(session, 'Q1')
        self.assertEqual(sorted(session.answers[ordered]), ['x', 'y', 'z'])
        self.assertEqual(session.answers[self._position(session, 'Q2')], ['', ''])
        self.assertEqual(session.answers[self._position(session, 'Q3')], {})
        self.assertEqual(session.answers[self._position(session, 'Q4')], [])
        self.assertNotIn(self._position(session, 'Q0'), session.answers)
        self.assertEqual(self._position(session, 'Q2'), ordered + 1)

    def test_unknown_test(self):
        with self.assertRaises(AssessmentNotFound):
            AssessmentSession.start(self.store, 'missing', 'Bob')

    def test_vetting_needs_arena(self):
        with self.assertRaises(AssessmentError):
            AssessmentSession.start(self.store, 'v1', 'Bob')
        session = AssessmentSession.start(self.store, 'v1', 'Bob', arena=True)
        self.assertEqual(session.expires_at, session.started_at + timedelta(minutes=30))

    def test_active_submission_blocks_start(self):
        self.store.set('submissions', [{'id': 's1', 'trainee': 'Bob', 'testId': 't1', 'archived': False}])
        with self.assertRaises(ActiveSubmissionExists):
            AssessmentSession.start(self.store, 't1', 'Bob')


class TestSessionFlow(SessionTestCase):
    def _answer_everything(self, session):
        session.answer(self._position(session, 'Q0'), 1)
        q1 = self._position(session, 'Q1')
        while session.answers[q1] != ['x', 'y', 'z']:
            items = session.answers[q1]
            wrong = next(i for i, item in enumerate(['x', 'y', 'z']) if items[i] != item)
            session.move_item(q1, items.index(['x', 'y', 'z'][wrong]), wrong)
        q2 = self._position(session, 'Q2')
        session.set_matching(q2, 0, '1')
        session.set_matching(q2, 1, '2')
        q3 = self._position(session, 'Q3')
        session.set_matrix(q3, 0, 1)
        session.set_matrix(q3, 1, 0)
        q4 = self._position(session, 'Q4')
        session.toggle_option(q4, 0)
        session.toggle_option(q4, 1)
        session.toggle_option(q4, 2)
        session.toggle_option(q4, 1)

    def test_shuffled_answers_score_in_original_order(self):
        session = AssessmentSession.start(self.store, 't1', 'Bob', rng=random.Random(7))
        self._answer_everything(session)
        result = session.submit(backend=NullBackend())
        self.assertEqual(result['submission']['score'], 100)
        self.assertEqual(result['submission']['answers']['0'], 1)
        self.assertEqual(result['submission']['answers']['4'], [0, 2])

    def test_closed_after_submit(self):
        session = AssessmentSession.start(self.store, 't1', 'Bob')
        session.submit(backend=NullBackend())
        with self.assertRaises(SessionClosed):
            session.answer(0, 1)
        with self.assertRaises(SessionClosed):
            session.submit(backend=NullBackend())

    def test_draft_round_trip(self):
        session = AssessmentSession.start(self.store, 't1', 'Bob', rng=random.Random(2))
        session.answer(self._position(session, 'Q0'), 1)
        session.save_draft()

        restored = AssessmentSession.restore(self.store, 'Bob')
        self.assertEqual(restored.order, session.order)
        self.assertEqual(restored.answers, session.answers)
        self.assertEqual(restored.trainee, 'Bob')

    def test_restore_without_draft(self):
        self.assertIsNone(AssessmentSession.restore(self.store, 'Bob'))

    def test_drafts_kept_per_trainee(self):
        alice = AssessmentSession.start(self.store, 't1', 'Alice', rng=random.Random(3))
        alice.answer(self._position(alice, 'Q0'), 0)
        alice.save_draft()
        bob = AssessmentSession.start(self.store, 't1', 'Bob')
        bob.save_draft()

        self.assertEqual(AssessmentSession.restore(self.store, 'Bob').trainee, 'Bob')
        bob.submit(backend=NullBackend())

        self.assertIsNone(AssessmentSession.restore(self.store, 'Bob'))
        restored = AssessmentSession.restore(self.store, 'Alice')
        self.assertEqual(restored.trainee, 'Alice')
        self.assertEqual(restored.answers, alice.answers)
        self.assertEqual(list(self.store.get('draft_assessment')), ['Alice'])

    def test_abandon_drops_draft(self):
        session = AssessmentSession.start(self.store, 't1', 'Bob')
        session.save_draft()
        session.abandon()
        self.assertIsNone(self.store.get('draft_assessment'))
        with self.assertRaises(SessionClosed):
            session.save_draft()

    def test_invalid_position(self):
        session = AssessmentSession.start(self.store, 't1', 'Bob')
        with self.assertRaises(AssessmentError):
            session.answer(99, 'x')


class TestSessionExpiry(SessionTestCase):
    def test_expire_before_deadline_is_noop(self):
        session = AssessmentSession.start(self.store, 'v1', 'Bob', arena=True)
        self.assertIsNone(session.expire(timezone.now()))
        self.assertFalse(session.closed)

    def test_expire_after_deadline_force_submits(self):
        session = AssessmentSession.start(self.store, 'v1', 'Bob', arena=True)
        session.answer(0, 0)
        result = session.expire(session.started_at + timedelta(minutes=31))
        self.assertEqual(result['submission']['score'], 100)
        self.assertTrue(session.closed)

    def test_standard_test_never_expires(self):
        session = AssessmentSession.start(self.store, 't1', 'Bob')
        self.assertIsNone(session.expires_at)
        self.assertIsNone(session.expire(timezone.now() + timedelta(days=1)))
