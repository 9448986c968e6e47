"""
Tests for the submission reconciler: one active attempt, retakes, approval,
manual marking and test definitions.
"""
from unittest import mock

from django.test import SimpleTestCase, TestCase

from core.store import DocumentStore
from core.sync import SyncError, SyncOutcome
from assessments.exceptions import (
    ActiveSubmissionExists,
    AssessmentNotFound,
    InvalidTestDefinition,
    SubmissionNotFound,
)
from assessments.submissions import (
    allow_retake,
    approve_submission,
    delete_submission,
    delete_test,
    finalize_marking,
    find_active_submission,
    record_submission,
    save_test,
    submit_assessment,
)

AUTO_TEST = {
    'id': 't1',
    'title': 'Module 1',
    'questions': [
        {'type': 'single_choice', 'text': 'Q1', 'options': ['a', 'b'], 'correct': 1, 'points': 2},
        {'type': 'multi_select', 'text': 'Q2', 'options': ['a', 'b', 'c'], 'correct': [0, 2], 'points': 2},
    ],
}

MANUAL_TEST = {
    'id': 't2',
    'title': 'Vetting Essay',
    'questions': [
        {'type': 'single_choice', 'text': 'Q1', 'options': ['a', 'b'], 'correct': 0, 'points': 1},
        {'type': 'free_text', 'text': 'Q2', 'modelAnswer': 'x', 'points': 3},
    ],
}


class RecordingBackend:
    def __init__(self):
        self.calls = []

    def push(self, keys, force=False):
        self.calls.append((list(keys), force))
        return SyncOutcome(ok=True, keys=keys, forced=force)


class TestRecordSubmission(SimpleTestCase):
    def test_second_active_rejected(self):
        subs = record_submission([], {'id': '1', 'trainee': 'Bob', 'testId': 't1'})
        with self.assertRaises(ActiveSubmissionExists):
            record_submission(subs, {'id': '2', 'trainee': 'Bob', 'testId': 't1'})

    def test_archived_does_not_block(self):
        subs = [{'id': '1', 'trainee': 'Bob', 'testId': 't1', 'archived': True}]
        subs = record_submission(subs, {'id': '2', 'trainee': 'Bob', 'testId': 't1'})
        self.assertEqual(len(subs), 2)

    def test_forced_keeps_existing(self):
        subs = [{'id': '1', 'trainee': 'Bob', 'testId': 't1'}]
        result = record_submission(subs, {'id': '2', 'trainee': 'Bob', 'testId': 't1'}, force=True)
        self.assertEqual(result, subs)

    def test_numeric_test_id_matches_string(self):
        subs = [{'id': '1', 'trainee': 'Bob', 'testId': 5}]
        self.assertIsNotNone(find_active_submission(subs, 'Bob', '5'))
        self.assertIsNone(find_active_submission(subs, 'bob', '5'))


class SubmissionTestCase(TestCase):
    def setUp(self):
        self.store = DocumentStore()
        self.store.set('tests', [AUTO_TEST, MANUAL_TEST])
        self.store.set('rosters', {'2024-01': ['Bob'], '2024-05': ['Bob', 'Ann']})
        self.backend = RecordingBackend()


class TestSubmitAssessment(SubmissionTestCase):
    def test_auto_scored_completes_and_records(self):
        self.store.set('draft_assessment', {
            'Bob': {'test': AUTO_TEST, 'trainee': 'Bob'},
            'Ann': {'test': AUTO_TEST, 'trainee': 'Ann'},
        })
        result = submit_assessment(self.store, AUTO_TEST, 'Bob', {'0': 1, '1': [0]}, backend=self.backend)

        sub = result['submission']
        self.assertEqual(sub['status'], 'completed')
        self.assertEqual(sub['score'], 75)
        self.assertFalse(sub['archived'])
        self.assertEqual(sub['testSnapshot']['title'], 'Module 1')
        # Only the submitting trainee's draft is dropped
        self.assertEqual(list(self.store.get('draft_assessment')), ['Ann'])
        self.assertTrue(result['created'])

        records = self.store.get('records')
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0]['groupID'], '2024-05')
        self.assertEqual(records[0]['cycle'], 'Retrain 1')
        self.assertEqual(records[0]['phase'], 'Assessment')
        self.assertEqual(records[0]['link'], 'Digital-Assessment')
        self.assertEqual(self.backend.calls, [(['submissions', 'records', 'tests'], False)])

    def test_manual_review_stays_pending(self):
        result = submit_assessment(self.store, MANUAL_TEST, 'Ann', {0: 0}, backend=self.backend)
        self.assertEqual(result['submission']['status'], 'pending')
        self.assertEqual(result['submission']['score'], 0)
        self.assertTrue(result['score']['requires_manual_review'])
        self.assertEqual(self.store.load('records'), [])

    def test_duplicate_rejected_then_allowed_after_retake(self):
        first = submit_assessment(self.store, AUTO_TEST, 'Bob', {}, backend=self.backend)
        with self.assertRaises(ActiveSubmissionExists):
            submit_assessment(self.store, AUTO_TEST, 'Bob', {0: 1}, backend=self.backend)

        allow_retake(self.store, first['submission']['id'], backend=self.backend)
        second = submit_assessment(self.store, AUTO_TEST, 'Bob', {0: 1}, backend=self.backend)
        self.assertEqual(second['submission']['score'], 50)
        self.assertEqual(len(self.store.get('submissions')), 2)
        # Record updated in place, not duplicated
        records = self.store.get('records')
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0]['score'], 50)

    def test_forced_submit_does_not_duplicate(self):
        first = submit_assessment(self.store, AUTO_TEST, 'Bob', {0: 1}, backend=self.backend)
        forced = submit_assessment(self.store, AUTO_TEST, 'Bob', {}, force=True, backend=self.backend)
        self.assertEqual(forced['submission']['id'], first['submission']['id'])
        self.assertEqual(len(self.store.get('submissions')), 1)
        self.assertFalse(forced['created'])
        self.assertIsNone(forced['score'])
        self.assertEqual(forced['submission']['score'], 50)

    def test_last_draft_removes_document(self):
        self.store.set('draft_assessment', {'Bob': {'test': AUTO_TEST, 'trainee': 'Bob'}})
        submit_assessment(self.store, AUTO_TEST, 'Bob', {}, backend=self.backend)
        self.assertIsNone(self.store.get('draft_assessment'))

    def test_sync_failure_keeps_local_write(self):
        failing = mock.Mock()
        failing.push.side_effect = SyncError('offline')
        result = submit_assessment(self.store, AUTO_TEST, 'Bob', {0: 1}, backend=failing)
        self.assertFalse(result['sync'].ok)
        self.assertEqual(len(self.store.get('submissions')), 1)


class TestAdminActions(SubmissionTestCase):
    def _submit(self, test=AUTO_TEST, trainee='Bob', answers=None):
        return submit_assessment(self.store, test, trainee, answers or {}, backend=self.backend)['submission']

    def test_retake_archives_and_clears_session(self):
        sub = self._submit()
        self.store.set('vettingSession', {'active': True, 'testId': 't1', 'trainees': {'Bob': 'completed', 'Ann': 'started'}})
        self.store.set('liveSession', {'active': True, 'testId': 'other', 'trainees': {'Bob': 'completed'}})

        result = allow_retake(self.store, sub['id'], backend=self.backend)

        self.assertTrue(result['submission']['archived'])
        self.assertEqual(result['submission']['status'], 'retake_allowed')
        self.assertEqual(self.store.get('vettingSession')['trainees'], {'Ann': 'started'})
        self.assertEqual(self.store.get('liveSession')['trainees'], {'Bob': 'completed'})
        self.assertEqual(self.backend.calls[-1], (['submissions', 'vettingSession', 'liveSession'], True))

    def test_retake_inactive_session_untouched(self):
        sub = self._submit()
        self.store.set('vettingSession', {'active': False, 'testId': 't1', 'trainees': {'Bob': 'completed'}})
        allow_retake(self.store, sub['id'], backend=self.backend)
        self.assertEqual(self.store.get('vettingSession')['trainees'], {'Bob': 'completed'})

    def test_unknown_submission(self):
        with self.assertRaises(SubmissionNotFound):
            allow_retake(self.store, 'nope', backend=self.backend)

    def test_delete_force_pushes(self):
        sub = self._submit()
        delete_submission(self.store, sub['id'], backend=self.backend)
        self.assertEqual(self.store.get('submissions'), [])
        self.assertEqual(self.backend.calls[-1], (['submissions'], True))

    def test_approve_pending(self):
        sub = self._submit(MANUAL_TEST, 'Ann', {0: 0})
        result = approve_submission(self.store, sub['id'], backend=self.backend)
        self.assertEqual(result['submission']['status'], 'completed')
        self.assertEqual(self.store.get('records')[0]['trainee'], 'Ann')
        self.assertEqual(self.backend.calls[-1], (['submissions', 'records'], False))

    def test_finalize_marking(self):
        sub = self._submit(MANUAL_TEST, 'Ann', {0: 0, 1: 'essay'})
        result = finalize_marking(self.store, sub['id'], {'1': 2}, backend=self.backend)
        # 1 auto point + 2 marked out of 4
        self.assertEqual(result['submission']['score'], 75)
        self.assertEqual(result['submission']['status'], 'completed')
        self.assertEqual(self.store.get('records')[0]['score'], 75)

    def test_finalize_marks_clamped_to_points(self):
        sub = self._submit(MANUAL_TEST, 'Ann', {})
        result = finalize_marking(self.store, sub['id'], {'0': 1, '1': 10}, backend=self.backend)
        self.assertEqual(result['submission']['score'], 100)

    def test_finalize_uses_snapshot_when_test_deleted(self):
        sub = self._submit(MANUAL_TEST, 'Ann', {0: 0})
        delete_test(self.store, 't2', backend=self.backend)
        result = finalize_marking(self.store, sub['id'], {'1': 3}, backend=self.backend)
        self.assertEqual(result['submission']['score'], 100)


class TestTestDefinitions(SubmissionTestCase):
    def test_save_new_assigns_id(self):
        data = {'title': 'Module 3', 'questions': [{'type': 'text', 'text': 'Describe'}]}
        test = save_test(self.store, data, backend=self.backend)['test']
        self.assertTrue(test['id'])
        self.assertEqual(test['questions'][0]['type'], 'free_text')
        self.assertEqual(len(self.store.get('tests')), 3)

    def test_save_existing_replaces(self):
        data = dict(AUTO_TEST, title='Module 1 (v2)')
        save_test(self.store, data, backend=self.backend)
        titles = [t['title'] for t in self.store.get('tests')]
        self.assertEqual(titles, ['Module 1 (v2)', 'Vetting Essay'])

    def test_invalid_rejected(self):
        with self.assertRaises(InvalidTestDefinition) as ctx:
            save_test(self.store, {'title': '', 'questions': []}, backend=self.backend)
        self.assertEqual(ctx.exception.code, 'invalid_test')
        self.assertEqual(len(ctx.exception.messages), 2)

    def test_delete_keeps_submissions(self):
        submit_assessment(self.store, AUTO_TEST, 'Bob', {}, backend=self.backend)
        delete_test(self.store, 't1', backend=self.backend)
        self.assertEqual([t['id'] for t in self.store.get('tests')], ['t2'])
        self.assertEqual(len(self.store.get('submissions')), 1)

    def test_delete_unknown(self):
        with self.assertRaises(AssessmentNotFound):
            delete_test(self.store, 'missing', backend=self.backend)
