"""
Submission reconciler: one active attempt per trainee and test, derived score
records, and the admin actions (retake, delete, approve, manual marking).

Every write goes to the local DocumentStore first; the remote push that follows
is best effort. Trainee-side writes merge with the remote copy, admin
retake/delete overwrite it.
"""
import copy
import logging
from decimal import Decimal, InvalidOperation

from core.store import DocumentStore, SESSION_KEYS
from core.sync import push_changes
from core.utils import generate_id, normalize_id, today_iso
from assessments.exceptions import (
    ActiveSubmissionExists,
    AssessmentError,
    AssessmentNotFound,
    InvalidTestDefinition,
    SubmissionNotFound,
)
from assessments.questions import coerce_points, normalize_test, validate_test
from assessments.records import build_submission_record, upsert_record
from assessments.scoring import compute_percent, score_test

logger = logging.getLogger(__name__)

STATUS_PENDING = 'pending'
STATUS_COMPLETED = 'completed'
STATUS_RETAKE_ALLOWED = 'retake_allowed'

SUBMIT_SYNC_KEYS = ['submissions', 'records', 'tests']
RETAKE_SYNC_KEYS = ['submissions', 'vettingSession', 'liveSession']
DRAFT_KEY = 'draft_assessment'


def find_active_submission(submissions, trainee, test_id):
    """Non-archived submission of trainee for test_id, or None."""
    test_id = normalize_id(test_id)
    for sub in submissions or []:
        if sub.get('archived'):
            continue
        if sub.get('trainee') == trainee and normalize_id(sub.get('testId')) == test_id:
            return sub
    return None


def record_submission(submissions, new_submission, force=False):
    """
    Append new_submission, returning a new list.
    A second active attempt for the same trainee and test raises ActiveSubmissionExists.
    With force (timer expiry) the existing attempt stands and the list is returned unchanged.
    """
    submissions = list(submissions or [])
    existing = find_active_submission(submissions, new_submission.get('trainee'), new_submission.get('testId'))
    if existing is not None:
        if force:
            logger.warning(
                "record_submission forced test_id=%s trainee=%s existing_id=%s kept",
                new_submission.get('testId'), new_submission.get('trainee'), existing.get('id'),
            )
            return submissions
        raise ActiveSubmissionExists('You have already submitted this assessment.')
    submissions.append(new_submission)
    return submissions


def _get_submission(submissions, submission_id):
    submission_id = normalize_id(submission_id)
    for sub in submissions:
        if normalize_id(sub.get('id')) == submission_id:
            return sub
    raise SubmissionNotFound(f'Submission {submission_id} not found')


def get_test(store, test_id):
    test_id = normalize_id(test_id)
    for test in store.load('tests'):
        if normalize_id(test.get('id')) == test_id:
            return test
    raise AssessmentNotFound(f'Test {test_id} not found')


def _complete(store, submission):
    """Upsert the derived record for a completed submission."""
    records = upsert_record(
        store.load('records'),
        build_submission_record(submission, store.load('rosters')),
    )
    store.set('records', records)


def discard_draft(store, trainee):
    """Remove trainee's saved draft; other trainees' drafts are left alone."""
    drafts = store.load(DRAFT_KEY) or {}
    if drafts.pop(trainee, None) is None:
        return
    if drafts:
        store.set(DRAFT_KEY, drafts)
    else:
        store.delete(DRAFT_KEY)


def submit_assessment(store, test, trainee, answers, force=False, backend=None):
    """
    Score answers against test and persist the submission.

    Auto-scorable tests complete immediately (score = percent); tests with a
    free_text question stay pending with score 0 until an administrator marks
    them. Returns {submission, score, sync, created}.

    A forced submit that finds an attempt already on file returns that stored
    submission with score None and created False; the new answers are dropped.
    """
    store = store or DocumentStore()
    if not trainee:
        raise AssessmentError('Trainee is required', code='trainee_required')
    result = score_test(test, answers)
    status = STATUS_PENDING if result['requires_manual_review'] else STATUS_COMPLETED

    submission = {
        'id': generate_id(),
        'testId': normalize_id(test.get('id')),
        'testTitle': test.get('title') or '',
        'trainee': trainee,
        'date': today_iso(),
        'answers': {str(k): v for k, v in (answers or {}).items()} if isinstance(answers, dict) else answers,
        'status': status,
        'score': result['percent'] if status == STATUS_COMPLETED else 0,
        'archived': False,
        'testSnapshot': copy.deepcopy(test),
    }

    submissions = store.load('submissions')
    updated = record_submission(submissions, submission, force=force)
    if len(updated) == len(submissions):
        # Forced submit with an attempt already on file
        submission = find_active_submission(submissions, trainee, submission['testId'])
        result = None
        created = False
    else:
        created = True
        store.set('submissions', updated)
        if status == STATUS_COMPLETED:
            _complete(store, submission)
    discard_draft(store, trainee)

    logger.info(
        "submit_assessment test_id=%s trainee=%s status=%s score=%s force=%s",
        submission['testId'], trainee, submission['status'], submission['score'], force,
    )
    outcome = push_changes(SUBMIT_SYNC_KEYS, force=False, store=store, backend=backend)
    return {'submission': submission, 'score': result, 'sync': outcome, 'created': created}


def allow_retake(store, submission_id, backend=None):
    """
    Archive a submission so the trainee can sit the test again.
    Clears the trainee's completion marker in an active live/vetting session for
    the same test, then force-pushes so the archive sticks remotely.
    """
    store = store or DocumentStore()
    submissions = store.load('submissions')
    sub = _get_submission(submissions, submission_id)
    sub['archived'] = True
    sub['status'] = STATUS_RETAKE_ALLOWED
    store.set('submissions', submissions)

    for key in SESSION_KEYS:
        session = store.load(key)
        if not session.get('active') or normalize_id(session.get('testId')) != normalize_id(sub.get('testId')):
            continue
        trainees = session.get('trainees') or {}
        if sub['trainee'] in trainees:
            del trainees[sub['trainee']]
            session['trainees'] = trainees
            store.set(key, session)
            logger.info("allow_retake cleared %s trainee=%s test_id=%s", key, sub['trainee'], sub.get('testId'))

    logger.info("allow_retake submission_id=%s trainee=%s test_id=%s", sub['id'], sub['trainee'], sub.get('testId'))
    outcome = push_changes(RETAKE_SYNC_KEYS, force=True, store=store, backend=backend)
    return {'submission': sub, 'sync': outcome}


def delete_submission(store, submission_id, backend=None):
    store = store or DocumentStore()
    submissions = store.load('submissions')
    sub = _get_submission(submissions, submission_id)
    store.set('submissions', [s for s in submissions if s is not sub])
    logger.info("delete_submission submission_id=%s trainee=%s", sub['id'], sub.get('trainee'))
    outcome = push_changes(['submissions'], force=True, store=store, backend=backend)
    return {'submission': sub, 'sync': outcome}


def approve_submission(store, submission_id, backend=None):
    """Mark a submission completed as scored and record it."""
    store = store or DocumentStore()
    submissions = store.load('submissions')
    sub = _get_submission(submissions, submission_id)
    sub['status'] = STATUS_COMPLETED
    store.set('submissions', submissions)
    _complete(store, sub)
    logger.info("approve_submission submission_id=%s score=%s", sub['id'], sub.get('score'))
    outcome = push_changes(['submissions', 'records'], force=False, store=store, backend=backend)
    return {'submission': sub, 'sync': outcome}


def _mark_value(raw, points, index):
    try:
        mark = Decimal(str(raw).strip())
    except (InvalidOperation, TypeError, ValueError):
        raise AssessmentError(f'Mark for question {index} must be a number', code='invalid_mark')
    if not mark.is_finite():
        raise AssessmentError(f'Mark for question {index} must be a number', code='invalid_mark')
    return min(max(mark, Decimal('0')), points)


def finalize_marking(store, submission_id, marks, backend=None):
    """
    Apply administrator marks ({question index: points}) and complete the submission.
    Questions without a mark keep their automatic score. Max points come from the
    current test definition, or the snapshot taken at submission when the test is gone.
    """
    store = store or DocumentStore()
    submissions = store.load('submissions')
    sub = _get_submission(submissions, submission_id)
    try:
        test = get_test(store, sub.get('testId'))
    except AssessmentNotFound:
        test = sub.get('testSnapshot')
    if not test or not test.get('questions'):
        raise AssessmentNotFound(f'Test {sub.get("testId")} not found')

    marks = {str(k): v for k, v in (marks or {}).items()}
    auto = score_test(test, sub.get('answers'))
    earned = Decimal('0')
    for item in auto['breakdown']:
        raw = marks.get(str(item['index']))
        if raw is None or str(raw).strip() == '':
            earned += item['earned']
        else:
            earned += _mark_value(raw, item['points'], item['index'])

    max_points = sum((coerce_points(q.get('points')) for q in test['questions']), Decimal('0'))
    sub['score'] = compute_percent(earned, max_points)
    sub['status'] = STATUS_COMPLETED
    store.set('submissions', submissions)
    _complete(store, sub)

    logger.info("finalize_marking submission_id=%s earned=%s max=%s score=%s", sub['id'], earned, max_points, sub['score'])
    outcome = push_changes(['submissions', 'records'], force=False, store=store, backend=backend)
    return {'submission': sub, 'sync': outcome}


def save_test(store, data, backend=None):
    """Validate and upsert a test definition by id (new tests get a fresh id)."""
    store = store or DocumentStore()
    is_valid, errors = validate_test(data)
    if not is_valid:
        raise InvalidTestDefinition(errors)
    test = normalize_test(data)
    test['id'] = test['id'] or generate_id()

    tests = store.load('tests')
    for i, existing in enumerate(tests):
        if normalize_id(existing.get('id')) == test['id']:
            tests[i] = test
            break
    else:
        tests.append(test)
    store.set('tests', tests)
    logger.info("save_test test_id=%s title=%s questions=%s", test['id'], test['title'], len(test['questions']))
    outcome = push_changes(['tests'], force=False, store=store, backend=backend)
    return {'test': test, 'sync': outcome}


def delete_test(store, test_id, backend=None):
    """Remove a test definition. Submissions and records referencing it are kept."""
    store = store or DocumentStore()
    test = get_test(store, test_id)
    store.set('tests', [t for t in store.load('tests') if normalize_id(t.get('id')) != normalize_id(test.get('id'))])
    logger.info("delete_test test_id=%s", test.get('id'))
    outcome = push_changes(['tests'], force=True, store=store, backend=backend)
    return {'test': test, 'sync': outcome}
