"""
Trainee assessment API: available tests and submission.
Answer keys never leave the server on this side.
"""
import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from accounts.permissions import IsTrainee
from core.store import DocumentStore
from assessments.exceptions import AssessmentError
from assessments.questions import normalize_test
from assessments.serializers import ScoreResultSerializer, SubmitSerializer
from assessments.submissions import find_active_submission, get_test, submit_assessment

logger = logging.getLogger(__name__)

# Answer-key fields stripped from the trainee view of a question
KEY_FIELDS = ('correct', 'modelAnswer')


def _public_test(test):
    questions = []
    for q in test['questions']:
        public = {k: v for k, v in q.items() if k not in KEY_FIELDS}
        if q['type'] == 'matching':
            public['pairs'] = [{'left': p['left']} for p in q['pairs']]
            public['choices'] = sorted(p['right'] for p in q['pairs'])
        questions.append(public)
    return {**test, 'questions': questions}


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsTrainee])
def trainee_tests_view(request):
    """
    GET /api/trainee/tests - standard tests with the trainee's completion state
    Stored tests that cannot be read are left out of the listing and logged.
    """
    store = DocumentStore()
    submissions = store.load('submissions')
    result = []
    for raw in store.load('tests'):
        try:
            test = normalize_test(raw)
        except AssessmentError as e:
            test_id = raw.get('id') if isinstance(raw, dict) else None
            logger.warning("trainee_tests skipped test_id=%s error=%s", test_id, e.messages[0])
            continue
        if test['type'] == 'vetting':
            continue
        active = find_active_submission(submissions, request.user.username, test['id'])
        item = _public_test(test)
        item['submission'] = {
            'id': active['id'],
            'status': active['status'],
            'score': active['score'],
        } if active else None
        result.append(item)
    return Response(result)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsTrainee])
def trainee_test_submit_view(request, test_id):
    """
    POST /api/trainee/tests/{id}/submit
    Body: {answers: {questionIndex: answer}, force: bool}
    force is set by the client when the timer runs out.

    Status codes:
    - 201: Submitted
    - 200: Forced submit with an attempt already on file (stored submission, score null)
    - 400: Vetting test (taken in the Vetting Arena only)
    - 404: Unknown test
    - 409: An active submission already exists
    """
    serializer = SubmitSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    store = DocumentStore()
    test = normalize_test(get_test(store, test_id))
    if test['type'] == 'vetting':
        raise AssessmentError('Vetting tests must be taken in the Vetting Arena.', code='arena_required')
    payload = submit_assessment(
        store,
        test,
        request.user.username,
        serializer.validated_data['answers'],
        force=serializer.validated_data['force'],
    )
    submission = {k: v for k, v in payload['submission'].items() if k != 'testSnapshot'}
    score = None
    if payload['created']:
        score = ScoreResultSerializer(payload['score']).data
        if submission['status'] == 'pending':
            # Percent is not final until an administrator marks the free-text answers
            score['percent'] = None
    return Response({
        'submission': submission,
        'score': score,
        'sync': payload['sync'].to_dict(),
    }, status=status.HTTP_201_CREATED if payload['created'] else status.HTTP_200_OK)
