"""
Admin assessment API: test definitions, submissions review, score records, cycles.
Special viewers get read-only access.
"""
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from accounts.permissions import IsAdmin, IsAdminOrViewer
from core.store import DocumentStore
from core.sync import push_changes
from groups.services import classify_cycle, find_trainee_group
from assessments import submissions as reconciler
from assessments.records import capture_scores
from assessments.serializers import CaptureScoresSerializer, MarkSerializer


def _result(payload, key):
    return {key: payload[key], 'sync': payload['sync'].to_dict()}


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminOrViewer])
def admin_tests_view(request):
    """
    GET /api/admin/tests - all test definitions
    POST /api/admin/tests - create or update (by id) a test definition
    """
    store = DocumentStore()
    if request.method == 'GET':
        return Response(store.load('tests'))
    payload = reconciler.save_test(store, request.data)
    created = not request.data.get('id')
    return Response(
        _result(payload, 'test'),
        status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
    )


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, IsAdmin])
def admin_test_delete_view(request, test_id):
    """DELETE /api/admin/tests/{id} - submissions and records are kept"""
    payload = reconciler.delete_test(DocumentStore(), test_id)
    return Response(_result(payload, 'test'))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrViewer])
def admin_submissions_view(request):
    """
    GET /api/admin/submissions
    Query: status, trainee, testId, archived (true/false; default all)
    """
    submissions = DocumentStore().load('submissions')
    status_filter = request.query_params.get('status')
    trainee = request.query_params.get('trainee')
    test_id = request.query_params.get('testId')
    archived = request.query_params.get('archived')
    if status_filter:
        submissions = [s for s in submissions if s.get('status') == status_filter]
    if trainee:
        submissions = [s for s in submissions if (s.get('trainee') or '').lower() == trainee.lower()]
    if test_id:
        submissions = [s for s in submissions if s.get('testId') == test_id]
    if archived in ('true', 'false'):
        submissions = [s for s in submissions if bool(s.get('archived')) == (archived == 'true')]
    return Response(submissions)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, IsAdmin])
def admin_submission_delete_view(request, submission_id):
    """DELETE /api/admin/submissions/{id}"""
    payload = reconciler.delete_submission(DocumentStore(), submission_id)
    return Response(_result(payload, 'submission'))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdmin])
def admin_submission_retake_view(request, submission_id):
    """POST /api/admin/submissions/{id}/retake - archive so the trainee can sit the test again"""
    payload = reconciler.allow_retake(DocumentStore(), submission_id)
    return Response(_result(payload, 'submission'))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdmin])
def admin_submission_approve_view(request, submission_id):
    """POST /api/admin/submissions/{id}/approve"""
    payload = reconciler.approve_submission(DocumentStore(), submission_id)
    return Response(_result(payload, 'submission'))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdmin])
def admin_submission_mark_view(request, submission_id):
    """POST /api/admin/submissions/{id}/mark - Body: {marks: {questionIndex: points}}"""
    serializer = MarkSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    payload = reconciler.finalize_marking(DocumentStore(), submission_id, serializer.validated_data['marks'])
    return Response(_result(payload, 'submission'))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrViewer])
def admin_records_view(request):
    """
    GET /api/admin/records
    Query: trainee, groupId, assessment
    """
    records = DocumentStore().load('records')
    trainee = request.query_params.get('trainee')
    group_id = request.query_params.get('groupId')
    assessment = request.query_params.get('assessment')
    if trainee:
        records = [r for r in records if (r.get('trainee') or '').lower() == trainee.lower()]
    if group_id:
        records = [r for r in records if r.get('groupID') == group_id]
    if assessment:
        records = [r for r in records if r.get('assessment') == assessment]
    return Response(records)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdmin])
def admin_records_capture_view(request):
    """
    POST /api/admin/records/capture
    Body: {groupId, assessment, phase, vettingTopic?, date?, scores: {trainee: score | {score, docSaved, videoSaved}}}
    """
    serializer = CaptureScoresSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    store = DocumentStore()
    records, saved = capture_scores(
        store.load('records'),
        store.load('rosters'),
        data['groupId'],
        data['assessment'],
        data['phase'],
        data['scores'],
        capture_date=data['date'].isoformat() if data.get('date') else None,
        vetting_topic=data.get('vettingTopic'),
    )
    store.set('records', records)
    outcome = push_changes(['records'], force=False, store=store)
    return Response({'saved': saved, 'sync': outcome.to_dict()})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrViewer])
def admin_cycle_view(request):
    """
    GET /api/admin/cycle?trainee=...&groupId=...
    groupId defaults to the trainee's latest roster group.
    """
    trainee = (request.query_params.get('trainee') or '').strip()
    if not trainee:
        return Response({'detail': 'trainee required', 'code': 'validation_error'}, status=status.HTTP_400_BAD_REQUEST)
    rosters = DocumentStore().load('rosters')
    group_id = request.query_params.get('groupId') or find_trainee_group(trainee, rosters, default=None)
    return Response({
        'trainee': trainee,
        'groupId': group_id,
        'cycle': classify_cycle(trainee, group_id, rosters),
    })
