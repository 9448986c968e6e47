"""
Admin API URLs
"""
from django.urls import path
from ..views.admin import (
    admin_tests_view,
    admin_test_delete_view,
    admin_submissions_view,
    admin_submission_delete_view,
    admin_submission_retake_view,
    admin_submission_approve_view,
    admin_submission_mark_view,
    admin_records_view,
    admin_records_capture_view,
    admin_cycle_view,
)

app_name = 'admin-api'

urlpatterns = [
    path('tests', admin_tests_view, name='tests'),
    path('tests/<str:test_id>', admin_test_delete_view, name='test-delete'),
    path('submissions', admin_submissions_view, name='submissions'),
    path('submissions/<str:submission_id>', admin_submission_delete_view, name='submission-delete'),
    path('submissions/<str:submission_id>/retake', admin_submission_retake_view, name='submission-retake'),
    path('submissions/<str:submission_id>/approve', admin_submission_approve_view, name='submission-approve'),
    path('submissions/<str:submission_id>/mark', admin_submission_mark_view, name='submission-mark'),
    path('records', admin_records_view, name='records'),
    path('records/capture', admin_records_capture_view, name='records-capture'),
    path('cycle', admin_cycle_view, name='cycle'),
]
