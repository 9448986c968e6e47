"""
Trainee API URLs
"""
from django.urls import path
from ..views.trainee import trainee_tests_view, trainee_test_submit_view

app_name = 'trainee'

urlpatterns = [
    path('tests', trainee_tests_view, name='tests'),
    path('tests/<str:test_id>/submit', trainee_test_submit_view, name='test-submit'),
]
