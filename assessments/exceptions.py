"""
Assessment errors. All are Django ValidationErrors so the API exception
handler renders them as {detail, code} with their own HTTP status.
"""
from django.core.exceptions import ValidationError


class AssessmentError(ValidationError):
    default_code = 'assessment_error'
    http_status = 400

    def __init__(self, message, code=None, params=None):
        super().__init__(message, code=code or self.default_code, params=params)
        if not hasattr(self, 'code'):
            # List messages carry no code of their own
            self.code = code or self.default_code


class UnknownQuestionType(AssessmentError):
    """Test definition holds a question type the scoring engine does not understand."""
    default_code = 'unknown_question_type'


class EmptyTestError(AssessmentError):
    default_code = 'empty_test'


class InvalidTestDefinition(AssessmentError):
    default_code = 'invalid_test'


class ActiveSubmissionExists(AssessmentError):
    default_code = 'active_submission_exists'
    http_status = 409


class AssessmentNotFound(AssessmentError):
    default_code = 'assessment_not_found'
    http_status = 404


class SubmissionNotFound(AssessmentError):
    default_code = 'submission_not_found'
    http_status = 404


class SessionClosed(AssessmentError):
    default_code = 'session_closed'
