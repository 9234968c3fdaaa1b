"""
errors.py - Application Exceptions
Raised by models and the grading engine, translated to JSON responses by the blueprints.
"""


class GradebookError(Exception):
    """Base class for all GradeSheet errors"""
    status_code = 400

    def __init__(self, message=None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__

    def to_dict(self):
        return {'success': False, 'error': self.message}


class ValidationError(GradebookError, ValueError):
    """Invalid input"""
    status_code = 400


class DuplicateNameError(GradebookError):
    """A record with this name already exists"""
    status_code = 409


class DuplicateGradeError(ValidationError):
    """A grade already exists for this student, subject and quarter"""
    status_code = 409


class ActiveConfigDeletionError(GradebookError):
    """Cannot delete the active grading system. Activate another system first."""
    status_code = 409


class ConsistencyError(GradebookError):
    """Stored data is in an impossible state"""
    status_code = 500


class AccessDeniedError(GradebookError):
    """You are not assigned to this student"""
    status_code = 403


class NotFoundError(GradebookError):
    """Record not found"""
    status_code = 404
