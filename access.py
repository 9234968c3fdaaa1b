"""
access.py - Roles & Advisor Scoping
Route decorators for admin/advisor access and the rules that decide
which students (and subjects) an advisor may see and grade.
"""

from functools import wraps

from flask import jsonify
from flask_login import current_user
from sqlalchemy import and_, false, or_

from config import Config
from errors import AccessDeniedError
from models import Student


def _unauthorized():
    return jsonify({'success': False, 'error': 'Please log in to access this page.'}), 401


def admin_required(f):
    """Ensure only admins can access the route"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            return _unauthorized()
        if current_user.role != 'admin':
            return jsonify({'success': False, 'error': 'Access denied. Admins only.'}), 403
        return f(*args, **kwargs)
    return decorated_function


def staff_required(f):
    """Admins and advisors"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            return _unauthorized()
        if current_user.role not in ('admin', 'advisor'):
            return jsonify({'success': False, 'error': 'Access denied. Staff only.'}), 403
        return f(*args, **kwargs)
    return decorated_function


# ========================================
# ADVISOR SCOPING
# ========================================

def is_assigned_to(student, assignment):
    """
    True if the assignment covers the student.
    Year level and section must match; the strand only matters for
    senior high students when the assignment names one.
    """
    if student.year_level != assignment.year_level or student.section != assignment.section:
        return False
    if assignment.strand and student.year_level in Config.SENIOR_HIGH_YEAR_LEVELS:
        return student.strand == assignment.strand
    return True


def _assignment_clause(assignment):
    clause = and_(
        Student.year_level == assignment.year_level,
        Student.section == assignment.section,
    )
    if assignment.strand:
        clause = and_(clause, or_(
            Student.year_level.notin_(Config.SENIOR_HIGH_YEAR_LEVELS),
            Student.strand == assignment.strand,
        ))
    return clause


def get_assignments(user):
    if user is None or not user.is_advisor() or user.advisor_profile is None:
        return []
    return list(user.advisor_profile.assignments)


def scope_students(query, user):
    """
    Restrict a Student query to what the user may see.
    Admins see everyone; advisors see the students of their assignments.
    """
    if user.is_admin():
        return query

    assignments = get_assignments(user)
    if not assignments:
        return query.filter(false())
    return query.filter(or_(*[_assignment_clause(a) for a in assignments]))


def can_access_student(user, student):
    if user.is_admin():
        return True
    return any(is_assigned_to(student, a) for a in get_assignments(user))


def can_grade_subject(user, student, subject):
    """Advisors grade only the subjects listed on a matching assignment"""
    if user.is_admin():
        return True
    return any(
        is_assigned_to(student, a) and a.covers_subject(subject)
        for a in get_assignments(user)
    )


def ensure_can_access(user, student):
    if not can_access_student(user, student):
        raise AccessDeniedError()


def ensure_can_grade(user, student, subject):
    ensure_can_access(user, student)
    if not can_grade_subject(user, student, subject):
        raise AccessDeniedError(f"You are not assigned to teach {subject} for this student")
