"""
blueprints/admin/routes.py - Admin Blueprint
Advisor accounts, advisor assignments, subjects and grading systems
"""

import logging
from datetime import datetime

from flask import Blueprint, jsonify, request
from flask_login import current_user
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from access import admin_required
from config import Config
from errors import DuplicateNameError, NotFoundError, ValidationError
from extensions import db, bcrypt
from models import (
    Advisor, AdvisorAssignment, Grade, GradingSystem, Student, Subject, User
)

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__)


def _payload():
    return request.get_json(silent=True) or {}


def _get_or_404(model, object_id, label):
    obj = db.session.get(model, object_id)
    if obj is None:
        raise NotFoundError(f'{label} not found')
    return obj


@admin_bp.route('/dashboard')
@admin_required
def dashboard():
    """Admin Dashboard - Counts for the overview cards"""
    students_by_level = db.session.query(
        Student.year_level, func.count(Student.id)
    ).group_by(Student.year_level).all()

    today_start = datetime.utcnow().replace(hour=0, minute=0, second=0, microsecond=0)

    active = GradingSystem.query.filter_by(is_active=True).first()
    return jsonify({
        'success': True,
        'total_students': Student.query.count(),
        'total_advisors': Advisor.query.count(),
        'total_grades': Grade.query.count(),
        'grades_today': Grade.query.filter(Grade.created_at >= today_start).count(),
        'students_by_year_level': {level: count for level, count in students_by_level},
        'active_grading_system': active.to_dict() if active else None,
    })


# ========================================
# ADVISORS
# ========================================

@admin_bp.route('/advisors')
@admin_required
def list_advisors():
    advisors = Advisor.query.join(User).order_by(User.last_name, User.first_name).all()
    return jsonify({'success': True, 'advisors': [a.to_dict() for a in advisors]})


@admin_bp.route('/advisors', methods=['POST'])
@admin_required
def create_advisor():
    """Register an advisor account with its profile"""
    data = _payload()
    email = (data.get('email') or '').strip().lower()
    first_name = (data.get('first_name') or '').strip()
    last_name = (data.get('last_name') or '').strip()
    employee_no = (data.get('employee_no') or '').strip() or None
    password = (data.get('password') or '').strip()

    if not all([email, first_name, last_name]):
        raise ValidationError('Please fill in all required fields.')

    # Handle password
    if password:
        if len(password) < 6:
            raise ValidationError('Password must be at least 6 characters.')
    elif employee_no:
        password = employee_no  # Default to employee number
    else:
        raise ValidationError('A password or employee number is required.')

    if User.query.filter_by(email=email).first():
        raise DuplicateNameError('Email already exists.')
    if employee_no and Advisor.query.filter_by(employee_no=employee_no).first():
        raise DuplicateNameError('Employee number already exists.')

    try:
        user = User(
            email=email,
            password=bcrypt.generate_password_hash(password).decode('utf-8'),
            role='advisor',
            first_name=first_name,
            middle_name=(data.get('middle_name') or '').strip() or None,
            last_name=last_name,
        )
        db.session.add(user)
        db.session.flush()

        advisor = Advisor(
            user_id=user.id,
            employee_no=employee_no,
            position=data.get('position'),
            contact_number=data.get('contact_number'),
            gender=(data.get('gender') or '').lower() or None,
            years_of_service=data.get('years_of_service'),
        )
        db.session.add(advisor)
        db.session.flush()

        for item in data.get('assignments') or []:
            _build_assignment(advisor, item)

        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateNameError('Advisor or assignment already exists.')
    except (ValidationError, DuplicateNameError):
        db.session.rollback()
        raise

    logger.info("Registered advisor %s", email)
    return jsonify({'success': True, 'advisor': advisor.to_dict()}), 201


@admin_bp.route('/advisors/<int:advisor_id>', methods=['PUT'])
@admin_required
def update_advisor(advisor_id):
    advisor = _get_or_404(Advisor, advisor_id, 'Advisor')
    data = _payload()

    for field in ('first_name', 'middle_name', 'last_name'):
        if field in data:
            setattr(advisor.user, field, (data.get(field) or '').strip() or None)
    if not advisor.user.first_name or not advisor.user.last_name:
        raise ValidationError('First and last name are required.')

    for field in ('employee_no', 'position', 'contact_number', 'gender', 'years_of_service'):
        if field in data:
            setattr(advisor, field, data.get(field))

    if data.get('password'):
        if len(data['password']) < 6:
            raise ValidationError('Password must be at least 6 characters.')
        advisor.user.password = bcrypt.generate_password_hash(data['password']).decode('utf-8')

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateNameError('Employee number already exists.')

    return jsonify({'success': True, 'advisor': advisor.to_dict()})


@admin_bp.route('/advisors/<int:advisor_id>', methods=['DELETE'])
@admin_required
def delete_advisor(advisor_id):
    """Delete an advisor account (cascades to profile and assignments)"""
    advisor = _get_or_404(Advisor, advisor_id, 'Advisor')
    user = advisor.user
    name = user.get_full_name()

    Student.query.filter_by(advisor_id=advisor.id).update({'advisor_id': None})
    db.session.delete(user)
    db.session.commit()

    logger.info("Deleted advisor %s", name)
    return jsonify({'success': True, 'message': f'{name} has been removed from the system.'})


# ========================================
# ADVISOR ASSIGNMENTS
# ========================================

def _build_assignment(advisor, data):
    year_level = str(data.get('year_level') or '').strip()
    section = (data.get('section') or '').strip()
    strand = (data.get('strand') or '').strip().lower() or None

    if year_level not in Config.YEAR_LEVELS:
        raise ValidationError(f"Year level must be one of: {', '.join(Config.YEAR_LEVELS)}")
    if not section:
        raise ValidationError('Section is required')
    if strand:
        if year_level not in Config.SENIOR_HIGH_YEAR_LEVELS:
            raise ValidationError('Strand applies to Grade 11 and 12 only')
        if strand not in Config.STRANDS:
            raise ValidationError(f"Strand must be one of: {', '.join(Config.STRANDS)}")

    duplicate = AdvisorAssignment.query.filter_by(
        advisor_id=advisor.id, year_level=year_level, section=section, strand=strand
    ).first()
    if duplicate:
        raise DuplicateNameError('This advisor is already assigned to that section')

    assignment = AdvisorAssignment(
        advisor_id=advisor.id, year_level=year_level, section=section, strand=strand
    )
    assignment.set_subjects(data.get('subjects') or [])
    db.session.add(assignment)
    return assignment


@admin_bp.route('/advisors/<int:advisor_id>/assignments')
@admin_required
def list_assignments(advisor_id):
    advisor = _get_or_404(Advisor, advisor_id, 'Advisor')
    return jsonify({'success': True, 'assignments': [a.to_dict() for a in advisor.assignments]})


@admin_bp.route('/advisors/<int:advisor_id>/assignments', methods=['POST'])
@admin_required
def create_assignment(advisor_id):
    advisor = _get_or_404(Advisor, advisor_id, 'Advisor')
    assignment = _build_assignment(advisor, _payload())
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateNameError('This advisor is already assigned to that section')

    logger.info("Assigned advisor %s to %r", advisor.employee_no, assignment)
    return jsonify({'success': True, 'assignment': assignment.to_dict()}), 201


@admin_bp.route('/assignments/<int:assignment_id>', methods=['DELETE'])
@admin_required
def delete_assignment(assignment_id):
    assignment = _get_or_404(AdvisorAssignment, assignment_id, 'Assignment')
    db.session.delete(assignment)
    db.session.commit()
    return jsonify({'success': True})


# ========================================
# SUBJECTS
# ========================================

@admin_bp.route('/subjects')
@admin_required
def list_subjects():
    query = Subject.query
    grade_level = request.args.get('grade_level')
    if grade_level:
        query = query.filter_by(grade_level=grade_level)
    subjects = query.order_by(Subject.grade_level, Subject.name).all()
    return jsonify({'success': True, 'subjects': [s.to_dict() for s in subjects]})


def _apply_subject(subject, data):
    if 'name' in data:
        subject.name = (data.get('name') or '').strip()
    if 'grade_level' in data:
        subject.grade_level = str(data.get('grade_level') or '').strip()
    if 'is_active' in data:
        subject.is_active = bool(data.get('is_active'))

    if not subject.name:
        raise ValidationError('Subject name is required')
    if subject.grade_level not in Config.YEAR_LEVELS:
        raise ValidationError(f"Grade level must be one of: {', '.join(Config.YEAR_LEVELS)}")

    duplicate = Subject.query.filter(
        Subject.name == subject.name,
        Subject.grade_level == subject.grade_level,
        Subject.id != subject.id
    ).first()
    if duplicate:
        raise DuplicateNameError(f'{subject.name} already exists for Grade {subject.grade_level}')


@admin_bp.route('/subjects', methods=['POST'])
@admin_required
def create_subject():
    subject = Subject(is_active=True)
    _apply_subject(subject, _payload())
    db.session.add(subject)
    db.session.commit()
    return jsonify({'success': True, 'subject': subject.to_dict()}), 201


@admin_bp.route('/subjects/<int:subject_id>', methods=['PUT'])
@admin_required
def update_subject(subject_id):
    subject = _get_or_404(Subject, subject_id, 'Subject')
    try:
        _apply_subject(subject, _payload())
    except ValidationError:
        db.session.rollback()
        raise
    db.session.commit()
    return jsonify({'success': True, 'subject': subject.to_dict()})


@admin_bp.route('/subjects/<int:subject_id>', methods=['DELETE'])
@admin_required
def delete_subject(subject_id):
    subject = _get_or_404(Subject, subject_id, 'Subject')
    db.session.delete(subject)
    db.session.commit()
    return jsonify({'success': True})


# ========================================
# GRADING SYSTEMS
# ========================================

@admin_bp.route('/grading-systems')
@admin_required
def list_grading_systems():
    systems = GradingSystem.query.order_by(GradingSystem.is_active.desc(), GradingSystem.name).all()
    return jsonify({'success': True, 'grading_systems': [s.to_dict() for s in systems]})


@admin_bp.route('/grading-systems/active')
@admin_required
def active_grading_system():
    return jsonify({'success': True, 'grading_system': GradingSystem.get_active().to_dict()})


@admin_bp.route('/grading-systems', methods=['POST'])
@admin_required
def create_grading_system():
    data = _payload()
    system = GradingSystem.create(
        data.get('name'),
        data.get('written_work_percentage'),
        data.get('performance_task_percentage'),
        data.get('quarterly_assessment_percentage'),
        description=data.get('description'),
        created_by=current_user.id,
    )
    message = f"Grading system '{system.name}' created."
    if GradingSystem.query.filter_by(is_active=True).count() == 0:
        message += ' No grading system is active yet; activate one before entering grades.'
    return jsonify({'success': True, 'message': message, 'grading_system': system.to_dict()}), 201


@admin_bp.route('/grading-systems/<int:system_id>', methods=['PUT'])
@admin_required
def update_grading_system(system_id):
    data = _payload()
    system = GradingSystem.get_or_404(system_id)
    system.update(
        name=data.get('name'),
        written_work=data.get('written_work_percentage'),
        performance_task=data.get('performance_task_percentage'),
        quarterly_assessment=data.get('quarterly_assessment_percentage'),
        description=data.get('description'),
    )
    return jsonify({'success': True, 'grading_system': system.to_dict()})


@admin_bp.route('/grading-systems/<int:system_id>/activate', methods=['POST'])
@admin_required
def activate_grading_system(system_id):
    system = GradingSystem.activate(system_id)
    return jsonify({
        'success': True,
        'message': f'{system.name} is now the active grading system',
        'grading_system': system.to_dict()
    })


@admin_bp.route('/grading-systems/<int:system_id>', methods=['DELETE'])
@admin_required
def delete_grading_system(system_id):
    GradingSystem.delete(system_id)
    return jsonify({'success': True})
