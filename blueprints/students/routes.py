"""
blueprints/students/routes.py - Students Blueprint
Student records, scoped to the advisor's assigned sections
"""

import logging

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

import analytics
from access import admin_required, ensure_can_access, scope_students, staff_required
from errors import DuplicateNameError, NotFoundError, ValidationError
from extensions import db
from models import Student

logger = logging.getLogger(__name__)

students_bp = Blueprint('students', __name__)


def get_student_or_404(student_id):
    """Load a student the current user may see"""
    student = db.session.get(Student, student_id)
    if student is None:
        raise NotFoundError('Student not found')
    ensure_can_access(current_user, student)
    return student


def _check_unique(student):
    duplicate = Student.query.filter(
        or_(Student.student_id_no == student.student_id_no, Student.student_lrn == student.student_lrn),
        Student.id != student.id
    ).first()
    if duplicate:
        raise DuplicateNameError('Student ID number or LRN already exists.')


@students_bp.route('')
@staff_required
def list_students():
    """
    Students the user may see

    Query params: year_level, section, strand, search, page
    """
    query = scope_students(Student.query, current_user)

    year_level = request.args.get('year_level')
    section = request.args.get('section')
    strand = request.args.get('strand')
    search = (request.args.get('search') or '').strip()

    if year_level:
        query = query.filter(Student.year_level == year_level)
    if section:
        query = query.filter(Student.section == section)
    if strand:
        query = query.filter(Student.strand == strand.lower())
    if search:
        pattern = f'%{search}%'
        query = query.filter(or_(
            Student.first_name.ilike(pattern),
            Student.last_name.ilike(pattern),
            Student.student_id_no.ilike(pattern),
            Student.student_lrn.ilike(pattern),
        ))

    page = request.args.get('page', 1, type=int)
    per_page = current_app.config.get('ITEMS_PER_PAGE', 50)
    pagination = query.order_by(Student.last_name, Student.first_name) \
        .paginate(page=page, per_page=per_page, error_out=False)

    return jsonify({
        'success': True,
        'students': [s.to_dict() for s in pagination.items],
        'page': pagination.page,
        'pages': pagination.pages,
        'total': pagination.total,
    })


@students_bp.route('', methods=['POST'])
@admin_required
def create_student():
    student = Student()
    student.apply_fields(request.get_json(silent=True) or {})
    _check_unique(student)

    db.session.add(student)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateNameError('Student ID number or LRN already exists.')

    logger.info("Registered student %s", student.student_id_no)
    return jsonify({'success': True, 'student': student.to_dict()}), 201


@students_bp.route('/<int:student_id>')
@staff_required
def get_student(student_id):
    student = get_student_or_404(student_id)
    return jsonify({
        'success': True,
        'student': student.to_dict(),
        'performance': analytics.student_performance(student),
    })


@students_bp.route('/<int:student_id>', methods=['PUT'])
@staff_required
def update_student(student_id):
    """Admins edit any student; advisors edit the students they handle"""
    student = get_student_or_404(student_id)
    data = request.get_json(silent=True) or {}

    try:
        student.apply_fields(data)
        _check_unique(student)
        db.session.commit()
    except (ValidationError, DuplicateNameError):
        db.session.rollback()
        raise
    except IntegrityError:
        db.session.rollback()
        raise DuplicateNameError('Student ID number or LRN already exists.')

    return jsonify({'success': True, 'student': student.to_dict()})


@students_bp.route('/<int:student_id>', methods=['DELETE'])
@admin_required
def delete_student(student_id):
    """Delete a student with their grades and attendance"""
    student = db.session.get(Student, student_id)
    if student is None:
        raise NotFoundError('Student not found')

    name = student.get_full_name()
    db.session.delete(student)
    db.session.commit()

    logger.info("Deleted student %s", name)
    return jsonify({'success': True, 'message': f'{name} has been removed from the system.'})
