"""
blueprints/grades/routes.py - Grades Blueprint
Quarterly grade entry, overrides, history, bulk import and export
"""

import logging

from flask import Blueprint, jsonify, make_response, request
from flask_login import current_user

import grading
import importers
from access import ensure_can_grade, scope_students, staff_required
from blueprints.students.routes import get_student_or_404
from errors import NotFoundError, ValidationError
from extensions import db
from models import Grade, GradeHistory, GradingSystem, Student

logger = logging.getLogger(__name__)

grades_bp = Blueprint('grades', __name__)


def _payload():
    return request.get_json(silent=True) or {}


def _scoped_grades():
    return scope_students(Grade.query.join(Student), current_user)


def get_grade_or_404(grade_id):
    grade = db.session.get(Grade, grade_id)
    if grade is None:
        raise NotFoundError('Grade not found')
    ensure_can_grade(current_user, grade.student, grade.subject)
    return grade


@grades_bp.route('')
@staff_required
def list_grades():
    """
    Grades of the students the user may see

    Query params: student_id, subject, quarter, year_level, section
    """
    query = _scoped_grades()

    student_id = request.args.get('student_id', type=int)
    subject = request.args.get('subject')
    quarter = request.args.get('quarter')
    year_level = request.args.get('year_level')
    section = request.args.get('section')

    if student_id:
        query = query.filter(Grade.student_id == student_id)
    if subject:
        query = query.filter(Grade.subject == subject)
    if quarter:
        if not grading.is_valid_quarter(quarter):
            raise ValidationError(f"Quarter must be one of: {', '.join(grading.QUARTERS)}")
        query = query.filter(Grade.quarter == quarter)
    if year_level:
        query = query.filter(Student.year_level == year_level)
    if section:
        query = query.filter(Student.section == section)

    grades = query.order_by(Student.last_name, Student.first_name, Grade.subject, Grade.quarter).all()
    return jsonify({'success': True, 'grades': [g.to_dict() for g in grades]})


@grades_bp.route('/compute', methods=['POST'])
@staff_required
def compute_preview():
    """Final grade and remarks for raw scores, using the active grading system"""
    data = _payload()
    components = {f: grading.parse_score(data.get(f), f) for f in grading.COMPONENT_FIELDS}
    errors = grading.validate_components(components)
    if errors:
        raise ValidationError('; '.join(errors))

    weights = GradingSystem.active_weights()
    final_grade = grading.compute_final_grade(components, weights)
    remarks = grading.classify(final_grade)

    return jsonify({
        'success': True,
        'final_grade': final_grade,
        'remarks': remarks.label,
        'color_tier': remarks.color_tier,
        'weights': weights._asdict(),
    })


@grades_bp.route('', methods=['POST'])
@staff_required
def create_grade():
    data = _payload()
    if not data.get('student_id'):
        raise ValidationError('Student is required')

    student = get_student_or_404(data['student_id'])
    subject = (data.get('subject') or '').strip()
    if not subject:
        raise ValidationError('Subject is required')
    ensure_can_grade(current_user, student, subject)

    grade = Grade.create(
        student, subject, data.get('quarter'), data, GradingSystem.active_weights(),
        final_grade=grading.parse_score(data.get('final_grade'), 'final_grade'),
        remarks=data.get('remarks'),
        graded_by=current_user.id,
    )
    logger.info("Grade %s saved by %s", grade, current_user.email)
    return jsonify({'success': True, 'grade': grade.to_dict()}), 201


@grades_bp.route('/<int:grade_id>', methods=['PUT'])
@staff_required
def update_grade(grade_id):
    """Update component scores; derived values follow unless overridden"""
    grade = get_grade_or_404(grade_id)
    data = _payload()
    try:
        grade.apply_update(data, GradingSystem.active_weights(), changed_by=current_user.id)
    except ValidationError:
        db.session.rollback()
        raise
    return jsonify({'success': True, 'grade': grade.to_dict()})


@grades_bp.route('/<int:grade_id>/override', methods=['POST'])
@staff_required
def override_grade(grade_id):
    """Manually set the final grade and/or remarks"""
    grade = get_grade_or_404(grade_id)
    data = _payload()
    if data.get('final_grade') is None and not data.get('remarks'):
        raise ValidationError('Provide a final grade or remarks to override')

    old = grade.snapshot()
    try:
        if data.get('final_grade') is not None:
            grade.override_final_grade(data['final_grade'], data.get('reason'))
        if data.get('remarks'):
            grade.override_remarks(data['remarks'])
    except ValidationError:
        db.session.rollback()
        raise

    GradeHistory.record('UPDATE', grade, old=old, changed_by=current_user.id,
                        reason=data.get('reason') or 'Manual override')
    db.session.commit()
    logger.info("Grade %s overridden by %s", grade.id, current_user.email)
    return jsonify({'success': True, 'grade': grade.to_dict()})


@grades_bp.route('/<int:grade_id>/override', methods=['DELETE'])
@staff_required
def clear_override(grade_id):
    """Go back to the computed final grade and remarks"""
    grade = get_grade_or_404(grade_id)
    old = grade.snapshot()
    grade.clear_overrides(GradingSystem.active_weights())

    GradeHistory.record('UPDATE', grade, old=old, changed_by=current_user.id, reason='Override cleared')
    db.session.commit()
    return jsonify({'success': True, 'grade': grade.to_dict()})


@grades_bp.route('/<int:grade_id>', methods=['DELETE'])
@staff_required
def delete_grade(grade_id):
    grade = get_grade_or_404(grade_id)
    grade.delete(changed_by=current_user.id)
    return jsonify({'success': True})


@grades_bp.route('/<int:grade_id>/history')
@staff_required
def grade_history(grade_id):
    grade = get_grade_or_404(grade_id)
    entries = GradeHistory.query.filter_by(grade_id=grade.id) \
        .order_by(GradeHistory.changed_at.desc(), GradeHistory.id.desc()).all()
    return jsonify({'success': True, 'history': [e.to_dict() for e in entries]})


@grades_bp.route('/history/student/<int:student_id>')
@staff_required
def student_grade_history(student_id):
    """Audit trail for all of a student's grades, including deleted ones"""
    student = get_student_or_404(student_id)
    entries = GradeHistory.query.filter_by(student_id=student.id) \
        .order_by(GradeHistory.changed_at.desc(), GradeHistory.id.desc()).all()
    return jsonify({'success': True, 'history': [e.to_dict() for e in entries]})


# ========================================
# BULK IMPORT & EXPORT
# ========================================

@grades_bp.route('/import', methods=['POST'])
@staff_required
def bulk_import():
    """
    Import grades from a CSV or XLSX file

    Rows are validated one by one; valid rows are inserted in batches.
    The response lists every failed row with its reasons.
    """
    if 'file' not in request.files:
        raise ValidationError('No file uploaded.')

    file = request.files['file']
    if not file or file.filename == '':
        raise ValidationError('No file selected.')

    weights = GradingSystem.active_weights()
    result = importers.import_file(file.filename, file.stream, weights, user=current_user)

    logger.info("Bulk import of %s by %s: %d/%d rows imported",
                file.filename, current_user.email, result.successful, result.total)
    return jsonify({
        'success': result.failed == 0,
        'total': result.total,
        'successful': result.successful,
        'failed': result.failed,
        'errors': result.errors,
    })


@grades_bp.route('/import/template')
@staff_required
def import_template():
    """Download grade import CSV template"""
    response = make_response(importers.template_csv())
    response.headers['Content-Disposition'] = 'attachment; filename=grade_import_template.csv'
    response.headers['Content-Type'] = 'text/csv'
    return response


@grades_bp.route('/export')
@staff_required
def export_grades():
    """Export the visible grades to CSV"""
    query = _scoped_grades()
    quarter = request.args.get('quarter')
    if quarter:
        query = query.filter(Grade.quarter == quarter)

    grades = query.order_by(Student.year_level, Student.section, Student.last_name, Grade.subject).all()

    response = make_response(importers.grades_to_csv(grades))
    response.headers['Content-Disposition'] = 'attachment; filename=gradesheet_grades_export.csv'
    response.headers['Content-Type'] = 'text/csv'
    return response
