"""
blueprints/portal/routes.py - Student Portal Blueprint
Read-only lookup of a student's grades and attendance by student ID number.
"""

import logging

from flask import Blueprint, current_app, jsonify

import grading
from errors import NotFoundError
from models import Attendance, Grade, Student

logger = logging.getLogger(__name__)

portal_bp = Blueprint('portal', __name__)


def quarter_averages(grades):
    """
    Mean final grade per quarter, plus the mean of the quarter means

    Returns:
        tuple: ({quarter: average or None}, overall average or None)
    """
    averages = {}
    for quarter in grading.QUARTERS:
        values = [g.final_grade for g in grades if g.quarter == quarter and g.final_grade is not None]
        averages[quarter] = grading.round_half_up(sum(values) / len(values)) if values else None

    present = [avg for avg in averages.values() if avg is not None]
    overall = grading.round_half_up(sum(present) / len(present)) if present else None
    return averages, overall


@portal_bp.route('/<student_id_no>')
def student_record(student_id_no):
    """
    A student's own record: profile, grades by quarter and subject,
    and the most recent attendance entries
    """
    student = Student.query.filter_by(student_id_no=student_id_no.strip()).first()
    if student is None:
        raise NotFoundError('Student not found')

    grades = Grade.query.filter_by(student_id=student.id) \
        .order_by(Grade.quarter, Grade.subject).all()
    attendance = Attendance.query.filter_by(student_id=student.id) \
        .order_by(Attendance.date.desc()) \
        .limit(current_app.config['PORTAL_ATTENDANCE_LIMIT']).all()

    averages, overall = quarter_averages(grades)
    logger.info("Portal lookup for student %s", student.student_id_no)

    return jsonify({
        'success': True,
        'student': student.to_dict(),
        'grades': [g.to_dict() for g in grades],
        'quarter_averages': averages,
        'overall_average': overall,
        'overall_remarks': grading.remarks_for(overall) if overall is not None else None,
        'attendance': [a.to_dict() for a in attendance],
    })
