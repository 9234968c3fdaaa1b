"""
blueprints/attendance/routes.py - Attendance Blueprint
Daily attendance marking and summaries
"""

import logging
from datetime import date, datetime

from flask import Blueprint, jsonify, request
from flask_login import current_user

import grading
from access import scope_students, staff_required
from analytics import attendance_window_start
from blueprints.students.routes import get_student_or_404
from config import Config
from errors import ValidationError
from models import Attendance, Student

logger = logging.getLogger(__name__)

attendance_bp = Blueprint('attendance', __name__)


def _parse_date(raw, default=None):
    if not raw:
        return default
    try:
        return datetime.strptime(raw, '%Y-%m-%d').date()
    except (TypeError, ValueError):
        raise ValidationError('Date must be YYYY-MM-DD')


def _scoped_attendance():
    return scope_students(Attendance.query.join(Student), current_user)


@attendance_bp.route('')
@staff_required
def list_attendance():
    """
    Attendance for one day (default today) across visible students

    Query params: date, year_level, section
    """
    on_date = _parse_date(request.args.get('date'), date.today())
    query = _scoped_attendance().filter(Attendance.date == on_date)

    if request.args.get('year_level'):
        query = query.filter(Student.year_level == request.args['year_level'])
    if request.args.get('section'):
        query = query.filter(Student.section == request.args['section'])

    records = query.order_by(Student.last_name, Student.first_name).all()
    return jsonify({
        'success': True,
        'date': on_date.isoformat(),
        'attendance': [r.to_dict() for r in records],
    })


@attendance_bp.route('', methods=['POST'])
@staff_required
def mark_attendance():
    """
    Mark one student or a list of students for a day.
    Marking the same student and day again replaces the status.
    """
    data = request.get_json(silent=True) or {}
    on_date = _parse_date(data.get('date'), date.today())

    entries = data.get('records')
    if entries is None:
        entries = [data]
    if not entries:
        raise ValidationError('No attendance records provided')

    saved = []
    for entry in entries:
        if not entry.get('student_id'):
            raise ValidationError('Student is required')
        student = get_student_or_404(entry['student_id'])
        saved.append(Attendance.mark(student.id, on_date, entry.get('status'), entry.get('remarks')))

    logger.info("%s marked attendance for %d student(s) on %s", current_user.email, len(saved), on_date)
    return jsonify({'success': True, 'attendance': [r.to_dict() for r in saved]})


@attendance_bp.route('/summary')
@staff_required
def attendance_summary():
    """Status counts for a date range (default: the last ATTENDANCE_WINDOW_DAYS days)"""
    end = _parse_date(request.args.get('end'), date.today())
    start = _parse_date(request.args.get('start'))
    if start is None:
        start = attendance_window_start(end)
    if start > end:
        raise ValidationError('Start date must be on or before end date')

    query = _scoped_attendance().filter(Attendance.date >= start, Attendance.date <= end)
    if request.args.get('student_id', type=int):
        query = query.filter(Attendance.student_id == request.args.get('student_id', type=int))

    counts = Attendance.status_counts(query)
    total = sum(counts.values())
    return jsonify({
        'success': True,
        'start': start.isoformat(),
        'end': end.isoformat(),
        'counts': counts,
        'total': total,
        'attendance_rate': grading.round_half_up(counts['present'] / total * 100) if total else None,
        'statuses': list(Config.ATTENDANCE_STATUSES),
    })
