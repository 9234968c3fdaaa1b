"""
blueprints/analytics/routes.py - Analytics Blueprint
At-risk students, performance trends, section and system health
"""

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user

import analytics
from access import admin_required, scope_students, staff_required
from blueprints.students.routes import get_student_or_404
from models import Student

analytics_bp = Blueprint('analytics', __name__)


def _scoped_students():
    query = scope_students(Student.query, current_user)
    if request.args.get('year_level'):
        query = query.filter(Student.year_level == request.args['year_level'])
    if request.args.get('section'):
        query = query.filter(Student.section == request.args['section'])
    return query


@analytics_bp.route('/at-risk')
@staff_required
def at_risk():
    """At-risk students, highest risk score first"""
    limit = request.args.get('limit', current_app.config.get('AT_RISK_LIMIT', 50), type=int)
    students = analytics.at_risk_students(_scoped_students())

    tier = request.args.get('risk_level')
    if tier:
        students = [s for s in students if s['risk_level'] == tier]

    return jsonify({'success': True, 'total': len(students), 'students': students[:limit]})


@analytics_bp.route('/students/<int:student_id>')
@staff_required
def student_performance(student_id):
    student = get_student_or_404(student_id)
    return jsonify({'success': True, 'performance': analytics.student_performance(student)})


@analytics_bp.route('/trends')
@staff_required
def performance_trends():
    """Quarter averages and trend for every visible student"""
    students = _scoped_students().order_by(Student.last_name, Student.first_name).all()
    return jsonify({'success': True, 'students': analytics.assess_students(students)})


@analytics_bp.route('/sections')
@staff_required
def section_analytics():
    """One summary per section the user can see"""
    return jsonify({'success': True, 'sections': analytics.section_analytics(_scoped_students())})


@analytics_bp.route('/advisor')
@staff_required
def advisor_analytics():
    """Overall numbers for the current advisor's sections"""
    query = scope_students(Student.query, current_user)
    return jsonify({
        'success': True,
        'summary': analytics.system_analytics(query),
        'sections': analytics.section_analytics(query),
    })


@analytics_bp.route('/system')
@admin_required
def system_analytics():
    return jsonify({'success': True, 'summary': analytics.system_analytics()})
