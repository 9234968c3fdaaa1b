"""
analytics.py - Performance & Risk Analytics
Per-student performance trends, the at-risk estimator, and
section / system aggregates for the dashboards.
"""

import logging
from collections import OrderedDict, defaultdict
from datetime import date, timedelta

import grading
from config import Config
from models import Attendance, Grade, Student

logger = logging.getLogger(__name__)

IMPROVING = 'Improving'
DECLINING = 'Declining'
STABLE = 'Stable'
TREND_THRESHOLD = 5

HIGH_RISK = 'High Risk'
MEDIUM_RISK = 'Medium Risk'
LOW_RISK = 'Low Risk'
RISK_TIERS = (HIGH_RISK, MEDIUM_RISK, LOW_RISK)

# (minimum score, tier), highest first
RISK_TIER_THRESHOLDS = (
    (50, HIGH_RISK),
    (30, MEDIUM_RISK),
    (10, LOW_RISK),
)


# ========================================
# RISK ESTIMATOR (pure)
# ========================================

def quarter_trend(quarter_averages):
    """
    Direction between the two most recent quarters that have grades

    Args:
        quarter_averages: {quarter: average}; quarters without grades may be missing or None
    """
    present = sorted(
        (grading.quarter_index(q), avg) for q, avg in quarter_averages.items() if avg is not None
    )
    if len(present) < 2:
        return STABLE

    delta = present[-1][1] - present[-2][1]
    if delta < -TREND_THRESHOLD:
        return DECLINING
    if delta > TREND_THRESHOLD:
        return IMPROVING
    return STABLE


def risk_score(overall_average, failing_count, attendance_rate=None, trend=STABLE):
    """
    Heuristic 0-100 risk score; higher means more at risk.
    Attendance only counts when the student has attendance records.
    """
    score = 0

    if overall_average is not None:
        if overall_average < 75:
            score += 40
        elif overall_average < 80:
            score += 25
        elif overall_average < 85:
            score += 10

    if failing_count >= 3:
        score += 30
    elif failing_count >= 2:
        score += 20
    elif failing_count >= 1:
        score += 10

    if attendance_rate is not None:
        if attendance_rate < 75:
            score += 20
        elif attendance_rate < 85:
            score += 10

    if trend == DECLINING:
        score += 10

    return max(0, min(100, score))


def risk_tier(score):
    for minimum, tier in RISK_TIER_THRESHOLDS:
        if score >= minimum:
            return tier
    return None


def primary_concern(overall_average, failing_count, attendance_rate=None, trend=STABLE):
    if overall_average is not None and overall_average < 75 and failing_count >= 2:
        return 'Academic Performance'
    if attendance_rate is not None and attendance_rate < 75:
        return 'Attendance Issues'
    if trend == DECLINING:
        return 'Performance Decline'
    if failing_count >= 1:
        return 'Subject-Specific Struggles'
    return 'General Monitoring'


RECOMMENDED_ACTIONS = {
    'Academic Performance': 'Immediate intervention required',
    'Attendance Issues': 'Attendance counseling needed',
    'Performance Decline': 'Monitor closely and provide support',
    'Subject-Specific Struggles': 'Subject-specific tutoring',
    'General Monitoring': 'Continue regular monitoring',
}


def _mean(values):
    values = [v for v in values if v is not None]
    if not values:
        return None
    return grading.round_half_up(sum(values) / len(values))


def assess(student, grades, attendance_counts=None, passing_grade=None):
    """
    Performance and risk summary for one student

    Args:
        student: Student
        grades: the student's Grade rows
        attendance_counts: {status: count} within the attendance window, or None
    """
    passing_grade = Config.PASSING_GRADE if passing_grade is None else passing_grade
    finals = [g.final_grade for g in grades if g.final_grade is not None]

    by_quarter = defaultdict(list)
    for g in grades:
        if g.final_grade is not None:
            by_quarter[g.quarter].append(g.final_grade)
    quarter_averages = OrderedDict((q, _mean(by_quarter.get(q, []))) for q in grading.QUARTERS)

    overall_average = _mean(finals)
    failing_count = sum(1 for f in finals if grading.is_failing(f, passing_grade))
    trend = quarter_trend(quarter_averages)

    attendance_rate = None
    attendance_days = 0
    if attendance_counts:
        attendance_days = sum(attendance_counts.values())
        if attendance_days:
            attendance_rate = grading.round_half_up(
                attendance_counts.get('present', 0) / attendance_days * 100
            )

    score = risk_score(overall_average, failing_count, attendance_rate, trend)
    concern = primary_concern(overall_average, failing_count, attendance_rate, trend)

    return {
        'student_id': student.id,
        'student_id_no': student.student_id_no,
        'student_name': student.get_full_name(),
        'year_level': student.year_level,
        'section': student.section,
        'strand': student.strand,
        'quarter_averages': dict(quarter_averages),
        'overall_average': overall_average,
        'performance_band': grading.remarks_for(overall_average) if overall_average is not None else None,
        'total_grades': len(grades),
        'failing_grades': failing_count,
        'trend': trend,
        'attendance_days': attendance_days,
        'attendance_rate': attendance_rate,
        'risk_score': score,
        'risk_level': risk_tier(score),
        'primary_concern': concern,
        'recommended_action': RECOMMENDED_ACTIONS[concern],
    }


# ========================================
# LOADING
# ========================================

def attendance_window_start(today=None):
    today = today or date.today()
    return today - timedelta(days=Config.ATTENDANCE_WINDOW_DAYS)


def assess_students(students, today=None):
    """Assess many students with one grade query and one attendance query"""
    students = list(students)
    if not students:
        return []
    ids = [s.id for s in students]

    grades_by_student = defaultdict(list)
    for grade in Grade.query.filter(Grade.student_id.in_(ids)).all():
        grades_by_student[grade.student_id].append(grade)

    attendance_by_student = defaultdict(dict)
    rows = Attendance.query.with_entities(Attendance.student_id, Attendance.status) \
        .filter(Attendance.student_id.in_(ids), Attendance.date >= attendance_window_start(today)) \
        .all()
    for student_id, status in rows:
        counts = attendance_by_student[student_id]
        counts[status] = counts.get(status, 0) + 1

    return [
        assess(s, grades_by_student.get(s.id, []), attendance_by_student.get(s.id))
        for s in students
    ]


def _ordered(query):
    return query.order_by(Student.year_level, Student.section, Student.last_name, Student.first_name)


def at_risk_students(query=None, limit=None, today=None):
    """
    Students with a risk tier, highest score first.
    Ties keep the year level / section / name order.
    """
    query = query if query is not None else Student.query
    assessments = [a for a in assess_students(_ordered(query).all(), today) if a['risk_level']]
    assessments = sorted(assessments, key=lambda a: a['risk_score'], reverse=True)
    if limit:
        assessments = assessments[:limit]
    return assessments


# ========================================
# AGGREGATES
# ========================================

def _summarize(assessments):
    total = len(assessments)
    averages = [a['overall_average'] for a in assessments]

    bands = OrderedDict((label, 0) for label in grading.REMARKS_LABELS)
    for a in assessments:
        if a['performance_band']:
            bands[a['performance_band']] += 1

    tiers = OrderedDict((tier, 0) for tier in RISK_TIERS)
    for a in assessments:
        if a['risk_level']:
            tiers[a['risk_level']] += 1

    at_risk = [a for a in assessments if a['risk_level']]
    return {
        'total_students': total,
        'at_risk_students': len(at_risk),
        'at_risk_percentage': grading.round_half_up(len(at_risk) / total * 100) if total else 0,
        'performance_distribution': dict(bands),
        'risk_distribution': dict(tiers),
        'average_grade': _mean(averages),
        'average_attendance_rate': _mean([a['attendance_rate'] for a in at_risk]),
        'average_risk_score': _mean([a['risk_score'] for a in at_risk]),
        'improving_students': sum(1 for a in assessments if a['trend'] == IMPROVING),
        'declining_students': sum(1 for a in assessments if a['trend'] == DECLINING),
        'stable_students': sum(1 for a in assessments if a['trend'] == STABLE),
    }


def _health(summary, high_ratio, elevated_ratio, labels):
    total = summary['total_students']
    high = summary['risk_distribution'][HIGH_RISK]
    elevated = high + summary['risk_distribution'][MEDIUM_RISK]
    average = summary['average_grade']

    if high > total * high_ratio:
        return labels[0]
    if elevated > total * elevated_ratio:
        return labels[1]
    if average is not None and average >= 85:
        return 'Excellent'
    if average is not None and average >= 80:
        return 'Good'
    return 'Average'


def section_health(summary):
    return _health(summary, 0.2, 0.3, ('Needs Attention', 'Monitor Closely'))


def system_health(summary):
    return _health(summary, 0.15, 0.25, ('Critical', 'Needs Attention'))


def section_analytics(query=None, today=None):
    """One summary per (year level, section, strand)"""
    query = query if query is not None else Student.query
    sections = OrderedDict()
    for a in assess_students(_ordered(query).all(), today):
        sections.setdefault((a['year_level'], a['section'], a['strand']), []).append(a)

    results = []
    for (year_level, section, strand), assessments in sections.items():
        summary = _summarize(assessments)
        summary.update({
            'year_level': year_level,
            'section': section,
            'strand': strand,
            'section_health': section_health(summary),
        })
        results.append(summary)
    return results


def system_analytics(query=None, today=None):
    query = query if query is not None else Student.query
    summary = _summarize(assess_students(query.all(), today))
    summary['system_health'] = system_health(summary)
    logger.debug("System analytics computed for %d students", summary['total_students'])
    return summary


def student_performance(student, today=None):
    return assess_students([student], today)[0]
