from datetime import date, timedelta

import pytest

import analytics
import grading
from conftest import make_student
from models import Attendance, Grade


def test_quarter_trend_uses_last_two_quarters_with_grades():
    assert analytics.quarter_trend({'1st': 90, '2nd': 80}) == analytics.DECLINING
    assert analytics.quarter_trend({'1st': 80, '2nd': 86}) == analytics.IMPROVING
    assert analytics.quarter_trend({'1st': 80, '2nd': 85}) == analytics.STABLE
    assert analytics.quarter_trend({'1st': 70, '2nd': 90, '3rd': None, '4th': 80}) == analytics.DECLINING
    assert analytics.quarter_trend({'1st': 90}) == analytics.STABLE
    assert analytics.quarter_trend({}) == analytics.STABLE


def test_risk_score_factors():
    assert analytics.risk_score(92, 0) == 0
    assert analytics.risk_score(74, 3, attendance_rate=60, trend=analytics.DECLINING) == 100
    assert analytics.risk_score(78, 1) == 35
    assert analytics.risk_score(83, 0, attendance_rate=80) == 20
    # No attendance records means no attendance penalty
    assert analytics.risk_score(90, 0, attendance_rate=None) == 0
    assert analytics.risk_score(None, 0) == 0


@pytest.mark.parametrize('better, worse', [
    ((90, 0, 95, analytics.STABLE), (82, 0, 95, analytics.STABLE)),
    ((82, 0, 95, analytics.STABLE), (77, 0, 95, analytics.STABLE)),
    ((77, 0, 95, analytics.STABLE), (70, 0, 95, analytics.STABLE)),
    ((80, 0, 95, analytics.STABLE), (80, 1, 95, analytics.STABLE)),
    ((80, 1, 95, analytics.STABLE), (80, 3, 95, analytics.STABLE)),
    ((80, 0, 95, analytics.STABLE), (80, 0, 80, analytics.STABLE)),
    ((80, 0, 80, analytics.STABLE), (80, 0, 50, analytics.STABLE)),
    ((80, 0, 95, analytics.IMPROVING), (80, 0, 95, analytics.DECLINING)),
])
def test_risk_score_is_monotonic(better, worse):
    assert analytics.risk_score(*better) < analytics.risk_score(*worse)


@pytest.mark.parametrize('score, tier', [
    (100, 'High Risk'), (50, 'High Risk'), (49, 'Medium Risk'), (30, 'Medium Risk'),
    (29, 'Low Risk'), (10, 'Low Risk'), (9, None), (0, None),
])
def test_risk_tier(score, tier):
    assert analytics.risk_tier(score) == tier


def test_primary_concern_priority():
    assert analytics.primary_concern(70, 2, 60, analytics.DECLINING) == 'Academic Performance'
    assert analytics.primary_concern(80, 1, 60, analytics.DECLINING) == 'Attendance Issues'
    assert analytics.primary_concern(80, 1, 90, analytics.DECLINING) == 'Performance Decline'
    assert analytics.primary_concern(80, 1, None, analytics.STABLE) == 'Subject-Specific Struggles'
    assert analytics.primary_concern(90, 0) == 'General Monitoring'


def _grade(student, subject, quarter, score):
    return Grade.create(student, subject, quarter,
                        {'written_work': score, 'performance_task': score, 'quarterly_assessment': score},
                        grading.DEFAULT_WEIGHTS)


def test_assess_student_with_grades_and_attendance(app):
    student = make_student('2024-0200')
    for subject, q1, q2 in [('Mathematics', 80, 70), ('Science', 78, 68), ('English', 85, 74)]:
        _grade(student, subject, '1st', q1)
        _grade(student, subject, '2nd', q2)

    today = date.today()
    for offset, status in enumerate(['present', 'absent', 'absent', 'present', 'late']):
        Attendance.mark(student.id, today - timedelta(days=offset), status)
    # Outside the window
    Attendance.mark(student.id, today - timedelta(days=45), 'absent')

    result = analytics.student_performance(student, today=today)
    assert result['quarter_averages']['1st'] == 81
    assert result['quarter_averages']['2nd'] == 70.67
    assert result['trend'] == analytics.DECLINING
    assert result['failing_grades'] == 3
    assert result['attendance_days'] == 5
    assert result['attendance_rate'] == 40
    assert result['overall_average'] == 75.83
    # 25 (average) + 30 (failing) + 20 (attendance) + 10 (trend)
    assert result['risk_score'] == 85
    assert result['risk_level'] == 'High Risk'
    assert result['primary_concern'] == 'Attendance Issues'
    assert result['recommended_action'] == 'Attendance counseling needed'


def test_at_risk_listing_is_sorted_and_stable(app):
    first = make_student('2024-0301', '7', 'A', first_name='Ana', last_name='Abad')
    second = make_student('2024-0302', '7', 'A', first_name='Ben', last_name='Bautista')
    worst = make_student('2024-0303', '7', 'B', first_name='Carlo', last_name='Cruz')
    fine = make_student('2024-0304', '7', 'A', first_name='Dina', last_name='Diaz')

    _grade(second, 'Mathematics', '1st', 78)
    _grade(first, 'Mathematics', '1st', 78)
    _grade(worst, 'Mathematics', '1st', 60)
    _grade(worst, 'Science', '1st', 60)
    _grade(fine, 'Mathematics', '1st', 95)

    results = analytics.at_risk_students()
    assert [r['student_id'] for r in results] == [worst.id, first.id, second.id]
    assert results[0]['risk_level'] == 'High Risk'
    assert results[1]['risk_score'] == results[2]['risk_score'] == 25


def test_section_and_system_health(app):
    strong = [make_student(f'2024-04{i}', '8', 'A') for i in range(3)]
    weak = [make_student(f'2024-05{i}', '8', 'B') for i in range(2)]
    for student in strong:
        _grade(student, 'Mathematics', '1st', 92)
    for student in weak:
        _grade(student, 'Mathematics', '1st', 65)

    sections = {s['section']: s for s in analytics.section_analytics()}
    assert sections['A']['section_health'] == 'Excellent'
    assert sections['A']['performance_distribution']['Outstanding'] == 3
    assert sections['B']['section_health'] == 'Needs Attention'
    assert sections['B']['risk_distribution']['High Risk'] == 2

    summary = analytics.system_analytics()
    assert summary['total_students'] == 5
    assert summary['at_risk_students'] == 2
    assert summary['at_risk_percentage'] == 40
    assert summary['system_health'] == 'Critical'
