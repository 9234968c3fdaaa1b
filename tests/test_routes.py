import io
from datetime import date

from conftest import login
from models import Attendance, Grade, GradingSystem


def _components(ww=85, pt=90, qa=88):
    return {'written_work': ww, 'performance_task': pt, 'quarterly_assessment': qa}


# ========================================
# AUTH
# ========================================

def test_login_and_me(client, admin_user):
    resp = login(client, admin_user.email)
    assert resp.status_code == 200
    assert resp.get_json()['user']['role'] == 'admin'

    me = client.get('/auth/me').get_json()
    assert me['user']['email'] == admin_user.email


def test_bad_password_is_rejected(client, admin_user):
    resp = login(client, admin_user.email, password='wrong-password')
    assert resp.status_code == 401
    assert resp.get_json()['success'] is False


def test_anonymous_requests_get_json_401(client):
    resp = client.get('/grades')
    assert resp.status_code == 401
    assert resp.get_json() == {'success': False, 'error': 'Please log in to access this page.'}


def test_advisor_cannot_use_admin_routes(advisor_client):
    resp = advisor_client.get('/admin/grading-systems')
    assert resp.status_code == 403


def test_unknown_route_returns_json_404(client):
    resp = client.get('/nowhere')
    assert resp.status_code == 404
    assert resp.get_json()['success'] is False


# ========================================
# GRADING SYSTEMS
# ========================================

def test_grading_system_lifecycle(admin_client):
    resp = admin_client.post('/admin/grading-systems', json={
        'name': 'Standard', 'written_work_percentage': 25,
        'performance_task_percentage': 50, 'quarterly_assessment_percentage': 25,
    })
    assert resp.status_code == 201
    standard = resp.get_json()['grading_system']
    assert standard['is_active'] is False

    resp = admin_client.post('/admin/grading-systems', json={
        'name': 'Broken', 'written_work_percentage': 30,
        'performance_task_percentage': 50, 'quarterly_assessment_percentage': 30,
    })
    assert resp.status_code == 400
    assert 'sum to exactly 100' in resp.get_json()['error']

    resp = admin_client.post('/admin/grading-systems', json={
        'name': 'Standard', 'written_work_percentage': 30,
        'performance_task_percentage': 40, 'quarterly_assessment_percentage': 30,
    })
    assert resp.status_code == 409

    resp = admin_client.post(f"/admin/grading-systems/{standard['id']}/activate")
    assert resp.status_code == 200
    assert admin_client.get('/admin/grading-systems/active').get_json()['grading_system']['name'] == 'Standard'

    resp = admin_client.delete(f"/admin/grading-systems/{standard['id']}")
    assert resp.status_code == 409
    assert resp.get_json()['error'] == 'Cannot delete the active grading system. Activate another system first.'


def test_missing_active_system_is_a_500(admin_client):
    GradingSystem.create('Inactive', 25, 50, 25)
    resp = admin_client.get('/admin/grading-systems/active')
    assert resp.status_code == 500
    assert 'exactly one active grading system' in resp.get_json()['error']


# ========================================
# GRADES
# ========================================

def test_compute_preview_uses_active_weights(advisor_client, active_system):
    resp = advisor_client.post('/grades/compute', json=_components())
    data = resp.get_json()
    assert data['final_grade'] == 88.25
    assert data['remarks'] == 'Very Satisfactory'
    assert data['color_tier'] == 'blue'


def test_advisor_grades_assigned_student(advisor_client, students, active_system):
    payload = dict(_components(), student_id=students['g7a'].id, subject='Mathematics', quarter='1st')
    resp = advisor_client.post('/grades', json=payload)
    assert resp.status_code == 201
    assert resp.get_json()['grade']['final_grade'] == 88.25

    resp = advisor_client.post('/grades', json=payload)
    assert resp.status_code == 409


def test_advisor_cannot_grade_outside_assignment(advisor_client, students, active_system):
    resp = advisor_client.post('/grades', json=dict(
        _components(), student_id=students['g7b'].id, subject='Mathematics', quarter='1st'))
    assert resp.status_code == 403

    resp = advisor_client.post('/grades', json=dict(
        _components(), student_id=students['g7a'].id, subject='English', quarter='1st'))
    assert resp.status_code == 403
    assert Grade.query.count() == 0


def test_grade_list_is_scoped(advisor_client, students, active_system):
    for key in ('g7a', 'g7b', 'g11_abm'):
        Grade.create(students[key], 'Mathematics', '1st', _components(), active_system.weights)

    grades = advisor_client.get('/grades').get_json()['grades']
    assert [g['student_id'] for g in grades] == [students['g7a'].id]


def test_override_and_clear_through_api(admin_client, students, active_system):
    grade = Grade.create(students['g7a'], 'Mathematics', '1st', _components(70, 70, 70),
                         active_system.weights)

    resp = admin_client.post(f'/grades/{grade.id}/override', json={'final_grade': 75, 'reason': 'Re-checked'})
    data = resp.get_json()['grade']
    assert data['final_grade'] == 75
    assert data['final_grade_overridden'] is True
    assert data['remarks'] == 'Fairly Satisfactory'

    data = admin_client.put(f'/grades/{grade.id}', json={'written_work': 80}).get_json()['grade']
    assert data['final_grade'] == 75
    assert data['written_work'] == 80

    data = admin_client.delete(f'/grades/{grade.id}/override').get_json()['grade']
    assert data['final_grade'] == 72.5
    assert data['final_grade_overridden'] is False

    history = admin_client.get(f'/grades/{grade.id}/history').get_json()['history']
    assert [h['action_type'] for h in history] == ['UPDATE', 'UPDATE', 'UPDATE', 'INSERT']


def test_bulk_import_endpoint(advisor_client, students, active_system):
    csv_body = (
        'student_id_no,student_name,subject,quarter,written_work,performance_task,'
        'quarterly_assessment,final_grade,remarks\n'
        '2024-0001,Juan,Science,1st,90,90,90,,\n'
        '2024-0002,Pedro,Science,1st,90,90,90,,\n'
    )
    resp = advisor_client.post('/grades/import', data={
        'file': (io.BytesIO(csv_body.encode('utf-8')), 'grades.csv'),
    }, content_type='multipart/form-data')

    data = resp.get_json()
    assert data['successful'] == 1
    assert data['failed'] == 1
    assert data['errors'][0]['row'] == 3
    assert 'not assigned' in data['errors'][0]['errors'][0]


def test_export_contains_visible_grades(admin_client, students, active_system):
    Grade.create(students['g7a'], 'Mathematics', '1st', _components(), active_system.weights)
    resp = admin_client.get('/grades/export')
    assert resp.headers['Content-Type'].startswith('text/csv')
    lines = resp.get_data(as_text=True).strip().splitlines()
    assert len(lines) == 2
    assert lines[1].startswith('2024-0001,Juan Dela Cruz,Mathematics,1st')


# ========================================
# STUDENTS, ATTENDANCE, ANALYTICS
# ========================================

def test_student_list_and_detail_are_scoped(advisor_client, students):
    listed = advisor_client.get('/students').get_json()['students']
    assert {s['student_id_no'] for s in listed} == {'2024-0001', '2024-0003'}

    assert advisor_client.get(f"/students/{students['g7b'].id}").status_code == 403
    assert advisor_client.get(f"/students/{students['g7a'].id}").status_code == 200


def test_admin_creates_student_with_validation(admin_client):
    payload = {
        'student_id_no': '2024-0500', 'student_lrn': '123456789012', 'first_name': 'Lia',
        'last_name': 'Ramos', 'year_level': '11', 'section': 'A', 'strand': 'STEM',
    }
    resp = admin_client.post('/students', json=payload)
    assert resp.status_code == 201
    assert resp.get_json()['student']['strand'] == 'stem'

    assert admin_client.post('/students', json=payload).status_code == 409
    bad = dict(payload, student_id_no='2024-0501', student_lrn='x', year_level='13')
    assert admin_client.post('/students', json=bad).status_code == 400


def test_attendance_marking_and_summary(advisor_client, students):
    student_id = students['g7a'].id
    advisor_client.post('/attendance', json={'student_id': student_id, 'status': 'absent', 'date': '2024-09-02'})
    resp = advisor_client.post('/attendance', json={'student_id': student_id, 'status': 'present',
                                                    'date': '2024-09-02'})
    assert resp.status_code == 200

    summary = advisor_client.get('/attendance/summary?start=2024-09-01&end=2024-09-30').get_json()
    assert summary['total'] == 1
    assert summary['counts']['present'] == 1

    resp = advisor_client.post('/attendance', json={'student_id': student_id, 'status': 'sick'})
    assert resp.status_code == 400


def test_at_risk_endpoint_is_scoped(advisor_client, students, active_system):
    for key in ('g7a', 'g7b'):
        Grade.create(students[key], 'Mathematics', '1st', _components(60, 60, 60), active_system.weights)

    data = advisor_client.get('/analytics/at-risk').get_json()
    assert [s['student_id'] for s in data['students']] == [students['g7a'].id]
    assert data['students'][0]['risk_level'] == 'High Risk'


def test_infinite_final_grade_is_rejected(advisor_client, students, active_system):
    resp = advisor_client.post('/grades', json=dict(
        _components(), student_id=students['g7a'].id, subject='Mathematics', quarter='1st',
        final_grade='inf'))
    assert resp.status_code == 400
    assert resp.get_json()['success'] is False
    assert Grade.query.count() == 0


def test_non_text_remarks_are_rejected(advisor_client, students, active_system):
    resp = advisor_client.post('/grades', json=dict(
        _components(), student_id=students['g7a'].id, subject='Mathematics', quarter='1st', remarks=5))
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Remarks must be text'
    assert Grade.query.count() == 0

    grade = Grade.create(students['g7a'], 'Mathematics', '1st', _components(), active_system.weights)
    resp = advisor_client.post(f'/grades/{grade.id}/override', json={'remarks': ['Passed']})
    assert resp.status_code == 400


def test_unreadable_import_file_is_a_400(advisor_client, students, active_system):
    body = b'student_id_no,subject,quarter\n2024-0001,\xff\xfe,1st\n'
    resp = advisor_client.post('/grades/import', data={
        'file': (io.BytesIO(body), 'grades.csv'),
    }, content_type='multipart/form-data')
    assert resp.status_code == 400
    assert 'UTF-8' in resp.get_json()['error']

    resp = advisor_client.post('/grades/import', data={
        'file': (io.BytesIO(b'not a zip file'), 'grades.xlsx'),
    }, content_type='multipart/form-data')
    assert resp.status_code == 400


def test_new_grading_system_warns_when_none_is_active(admin_client):
    resp = admin_client.post('/admin/grading-systems', json={
        'name': 'Standard', 'written_work_percentage': 25,
        'performance_task_percentage': 50, 'quarterly_assessment_percentage': 25,
    })
    assert 'activate one before entering grades' in resp.get_json()['message']


def test_attendance_with_non_text_status_is_a_400(advisor_client, students):
    resp = advisor_client.post('/attendance', json={'student_id': students['g7a'].id, 'status': 1})
    assert resp.status_code == 400


# ========================================
# STUDENT PORTAL
# ========================================

def test_portal_shows_grades_and_recent_attendance(app, client, students, active_system):
    student = students['g7a']
    Grade.create(student, 'Science', '1st', _components(90, 90, 90), active_system.weights)
    Grade.create(student, 'Mathematics', '1st', _components(80, 80, 80), active_system.weights)
    Grade.create(student, 'Mathematics', '2nd', _components(70, 70, 70), active_system.weights)
    Grade.create(students['g7b'], 'Mathematics', '1st', _components(), active_system.weights)
    app.config['PORTAL_ATTENDANCE_LIMIT'] = 2
    for day in (2, 3, 4):
        Attendance.mark(student.id, date(2024, 9, day), 'present')

    resp = client.get('/portal/2024-0001')
    assert resp.status_code == 200
    data = resp.get_json()
    assert data['student']['student_id_no'] == '2024-0001'
    assert [(g['quarter'], g['subject']) for g in data['grades']] == [
        ('1st', 'Mathematics'), ('1st', 'Science'), ('2nd', 'Mathematics'),
    ]
    assert data['quarter_averages'] == {'1st': 85.0, '2nd': 70.0, '3rd': None, '4th': None}
    assert data['overall_average'] == 77.5
    assert data['overall_remarks'] == 'Fairly Satisfactory'
    assert [a['date'] for a in data['attendance']] == ['2024-09-04', '2024-09-03']


def test_portal_unknown_student_is_a_404(client, students):
    resp = client.get('/portal/2099-0000')
    assert resp.status_code == 404
    assert resp.get_json() == {'success': False, 'error': 'Student not found'}
