import pytest

from app import create_app
from extensions import db, bcrypt
from models import Advisor, AdvisorAssignment, GradingSystem, Student, Subject, User


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def make_user(email, role, password='secret123', first_name='Test', last_name='User'):
    user = User(
        email=email,
        password=bcrypt.generate_password_hash(password).decode('utf-8'),
        role=role,
        first_name=first_name,
        last_name=last_name,
    )
    db.session.add(user)
    db.session.commit()
    return user


def make_student(student_id_no, year_level='7', section='A', strand=None,
                 first_name='Juan', last_name='Dela Cruz'):
    student = Student(
        student_id_no=student_id_no,
        student_lrn=f'LRN-{student_id_no}',
        first_name=first_name,
        last_name=last_name,
        year_level=year_level,
        section=section,
        strand=strand,
    )
    db.session.add(student)
    db.session.commit()
    return student


@pytest.fixture
def admin_user(app):
    return make_user('admin@test.edu', 'admin', first_name='Ada', last_name='Admin')


@pytest.fixture
def subjects(app):
    rows = [
        Subject(name='Mathematics', grade_level='7'),
        Subject(name='Science', grade_level='7'),
        Subject(name='English', grade_level='7'),
        Subject(name='General Mathematics', grade_level='11'),
        Subject(name='Earth and Life Science', grade_level='11'),
    ]
    db.session.add_all(rows)
    db.session.commit()
    return rows


@pytest.fixture
def advisor_user(app, subjects):
    """Advisor of Grade 7-A (Mathematics, Science) and Grade 11-A STEM (all subjects)"""
    user = make_user('advisor@test.edu', 'advisor', first_name='Maria', last_name='Santos')
    advisor = Advisor(user_id=user.id, employee_no='T-001', position='Teacher I')
    db.session.add(advisor)
    db.session.flush()

    junior = AdvisorAssignment(advisor_id=advisor.id, year_level='7', section='A')
    junior.set_subjects(['Mathematics', 'Science'])
    senior = AdvisorAssignment(advisor_id=advisor.id, year_level='11', section='A', strand='stem')
    senior.set_subjects([])
    db.session.add_all([junior, senior])
    db.session.commit()
    return user


@pytest.fixture
def students(app):
    return {
        'g7a': make_student('2024-0001', '7', 'A', first_name='Juan', last_name='Dela Cruz'),
        'g7b': make_student('2024-0002', '7', 'B', first_name='Pedro', last_name='Reyes'),
        'g11_stem': make_student('2024-0003', '11', 'A', 'stem', first_name='Ana', last_name='Garcia'),
        'g11_abm': make_student('2024-0004', '11', 'A', 'abm', first_name='Jose', last_name='Lopez'),
    }


@pytest.fixture
def active_system(app):
    system = GradingSystem.create('DepEd K-12 Standard', 25, 50, 25)
    return GradingSystem.activate(system.id)


def login(client, email, password='secret123'):
    return client.post('/auth/login', json={'email': email, 'password': password})


@pytest.fixture
def admin_client(client, admin_user):
    login(client, admin_user.email)
    return client


@pytest.fixture
def advisor_client(client, advisor_user):
    login(client, advisor_user.email)
    return client
