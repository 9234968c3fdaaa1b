"""
create_test_data.py - Populate Database with Test Data
Run this script to create sample advisors, students, subjects, grades and attendance.

Usage: python create_test_data.py
"""

import random
from datetime import date, timedelta

import grading
from create_admin import create_admin_account, ensure_default_grading_system
from extensions import db, bcrypt
from models import (
    Advisor, AdvisorAssignment, Attendance, Grade, GradeHistory, GradingSystem,
    Student, Subject, User
)

JUNIOR_HIGH_SUBJECTS = ['Filipino', 'English', 'Mathematics', 'Science', 'Araling Panlipunan', 'MAPEH']
SENIOR_HIGH_SUBJECTS = ['Oral Communication', 'General Mathematics', 'Earth and Life Science',
                        'Physical Education and Health', 'Empowerment Technologies']

ADVISORS = [
    {
        'email': 'maria.santos@gradesheet.edu',
        'first_name': 'Maria',
        'last_name': 'Santos',
        'employee_no': 'T-2024-001',
        'position': 'Teacher I',
        'assignment': {'year_level': '7', 'section': 'A', 'strand': None},
    },
    {
        'email': 'antonio.mendoza@gradesheet.edu',
        'first_name': 'Antonio',
        'last_name': 'Mendoza',
        'employee_no': 'T-2024-002',
        'position': 'Teacher III',
        'assignment': {'year_level': '11', 'section': 'A', 'strand': 'stem'},
    },
]

FIRST_NAMES = ['Juan', 'Maria', 'Pedro', 'Ana', 'Jose', 'Sofia', 'Miguel', 'Isabella', 'Carlos', 'Lucia']
LAST_NAMES = ['Dela Cruz', 'Santos', 'Reyes', 'Garcia', 'Lopez', 'Martinez', 'Gonzales', 'Perez']


def clear_data():
    """Remove everything except admin accounts"""
    Attendance.query.delete()
    GradeHistory.query.delete()
    Grade.query.delete()
    Student.query.delete()
    AdvisorAssignment.query.delete()
    Advisor.query.delete()
    User.query.filter_by(role='advisor').delete()
    Subject.query.delete()
    db.session.commit()


def create_subjects():
    subjects = []
    for level in ('7', '8', '9', '10'):
        subjects += [Subject(name=name, grade_level=level) for name in JUNIOR_HIGH_SUBJECTS]
    for level in ('11', '12'):
        subjects += [Subject(name=name, grade_level=level) for name in SENIOR_HIGH_SUBJECTS]
    db.session.add_all(subjects)
    db.session.commit()
    return subjects


def create_advisors():
    advisors = []
    for data in ADVISORS:
        user = User(
            email=data['email'],
            password=bcrypt.generate_password_hash('advisor123').decode('utf-8'),
            role='advisor',
            first_name=data['first_name'],
            last_name=data['last_name'],
        )
        db.session.add(user)
        db.session.flush()

        advisor = Advisor(user_id=user.id, employee_no=data['employee_no'], position=data['position'])
        db.session.add(advisor)
        db.session.flush()

        assignment = AdvisorAssignment(advisor_id=advisor.id, **data['assignment'])
        assignment.set_subjects([])
        db.session.add(assignment)
        advisors.append(advisor)

    db.session.commit()
    return advisors


def create_students(advisors, per_section=10, rng=random):
    students = []
    counter = 1
    for advisor in advisors:
        for assignment in advisor.assignments:
            for _ in range(per_section):
                students.append(Student(
                    student_id_no=f'2024-{str(counter).zfill(4)}',
                    student_lrn=str(100000000000 + counter),
                    first_name=rng.choice(FIRST_NAMES),
                    last_name=rng.choice(LAST_NAMES),
                    gender=rng.choice(['male', 'female']),
                    year_level=assignment.year_level,
                    section=assignment.section,
                    strand=assignment.strand,
                    advisor_id=advisor.id,
                ))
                counter += 1
    db.session.add_all(students)
    db.session.commit()
    return students


def create_grades(students, quarters=('1st', '2nd'), rng=random):
    weights = GradingSystem.active_weights()
    count = 0
    for student in students:
        names = SENIOR_HIGH_SUBJECTS if student.is_senior_high() else JUNIOR_HIGH_SUBJECTS
        # Some students slip between quarters so the risk dashboard has data
        base = rng.uniform(68, 95)
        for index, quarter in enumerate(quarters):
            level = base - (rng.uniform(0, 10) if index and base < 78 else 0)
            for subject in names:
                components = grading.GradeComponents(
                    written_work=round(min(100, max(50, rng.gauss(level, 5))), 2),
                    performance_task=round(min(100, max(50, rng.gauss(level, 5))), 2),
                    quarterly_assessment=round(min(100, max(50, rng.gauss(level, 6))), 2),
                )
                Grade.create(student, subject, quarter, components, weights, commit=False)
                count += 1
        db.session.commit()
    return count


def create_attendance(students, days=20, rng=random):
    today = date.today()
    count = 0
    for student in students:
        absent_rate = rng.choice([0.02, 0.05, 0.1, 0.3])
        for offset in range(days):
            day = today - timedelta(days=offset)
            if day.weekday() >= 5:
                continue
            roll = rng.random()
            status = 'absent' if roll < absent_rate else ('late' if roll < absent_rate + 0.05 else 'present')
            db.session.add(Attendance(student_id=student.id, date=day, status=status))
            count += 1
    db.session.commit()
    return count


def create_test_data(app):
    """Create comprehensive test data for GradeSheet"""
    with app.app_context():
        db.create_all()

        print("🗑️  Clearing existing data...")
        clear_data()

        admin, _ = create_admin_account()
        ensure_default_grading_system(created_by=admin.id)

        print("📚 Creating Subjects...")
        subjects = create_subjects()
        print(f"   ✅ Created {len(subjects)} subjects")

        print("👨‍🏫 Creating Advisors...")
        advisors = create_advisors()
        print(f"   ✅ Created {len(advisors)} advisors")

        print("👨‍🎓 Creating Students...")
        students = create_students(advisors)
        print(f"   ✅ Created {len(students)} students")

        print("✅ Creating Grades...")
        grade_count = create_grades(students)
        print(f"   ✅ Created {grade_count} grades")

        print("📅 Creating Attendance...")
        attendance_count = create_attendance(students)
        print(f"   ✅ Created {attendance_count} attendance records")

        print("\n" + "=" * 60)
        print("🎉 TEST DATA CREATION COMPLETE!")
        print("=" * 60)
        print("\n📋 LOGIN CREDENTIALS:\n")
        for data in ADVISORS:
            print(f"   {data['email']} / advisor123 (Grade {data['assignment']['year_level']}"
                  f"-{data['assignment']['section']})")
        print("=" * 60 + "\n")


if __name__ == '__main__':
    from app import create_app

    create_test_data(create_app('development'))
