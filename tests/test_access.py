from collections import namedtuple

import pytest

from access import can_access_student, can_grade_subject, is_assigned_to, scope_students
from conftest import make_user
from models import Student

Person = namedtuple('Person', 'year_level section strand')
Assignment = namedtuple('Assignment', 'year_level section strand')


@pytest.mark.parametrize('student, assignment, expected', [
    (Person('11', 'A', 'stem'), Assignment('11', 'A', 'stem'), True),
    (Person('11', 'A', 'stem'), Assignment('11', 'A', 'abm'), False),
    (Person('11', 'A', 'stem'), Assignment('11', 'A', None), True),
    (Person('11', 'B', 'stem'), Assignment('11', 'A', 'stem'), False),
    (Person('7', 'A', None), Assignment('7', 'A', 'stem'), True),
    (Person('7', 'A', None), Assignment('8', 'A', None), False),
])
def test_is_assigned_to(student, assignment, expected):
    assert is_assigned_to(student, assignment) is expected


def test_admin_sees_every_student(app, admin_user, students):
    assert scope_students(Student.query, admin_user).count() == len(students)


def test_advisor_sees_only_assigned_sections(app, advisor_user, students):
    visible = {s.student_id_no for s in scope_students(Student.query, advisor_user)}
    assert visible == {students['g7a'].student_id_no, students['g11_stem'].student_id_no}


def test_query_filter_agrees_with_predicate(app, advisor_user, students):
    visible = {s.id for s in scope_students(Student.query, advisor_user)}
    for student in students.values():
        assert can_access_student(advisor_user, student) is (student.id in visible)


def test_advisor_without_assignments_sees_nobody(app, students):
    user = make_user('new.advisor@test.edu', 'advisor')
    assert scope_students(Student.query, user).count() == 0


def test_subject_restrictions(app, advisor_user, students):
    assert can_grade_subject(advisor_user, students['g7a'], 'Mathematics')
    assert not can_grade_subject(advisor_user, students['g7a'], 'English')
    # Empty subject list on the senior high assignment
    assert can_grade_subject(advisor_user, students['g11_stem'], 'Earth and Life Science')
    assert not can_grade_subject(advisor_user, students['g11_abm'], 'General Mathematics')
