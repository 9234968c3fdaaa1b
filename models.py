"""
models.py - Database Models for GradeSheet
DepEd K-12 quarterly grading with admin-configurable grading systems
"""

import json
import logging
from datetime import datetime

from flask_login import UserMixin
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

import grading
from config import Config
from errors import (
    ActiveConfigDeletionError, ConsistencyError, DuplicateGradeError,
    DuplicateNameError, NotFoundError, ValidationError
)
from extensions import db

logger = logging.getLogger(__name__)

ROLES = ('admin', 'advisor')


class User(UserMixin, db.Model):
    """
    Base User Model - Authentication for admins and advisors
    """
    __tablename__ = 'user'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False, default='advisor')  # 'admin', 'advisor'
    first_name = db.Column(db.String(100), nullable=False)
    middle_name = db.Column(db.String(100), nullable=True)
    last_name = db.Column(db.String(100), nullable=False, default='')
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Relationships
    advisor_profile = db.relationship('Advisor', backref='user', uselist=False, cascade='all, delete-orphan')

    def __repr__(self):
        return f'<User {self.email} ({self.role})>'

    def is_admin(self):
        return self.role == 'admin'

    def is_advisor(self):
        return self.role == 'advisor'

    def get_full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'role': self.role,
            'first_name': self.first_name,
            'middle_name': self.middle_name,
            'last_name': self.last_name,
            'full_name': self.get_full_name(),
        }


class Advisor(db.Model):
    """
    Advisor Profile - Employment details for advisor accounts
    """
    __tablename__ = 'advisor'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, unique=True)

    employee_no = db.Column(db.String(50), unique=True, nullable=True, index=True)
    position = db.Column(db.String(100), nullable=True)
    contact_number = db.Column(db.String(30), nullable=True)
    gender = db.Column(db.String(10), nullable=True)
    years_of_service = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    assignments = db.relationship(
        'AdvisorAssignment', backref='advisor', cascade='all, delete-orphan',
        order_by='AdvisorAssignment.year_level'
    )

    def __repr__(self):
        return f'<Advisor {self.employee_no} - {self.user.get_full_name() if self.user else "?"}>'

    def to_dict(self, include_assignments=True):
        data = {
            'id': self.id,
            'user_id': self.user_id,
            'email': self.user.email if self.user else None,
            'full_name': self.user.get_full_name() if self.user else None,
            'employee_no': self.employee_no,
            'position': self.position,
            'contact_number': self.contact_number,
            'gender': self.gender,
            'years_of_service': self.years_of_service,
        }
        if include_assignments:
            data['assignments'] = [a.to_dict() for a in self.assignments]
        return data


class AdvisorAssignment(db.Model):
    """
    Advisor Assignment - One section (and optional strand) an advisor handles,
    with the subjects they grade there
    """
    __tablename__ = 'advisor_assignment'
    __table_args__ = (
        db.UniqueConstraint('advisor_id', 'year_level', 'section', 'strand',
                            name='uq_advisor_assignment'),
    )

    id = db.Column(db.Integer, primary_key=True)
    advisor_id = db.Column(db.Integer, db.ForeignKey('advisor.id'), nullable=False, index=True)
    year_level = db.Column(db.String(2), nullable=False)
    section = db.Column(db.String(50), nullable=False)
    strand = db.Column(db.String(10), nullable=True)  # Senior high only

    # JSON list of subject names, e.g. ["Math", "Science"]
    # Empty list = every subject of the section
    subjects = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        strand = f" {self.strand.upper()}" if self.strand else ""
        return f'<AdvisorAssignment Grade {self.year_level}-{self.section}{strand}>'

    def get_subjects(self):
        if self.subjects:
            try:
                return json.loads(self.subjects)
            except json.JSONDecodeError:
                return []
        return []

    def set_subjects(self, subject_names):
        """Store subject names, validated against the active subjects of this grade level"""
        names = [s.strip() for s in (subject_names or []) if s and s.strip()]
        if names:
            valid = {s.name for s in Subject.for_grade_level(self.year_level)}
            invalid = [n for n in names if n not in valid]
            if invalid:
                raise ValidationError(
                    f"Invalid subjects for Grade {self.year_level}: {', '.join(invalid)}"
                )
        self.subjects = json.dumps(sorted(set(names)))

    def covers_subject(self, subject):
        subjects = self.get_subjects()
        return not subjects or subject in subjects

    def to_dict(self):
        return {
            'id': self.id,
            'advisor_id': self.advisor_id,
            'year_level': self.year_level,
            'section': self.section,
            'strand': self.strand,
            'subjects': self.get_subjects(),
        }


class Student(db.Model):
    """
    Student - Learner record (junior high 7-10, senior high 11-12)
    """
    __tablename__ = 'student'

    id = db.Column(db.Integer, primary_key=True)

    # Identification
    student_id_no = db.Column(db.String(50), unique=True, nullable=False, index=True)
    student_lrn = db.Column(db.String(20), unique=True, nullable=False)

    # Basic Information
    first_name = db.Column(db.String(100), nullable=False)
    middle_name = db.Column(db.String(100), nullable=True)
    last_name = db.Column(db.String(100), nullable=False)
    gender = db.Column(db.String(10), nullable=True)
    birth_date = db.Column(db.Date, nullable=True)
    birth_place = db.Column(db.String(200), nullable=True)
    address = db.Column(db.String(300), nullable=True)
    contact_number = db.Column(db.String(30), nullable=True)
    guardian_name = db.Column(db.String(200), nullable=True)
    parent_contact_no = db.Column(db.String(30), nullable=True)

    # Academic Information
    year_level = db.Column(db.String(2), nullable=False, index=True)
    section = db.Column(db.String(50), nullable=False)
    strand = db.Column(db.String(10), nullable=True)
    advisor_id = db.Column(db.Integer, db.ForeignKey('advisor.id'), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    grades = db.relationship('Grade', backref='student', lazy='dynamic', cascade='all, delete-orphan')
    attendance = db.relationship('Attendance', backref='student', lazy='dynamic', cascade='all, delete-orphan')

    REQUIRED_FIELDS = ('student_id_no', 'student_lrn', 'first_name', 'last_name', 'year_level', 'section')
    EDITABLE_FIELDS = REQUIRED_FIELDS + (
        'middle_name', 'gender', 'birth_place', 'address', 'contact_number',
        'guardian_name', 'parent_contact_no', 'strand',
    )

    def __repr__(self):
        return f'<Student {self.student_id_no} - {self.get_full_name()}>'

    def get_full_name(self):
        return f"{self.first_name} {self.last_name}"

    def is_senior_high(self):
        return self.year_level in Config.SENIOR_HIGH_YEAR_LEVELS

    def apply_fields(self, data):
        """
        Copy and validate editable fields from a request payload

        Raises:
            ValidationError: missing required field or unknown year level, strand, gender
        """
        for field in self.EDITABLE_FIELDS:
            if field not in data:
                continue
            value = data.get(field)
            if isinstance(value, str):
                value = value.strip() or None
            setattr(self, field, value)

        if 'birth_date' in data:
            raw = data.get('birth_date')
            if raw:
                try:
                    self.birth_date = datetime.strptime(raw, '%Y-%m-%d').date()
                except (TypeError, ValueError):
                    raise ValidationError('Birth date must be YYYY-MM-DD')
            else:
                self.birth_date = None

        missing = [f for f in self.REQUIRED_FIELDS if not getattr(self, f)]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        self.year_level = str(self.year_level)
        if self.year_level not in Config.YEAR_LEVELS:
            raise ValidationError(f"Year level must be one of: {', '.join(Config.YEAR_LEVELS)}")

        if self.strand:
            self.strand = self.strand.lower()
            if self.strand not in Config.STRANDS:
                raise ValidationError(f"Strand must be one of: {', '.join(Config.STRANDS)}")

        if self.gender:
            self.gender = self.gender.lower()
            if self.gender not in Config.GENDERS:
                raise ValidationError(f"Gender must be one of: {', '.join(Config.GENDERS)}")

    def to_dict(self):
        return {
            'id': self.id,
            'student_id_no': self.student_id_no,
            'student_lrn': self.student_lrn,
            'first_name': self.first_name,
            'middle_name': self.middle_name,
            'last_name': self.last_name,
            'full_name': self.get_full_name(),
            'gender': self.gender,
            'birth_date': self.birth_date.isoformat() if self.birth_date else None,
            'birth_place': self.birth_place,
            'address': self.address,
            'contact_number': self.contact_number,
            'guardian_name': self.guardian_name,
            'parent_contact_no': self.parent_contact_no,
            'year_level': self.year_level,
            'section': self.section,
            'strand': self.strand,
            'advisor_id': self.advisor_id,
        }


class Subject(db.Model):
    """
    Subject - Curriculum subject offered at one grade level
    """
    __tablename__ = 'subject'
    __table_args__ = (
        db.UniqueConstraint('name', 'grade_level', name='uq_subject_per_grade_level'),
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    grade_level = db.Column(db.String(2), nullable=False, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<Subject {self.name} (Grade {self.grade_level})>'

    @staticmethod
    def for_grade_level(grade_level, include_inactive=False):
        query = Subject.query.filter_by(grade_level=str(grade_level))
        if not include_inactive:
            query = query.filter_by(is_active=True)
        return query.order_by(Subject.name).all()

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'grade_level': self.grade_level,
            'is_active': self.is_active,
        }


class GradingSystem(db.Model):
    """
    Grading System - Named component weights (percentages)

    Exactly one row is active at a time. The partial unique index makes a
    second active row impossible at the storage layer; activate() switches
    the active row inside one transaction.
    """
    __tablename__ = 'grading_system'
    __table_args__ = (
        db.Index(
            'uq_grading_system_single_active', 'is_active', unique=True,
            sqlite_where=db.text('is_active = 1'),
            postgresql_where=db.text('is_active'),
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), unique=True, nullable=False)
    description = db.Column(db.Text, nullable=True)
    written_work_percentage = db.Column(db.Float, nullable=False)
    performance_task_percentage = db.Column(db.Float, nullable=False)
    quarterly_assessment_percentage = db.Column(db.Float, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=False)

    created_by = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        active = ' *active*' if self.is_active else ''
        return f'<GradingSystem {self.name} {self.weights_label()}{active}>'

    @property
    def weights(self):
        return grading.Weights(
            self.written_work_percentage,
            self.performance_task_percentage,
            self.quarterly_assessment_percentage,
        )

    def weights_label(self):
        return '/'.join(f"{w:g}" for w in self.weights)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'written_work_percentage': self.written_work_percentage,
            'performance_task_percentage': self.performance_task_percentage,
            'quarterly_assessment_percentage': self.quarterly_assessment_percentage,
            'is_active': self.is_active,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

    # === LIFECYCLE ===

    @staticmethod
    def _clean_name(name):
        name = (name or '').strip()
        if not name:
            raise ValidationError('System name is required')
        return name

    @staticmethod
    def get_or_404(system_id):
        system = db.session.get(GradingSystem, system_id)
        if system is None:
            raise NotFoundError('Grading system not found')
        return system

    @staticmethod
    def create(name, written_work, performance_task, quarterly_assessment,
               description=None, created_by=None):
        """
        Create a new, inactive grading system

        Raises:
            ValidationError: blank name or percentages not summing to 100
            DuplicateNameError: name already used
        """
        name = GradingSystem._clean_name(name)
        grading.ensure_valid_weights(written_work, performance_task, quarterly_assessment)

        if GradingSystem.query.filter_by(name=name).first():
            raise DuplicateNameError('A grading system with this name already exists')

        system = GradingSystem(
            name=name,
            description=(description or '').strip() or None,
            written_work_percentage=float(written_work),
            performance_task_percentage=float(performance_task),
            quarterly_assessment_percentage=float(quarterly_assessment),
            is_active=False,
            created_by=created_by,
        )
        db.session.add(system)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise DuplicateNameError('A grading system with this name already exists')

        logger.info("Created grading system %r (%s)", system.name, system.weights_label())
        return system

    def update(self, name=None, written_work=None, performance_task=None,
               quarterly_assessment=None, description=None):
        """Edit name, description or weights; the weights are re-validated as a whole"""
        new_name = GradingSystem._clean_name(name) if name is not None else self.name
        ww = self.written_work_percentage if written_work is None else written_work
        pt = self.performance_task_percentage if performance_task is None else performance_task
        qa = self.quarterly_assessment_percentage if quarterly_assessment is None else quarterly_assessment
        grading.ensure_valid_weights(ww, pt, qa)

        duplicate = GradingSystem.query.filter(
            GradingSystem.name == new_name,
            GradingSystem.id != self.id
        ).first()
        if duplicate:
            raise DuplicateNameError('A grading system with this name already exists')

        self.name = new_name
        self.written_work_percentage = float(ww)
        self.performance_task_percentage = float(pt)
        self.quarterly_assessment_percentage = float(qa)
        if description is not None:
            self.description = description.strip() or None

        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise DuplicateNameError('A grading system with this name already exists')

        logger.info("Updated grading system %r (%s)", self.name, self.weights_label())
        return self

    @staticmethod
    def activate(system_id):
        """
        Make one grading system the active one.
        Deactivation of the others and activation of the target commit together.
        """
        system = GradingSystem.get_or_404(system_id)

        try:
            GradingSystem.query.filter(
                GradingSystem.id != system.id,
                GradingSystem.is_active.is_(True)
            ).update({'is_active': False, 'updated_at': datetime.utcnow()}, synchronize_session=False)
            db.session.flush()

            system.is_active = True
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("Failed to activate grading system id=%s", system_id)
            raise

        # Other instances in the session may still say is_active=True
        db.session.expire_all()
        logger.info("Activated grading system %r", system.name)
        return system

    @staticmethod
    def delete(system_id):
        system = GradingSystem.get_or_404(system_id)
        if system.is_active:
            raise ActiveConfigDeletionError()

        db.session.delete(system)
        db.session.commit()
        logger.info("Deleted grading system %r", system.name)

    @staticmethod
    def get_active():
        """
        The one active grading system

        Raises:
            ConsistencyError: zero or several systems are flagged active
        """
        active = GradingSystem.query.filter_by(is_active=True).all()
        if len(active) != 1:
            logger.error("Grading system consistency check failed: %d active systems", len(active))
            raise ConsistencyError(
                f"Expected exactly one active grading system, found {len(active)}"
            )
        return active[0]

    @staticmethod
    def active_weights():
        """Weights of the active system; the DepEd defaults only on a fresh install with no systems"""
        if GradingSystem.query.count() == 0:
            return grading.DEFAULT_WEIGHTS
        return GradingSystem.get_active().weights


def _clean_remarks(remarks):
    """Stripped remarks text, or None when blank"""
    if remarks is None:
        return None
    if not isinstance(remarks, str):
        raise ValidationError('Remarks must be text')
    return remarks.strip() or None


class Grade(db.Model):
    """
    Grade - One student's quarterly grade in one subject

    final_grade and remarks are derived from the components unless the
    matching *_overridden flag is set.
    """
    __tablename__ = 'grade'
    __table_args__ = (
        db.UniqueConstraint('student_id', 'subject', 'quarter', name='uq_grade_student_subject_quarter'),
        db.Index('ix_grade_quarter_final', 'quarter', 'final_grade'),
    )

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey('student.id'), nullable=False, index=True)
    subject = db.Column(db.String(200), nullable=False)
    quarter = db.Column(db.String(3), nullable=False)  # '1st', '2nd', '3rd', '4th'

    # Component scores (0-100)
    written_work = db.Column(db.Float, nullable=True)
    performance_task = db.Column(db.Float, nullable=True)
    quarterly_assessment = db.Column(db.Float, nullable=True)

    # Derived values
    final_grade = db.Column(db.Float, nullable=True)
    remarks = db.Column(db.String(200), nullable=True)

    # Manual overrides
    final_grade_overridden = db.Column(db.Boolean, nullable=False, default=False)
    remarks_overridden = db.Column(db.Boolean, nullable=False, default=False)
    override_reason = db.Column(db.Text, nullable=True)

    # Metadata
    graded_by = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<Grade Student:{self.student_id} {self.subject} {self.quarter} Grade:{self.final_grade}>'

    def get_components(self):
        return grading.GradeComponents(self.written_work, self.performance_task, self.quarterly_assessment)

    def set_components(self, components):
        """
        Replace the three component scores

        Raises:
            ValidationError: any score outside 0-100
        """
        values = {}
        for field in grading.COMPONENT_FIELDS:
            raw = components.get(field) if isinstance(components, dict) else getattr(components, field)
            values[field] = grading.parse_score(raw, field)

        errors = grading.validate_components(values)
        if errors:
            raise ValidationError('; '.join(errors))

        for field, value in values.items():
            setattr(self, field, value)

    def computed_grade(self, weights):
        return grading.compute_final_grade(self.get_components(), weights)

    def recompute(self, weights):
        """Refresh derived values; overridden values are left alone"""
        computed = self.computed_grade(weights)
        if not self.final_grade_overridden:
            self.final_grade = computed
        if not self.remarks_overridden:
            self.remarks = grading.remarks_for(self.final_grade)
        return computed

    def override_final_grade(self, value, reason=None):
        value = grading.parse_score(value, 'final_grade')
        if value is None:
            raise ValidationError('Final grade is required')
        if value < grading.MIN_SCORE or value > grading.MAX_SCORE:
            raise ValidationError('Final grade must be between 0-100')

        self.final_grade_overridden = True
        self.final_grade = grading.round_half_up(value)
        self.override_reason = reason
        if not self.remarks_overridden:
            self.remarks = grading.remarks_for(self.final_grade)

    def override_remarks(self, remarks):
        remarks = _clean_remarks(remarks)
        if not remarks:
            raise ValidationError('Remarks cannot be empty')
        self.remarks_overridden = True
        self.remarks = remarks

    def clear_overrides(self, weights):
        """Drop both overrides and go back to the computed values"""
        self.final_grade_overridden = False
        self.remarks_overridden = False
        self.override_reason = None
        self.recompute(weights)

    def snapshot(self):
        """Audited values, used for grade history"""
        return {
            'written_work': self.written_work,
            'performance_task': self.performance_task,
            'quarterly_assessment': self.quarterly_assessment,
            'final_grade': self.final_grade,
            'remarks': self.remarks,
        }

    def to_dict(self):
        data = {
            'id': self.id,
            'student_id': self.student_id,
            'subject': self.subject,
            'quarter': self.quarter,
            'final_grade_overridden': self.final_grade_overridden,
            'remarks_overridden': self.remarks_overridden,
            'override_reason': self.override_reason,
            'color_tier': grading.classify(self.final_grade).color_tier if self.final_grade is not None else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
        data.update(self.snapshot())
        return data

    # === LIFECYCLE ===

    @staticmethod
    def exists(student_id, subject, quarter):
        return Grade.query.filter_by(
            student_id=student_id, subject=subject, quarter=quarter
        ).first() is not None

    @staticmethod
    def create(student, subject, quarter, components, weights,
               final_grade=None, remarks=None, graded_by=None, commit=True):
        """
        Create one grade record

        Args:
            student: Student the grade belongs to
            subject: subject name
            quarter: '1st', '2nd', '3rd' or '4th'
            components: dict/GradeComponents with the three raw scores
            weights: grading.Weights used for the final grade
            final_grade: precomputed final grade; kept as an override when it differs
            remarks: explicit remarks; kept as an override when it differs
            commit: False to leave the transaction open (bulk import batches)

        Raises:
            ValidationError: missing student/subject, bad quarter or scores
            DuplicateGradeError: (student, subject, quarter) already graded
        """
        if student is None:
            raise ValidationError('Student is required')
        subject = (subject or '').strip()
        if not subject:
            raise ValidationError('Subject is required')
        if not grading.is_valid_quarter(quarter):
            raise ValidationError(f"Quarter must be one of: {', '.join(grading.QUARTERS)}")
        remarks = _clean_remarks(remarks)

        if Grade.exists(student.id, subject, quarter):
            raise DuplicateGradeError(
                f"A {quarter} quarter grade in {subject} already exists for {student.get_full_name()}"
            )

        grade = Grade(student_id=student.id, subject=subject, quarter=quarter, graded_by=graded_by)
        grade.set_components(components)
        computed = grade.recompute(weights)

        if final_grade is not None and grading.round_half_up(float(final_grade)) != computed:
            grade.override_final_grade(final_grade, reason='Precomputed final grade')
        if remarks and remarks != grade.remarks:
            grade.override_remarks(remarks)

        db.session.add(grade)
        try:
            db.session.flush()
        except IntegrityError:
            db.session.rollback()
            raise DuplicateGradeError(
                f"A {quarter} quarter grade in {subject} already exists for {student.get_full_name()}"
            )

        GradeHistory.record('INSERT', grade, changed_by=graded_by, reason='Grade created')
        if commit:
            db.session.commit()
        return grade

    def apply_update(self, data, weights, changed_by=None):
        """
        Update components and/or overrides from a request payload, then recompute.
        Last write wins; there is no version check.
        """
        old = self.snapshot()

        if any(field in data for field in grading.COMPONENT_FIELDS):
            components = {f: data.get(f, getattr(self, f)) for f in grading.COMPONENT_FIELDS}
            self.set_components(components)

        if data.get('clear_overrides'):
            self.clear_overrides(weights)
        else:
            self.recompute(weights)
            if data.get('final_grade') is not None:
                self.override_final_grade(data['final_grade'], data.get('override_reason'))
            if data.get('remarks'):
                self.override_remarks(data['remarks'])

        self.graded_by = changed_by or self.graded_by
        GradeHistory.record('UPDATE', self, old=old, changed_by=changed_by,
                            reason=data.get('change_reason') or 'Grade modified')
        db.session.commit()
        return self

    def delete(self, changed_by=None):
        GradeHistory.record('DELETE', self, old=self.snapshot(), changed_by=changed_by, reason='Grade deleted')
        db.session.delete(self)
        db.session.commit()


class GradeHistory(db.Model):
    """
    Grade History - Audit trail for every grade insert, update and delete
    """
    __tablename__ = 'grade_history'

    id = db.Column(db.Integer, primary_key=True)
    grade_id = db.Column(db.Integer, db.ForeignKey('grade.id', ondelete='SET NULL'), nullable=True, index=True)
    student_id = db.Column(db.Integer, db.ForeignKey('student.id', ondelete='CASCADE'), nullable=True, index=True)
    subject = db.Column(db.String(200), nullable=False)
    quarter = db.Column(db.String(3), nullable=False)

    # Previous values (null for new records)
    old_written_work = db.Column(db.Float, nullable=True)
    old_performance_task = db.Column(db.Float, nullable=True)
    old_quarterly_assessment = db.Column(db.Float, nullable=True)
    old_final_grade = db.Column(db.Float, nullable=True)
    old_remarks = db.Column(db.String(200), nullable=True)

    # New values (null for deletes)
    new_written_work = db.Column(db.Float, nullable=True)
    new_performance_task = db.Column(db.Float, nullable=True)
    new_quarterly_assessment = db.Column(db.Float, nullable=True)
    new_final_grade = db.Column(db.Float, nullable=True)
    new_remarks = db.Column(db.String(200), nullable=True)

    action_type = db.Column(db.String(10), nullable=False, index=True)  # 'INSERT', 'UPDATE', 'DELETE'
    changed_by = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    changed_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    change_reason = db.Column(db.Text, nullable=True)

    def __repr__(self):
        return f'<GradeHistory {self.action_type} Grade:{self.grade_id} at {self.changed_at}>'

    @staticmethod
    def record(action_type, grade, old=None, changed_by=None, reason=None):
        entry = GradeHistory(
            grade_id=grade.id,
            student_id=grade.student_id,
            subject=grade.subject,
            quarter=grade.quarter,
            action_type=action_type,
            changed_by=changed_by,
            change_reason=reason,
        )
        if old:
            for field, value in old.items():
                setattr(entry, f'old_{field}', value)
        if action_type != 'DELETE':
            for field, value in grade.snapshot().items():
                setattr(entry, f'new_{field}', value)
        db.session.add(entry)
        return entry

    def to_dict(self):
        fields = ('written_work', 'performance_task', 'quarterly_assessment', 'final_grade', 'remarks')
        return {
            'id': self.id,
            'grade_id': self.grade_id,
            'student_id': self.student_id,
            'subject': self.subject,
            'quarter': self.quarter,
            'action_type': self.action_type,
            'changed_by': self.changed_by,
            'changed_at': self.changed_at.isoformat() if self.changed_at else None,
            'change_reason': self.change_reason,
            'old': {f: getattr(self, f'old_{f}') for f in fields},
            'new': {f: getattr(self, f'new_{f}') for f in fields},
        }


class Attendance(db.Model):
    """
    Attendance - One status per student per day
    """
    __tablename__ = 'attendance'
    __table_args__ = (
        db.UniqueConstraint('student_id', 'date', name='uq_attendance_student_date'),
        db.Index('ix_attendance_student_date_status', 'student_id', 'date', 'status'),
    )

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey('student.id'), nullable=False)
    date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(10), nullable=False)  # 'present', 'absent', 'late', 'excused'
    remarks = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<Attendance Student:{self.student_id} {self.date} {self.status}>'

    @staticmethod
    def mark(student_id, on_date, status, remarks=None):
        """Insert or update the student's status for the day"""
        status = status.strip().lower() if isinstance(status, str) else ''
        remarks = _clean_remarks(remarks)
        if status not in Config.ATTENDANCE_STATUSES:
            raise ValidationError(f"Status must be one of: {', '.join(Config.ATTENDANCE_STATUSES)}")

        record = Attendance.query.filter_by(student_id=student_id, date=on_date).first()
        if record is None:
            record = Attendance(student_id=student_id, date=on_date)
            db.session.add(record)

        record.status = status
        record.remarks = remarks
        db.session.commit()
        return record

    @staticmethod
    def status_counts(query):
        """Count rows per status for an Attendance query"""
        counts = {status: 0 for status in Config.ATTENDANCE_STATUSES}
        rows = query.with_entities(Attendance.status, func.count(Attendance.id)) \
            .group_by(Attendance.status).all()
        for status, count in rows:
            counts[status] = count
        return counts

    def to_dict(self):
        return {
            'id': self.id,
            'student_id': self.student_id,
            'date': self.date.isoformat(),
            'status': self.status,
            'remarks': self.remarks,
        }
