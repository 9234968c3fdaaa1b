"""
importers.py - Bulk Grade Import
Reads CSV/XLSX grade sheets, validates every row and inserts the valid
ones in small batches. Also builds the CSV template and grade exports.
"""

import csv
import io
import logging
from collections import namedtuple
from zipfile import BadZipFile

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from sqlalchemy.exc import SQLAlchemyError

import grading
from access import can_grade_subject
from config import Config
from errors import GradebookError, ValidationError
from extensions import db
from models import Grade, Student

logger = logging.getLogger(__name__)

IMPORT_COLUMNS = (
    'student_id_no', 'student_name', 'subject', 'quarter',
    'written_work', 'performance_task', 'quarterly_assessment',
    'final_grade', 'remarks',
)

REQUIRED_COLUMNS = ('student_id_no', 'subject', 'quarter')

ImportResult = namedtuple('ImportResult', ['total', 'successful', 'failed', 'errors'])


class ImportRow:
    """One data row of an uploaded grade sheet"""

    def __init__(self, row_num, data):
        self.row_num = row_num
        self.data = data
        self.student = None
        self.components = {}
        self.final_grade = None
        self.errors = []

    @property
    def key(self):
        return (self.data.get('student_id_no'), self.data.get('subject'), self.data.get('quarter'))

    @property
    def is_valid(self):
        return not self.errors

    def error_dict(self):
        return {'row': self.row_num, 'student_id_no': self.data.get('student_id_no'),
                'errors': self.errors}


def allowed_file(filename):
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in Config.GRADE_IMPORT_EXTENSIONS


def _cell_text(value):
    if value is None:
        return ''
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


# ========================================
# READING
# ========================================

def _read_csv(stream):
    text = stream.read()
    if isinstance(text, bytes):
        try:
            text = text.decode('utf-8-sig')
        except UnicodeDecodeError:
            raise ValidationError('The file could not be read as a UTF-8 CSV file')
    reader = csv.DictReader(io.StringIO(text, newline=None))
    header = [h.strip() for h in (reader.fieldnames or [])]
    rows = []
    for row_num, row in enumerate(reader, start=2):
        rows.append((row_num, {(k or '').strip(): v for k, v in row.items()}))
    return header, rows


def _read_xlsx(stream):
    try:
        wb = load_workbook(filename=io.BytesIO(stream.read()), read_only=True, data_only=True)
    except (BadZipFile, InvalidFileException, KeyError):
        raise ValidationError('The file could not be read as an Excel workbook')
    try:
        sheet = wb.worksheets[0]
        rows_iter = sheet.iter_rows(values_only=True)
        header_row = next(rows_iter, None) or ()
        header = [_cell_text(h) for h in header_row]

        rows = []
        for row_num, values in enumerate(rows_iter, start=2):
            if all(v is None or _cell_text(v) == '' for v in values):
                continue
            rows.append((row_num, dict(zip(header, values))))
        return header, rows
    finally:
        wb.close()


def read_rows(filename, stream):
    """
    Parse an uploaded grade sheet into (row number, {column: text}) pairs

    Raises:
        ValidationError: unsupported or unreadable file, missing columns, empty or oversized sheet
    """
    if not filename or not allowed_file(filename):
        raise ValidationError('Please upload a CSV or Excel (.xlsx) file')

    if filename.rsplit('.', 1)[1].lower() == 'xlsx':
        header, rows = _read_xlsx(stream)
    else:
        header, rows = _read_csv(stream)

    missing = [c for c in REQUIRED_COLUMNS if c not in header]
    if missing:
        raise ValidationError(f"Missing required columns: {', '.join(missing)}")
    if not rows:
        raise ValidationError('The file has no data rows')
    if len(rows) > Config.IMPORT_MAX_ROWS:
        raise ValidationError(f"Too many rows: at most {Config.IMPORT_MAX_ROWS} per import")

    cleaned = []
    for row_num, row in rows:
        cleaned.append((row_num, {c: _cell_text(row.get(c)) for c in IMPORT_COLUMNS}))
    return cleaned


# ========================================
# VALIDATION
# ========================================

def validate_rows(rows, user=None):
    """
    Check every row and resolve its student.
    Invalid rows keep their error messages; nothing is written here.
    """
    ids = {data['student_id_no'] for _, data in rows if data['student_id_no']}
    students = {}
    if ids:
        for student in Student.query.filter(Student.student_id_no.in_(ids)).all():
            students[student.student_id_no] = student

    seen = set()
    checked = []
    for row_num, data in rows:
        item = ImportRow(row_num, data)
        checked.append(item)

        missing = [c for c in REQUIRED_COLUMNS if not data.get(c)]
        if missing:
            item.errors.append(f"Missing required fields: {', '.join(missing)}")
            continue

        if not grading.is_valid_quarter(data['quarter']):
            item.errors.append(
                f"Invalid quarter '{data['quarter']}' (use {', '.join(grading.QUARTERS)})"
            )

        for field in grading.COMPONENT_FIELDS:
            try:
                item.components[field] = grading.parse_score(data.get(field), field)
            except ValidationError as e:
                item.errors.append(e.message)
        if len(item.components) == len(grading.COMPONENT_FIELDS):
            item.errors.extend(grading.validate_components(item.components))

        try:
            item.final_grade = grading.parse_score(data.get('final_grade'), 'final_grade')
        except ValidationError:
            item.errors.append('Final grade must be a number')
        if item.final_grade is not None and not 0 <= item.final_grade <= 100:
            item.errors.append('Final grade must be between 0-100')

        item.student = students.get(data['student_id_no'])
        if item.student is None:
            item.errors.append(f"Student {data['student_id_no']} not found")
        elif user is not None and not can_grade_subject(user, item.student, data['subject']):
            item.errors.append(f"You are not assigned to grade {data['subject']} for this student")

        if item.key in seen:
            item.errors.append('Duplicate entry in file for this student, subject and quarter')
        seen.add(item.key)

        if item.student is not None and grading.is_valid_quarter(data['quarter']) and \
                Grade.exists(item.student.id, data['subject'], data['quarter']):
            item.errors.append('Grade already exists for this student, subject and quarter')

    return checked


# ========================================
# IMPORT
# ========================================

def _insert_batch(batch, weights, graded_by):
    for item in batch:
        Grade.create(
            item.student, item.data['subject'], item.data['quarter'], item.components, weights,
            final_grade=item.final_grade, remarks=item.data.get('remarks') or None,
            graded_by=graded_by, commit=False,
        )
    db.session.commit()


def import_grades(rows, weights, user=None, batch_size=None):
    """
    Validate and insert grade rows

    Valid rows go in batches of batch_size, one commit per batch. A batch
    that fails is rolled back and all of its rows count as failed; batches
    committed before it stay.

    Returns:
        ImportResult
    """
    batch_size = batch_size or Config.IMPORT_BATCH_SIZE
    graded_by = user.id if user is not None else None

    checked = validate_rows(rows, user)
    errors = [item.error_dict() for item in checked if not item.is_valid]
    valid = [item for item in checked if item.is_valid]

    successful = 0
    failed = len(errors)
    for start in range(0, len(valid), batch_size):
        batch = valid[start:start + batch_size]
        try:
            _insert_batch(batch, weights, graded_by)
            successful += len(batch)
        except (GradebookError, SQLAlchemyError) as e:
            db.session.rollback()
            logger.warning("Grade import batch starting at row %d failed: %s", batch[0].row_num, e)
            failed += len(batch)
            for item in batch:
                errors.append({'row': item.row_num, 'student_id_no': item.data.get('student_id_no'),
                               'errors': [f"Batch insert failed: {e}"]})

    errors.sort(key=lambda err: err['row'])
    logger.info("Grade import finished: %d successful, %d failed", successful, failed)
    return ImportResult(total=len(checked), successful=successful, failed=failed, errors=errors)


def import_file(filename, stream, weights, user=None):
    return import_grades(read_rows(filename, stream), weights, user=user)


# ========================================
# TEMPLATE & EXPORT
# ========================================

def template_csv():
    """CSV template for the bulk grade import"""
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(IMPORT_COLUMNS)
    writer.writerow(['2024-0001', 'Juan Dela Cruz', 'Mathematics', '1st', 85, 88, 90, '', ''])
    writer.writerow(['2024-0002', 'Maria Santos', 'Mathematics', '1st', 92, 95, 89, '', ''])
    return output.getvalue()


def grades_to_csv(grades):
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(IMPORT_COLUMNS)
    for grade in grades:
        writer.writerow([
            grade.student.student_id_no,
            grade.student.get_full_name(),
            grade.subject,
            grade.quarter,
            '' if grade.written_work is None else grade.written_work,
            '' if grade.performance_task is None else grade.performance_task,
            '' if grade.quarterly_assessment is None else grade.quarterly_assessment,
            '' if grade.final_grade is None else f"{grade.final_grade:.2f}",
            grade.remarks or '',
        ])
    return output.getvalue()
