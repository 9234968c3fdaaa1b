"""
grading.py - Grade Computation Engine
DepEd K-12 quarterly grading: weighted final grade and descriptive remarks.

Everything here is pure: plain values in, plain values out.
Persistence of weights lives in models.GradingSystem.
"""

import math
from collections import namedtuple

from errors import ValidationError


# ========================================
# QUARTERS
# ========================================

QUARTERS = ('1st', '2nd', '3rd', '4th')


def is_valid_quarter(quarter):
    return quarter in QUARTERS


def quarter_index(quarter):
    """Position of a quarter in the school year (0-based), used for ordering"""
    try:
        return QUARTERS.index(quarter)
    except ValueError:
        raise ValidationError(f"Quarter must be one of: {', '.join(QUARTERS)}")


# ========================================
# COMPONENTS & WEIGHTS
# ========================================

COMPONENT_FIELDS = ('written_work', 'performance_task', 'quarterly_assessment')

COMPONENT_LABELS = {
    'written_work': 'Written Work',
    'performance_task': 'Performance Task',
    'quarterly_assessment': 'Quarterly Assessment',
}

GradeComponents = namedtuple('GradeComponents', COMPONENT_FIELDS, defaults=(None, None, None))

# Percentages (0-100), not fractions
Weights = namedtuple('Weights', COMPONENT_FIELDS)

DEFAULT_WEIGHTS = Weights(25.0, 50.0, 25.0)

WEIGHT_TOLERANCE = 0.01

MIN_SCORE = 0.0
MAX_SCORE = 100.0


def _value(source, field):
    if source is None:
        return None
    if isinstance(source, dict):
        return source.get(field)
    return getattr(source, field, None)


def validate_weights(written_work, performance_task, quarterly_assessment):
    """
    Check that three percentages sum to 100 (within WEIGHT_TOLERANCE)

    Returns:
        bool: True if the weights form a usable grading system
    """
    try:
        total = float(written_work) + float(performance_task) + float(quarterly_assessment)
    except (TypeError, ValueError):
        return False
    return abs(total - 100) < WEIGHT_TOLERANCE


def ensure_valid_weights(written_work, performance_task, quarterly_assessment):
    """Raise ValidationError unless each percentage is in [0, 100] and they sum to 100"""
    for field, value in zip(COMPONENT_FIELDS, (written_work, performance_task, quarterly_assessment)):
        try:
            value = float(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{COMPONENT_LABELS[field]} percentage must be a number")
        if value < 0 or value > 100:
            raise ValidationError(f"{COMPONENT_LABELS[field]} percentage must be between 0 and 100")

    if not validate_weights(written_work, performance_task, quarterly_assessment):
        total = float(written_work) + float(performance_task) + float(quarterly_assessment)
        raise ValidationError(f"Percentages must sum to exactly 100%, got {round(total, 2)}%")


def round_half_up(value, places=2):
    """Round like the dashboard always has: round(value * 100) / 100 with ties going up"""
    scale = 10 ** places
    return math.floor(value * scale + 0.5) / scale


def compute_final_grade(components, weights=None):
    """
    Weighted final grade for one student, subject and quarter

    Args:
        components: GradeComponents, dict or any object with the three component attributes.
            Missing components count as 0.
        weights: Weights (percentages) or None for the default 25/50/25

    Returns:
        float: final grade rounded to 2 decimals

    Out-of-range scores are not rejected here; see validate_components().
    """
    weights = weights or DEFAULT_WEIGHTS

    total = 0.0
    for field in COMPONENT_FIELDS:
        score = _value(components, field) or 0
        weight = _value(weights, field) or 0
        total += float(score) * (float(weight) / 100)

    return round_half_up(total)


def parse_score(value, field='score'):
    """
    Parse a raw score from a form, JSON body or spreadsheet cell

    Returns:
        float or None: None for blank input

    Raises:
        ValidationError: non-numeric or infinite input
    """
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if value == '':
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{COMPONENT_LABELS.get(field, field)} must be a number")
    if not math.isfinite(number):
        raise ValidationError(f"{COMPONENT_LABELS.get(field, field)} must be a number")
    return number


def validate_components(components):
    """
    Range-check each present component against [0, 100]

    Returns:
        list: error messages, empty if every score is valid
    """
    errors = []
    for field in COMPONENT_FIELDS:
        score = _value(components, field)
        if score is None:
            continue
        if score < MIN_SCORE or score > MAX_SCORE:
            errors.append(f"{COMPONENT_LABELS[field]} must be between 0-100")
    return errors


# ========================================
# REMARKS
# ========================================

Remarks = namedtuple('Remarks', ['label', 'color_tier'])

OUTSTANDING = 'Outstanding'
VERY_SATISFACTORY = 'Very Satisfactory'
SATISFACTORY = 'Satisfactory'
FAIRLY_SATISFACTORY = 'Fairly Satisfactory'
DID_NOT_MEET_EXPECTATIONS = 'Did Not Meet Expectations'

# (lower bound inclusive, remarks), highest first
REMARKS_BANDS = (
    (90, Remarks(OUTSTANDING, 'green')),
    (85, Remarks(VERY_SATISFACTORY, 'blue')),
    (80, Remarks(SATISFACTORY, 'yellow')),
    (75, Remarks(FAIRLY_SATISFACTORY, 'orange')),
)

FAILING_REMARKS = Remarks(DID_NOT_MEET_EXPECTATIONS, 'red')

REMARKS_LABELS = tuple(remarks.label for _, remarks in REMARKS_BANDS) + (DID_NOT_MEET_EXPECTATIONS,)


def classify(final_grade):
    """
    Descriptive performance band for a final grade.
    Boundaries belong to the higher band: 90 is Outstanding, 89.99 is not.
    """
    for lower_bound, remarks in REMARKS_BANDS:
        if final_grade >= lower_bound:
            return remarks
    return FAILING_REMARKS


def remarks_for(final_grade):
    return classify(final_grade).label


def is_failing(final_grade, passing_grade=75):
    return final_grade is not None and final_grade < passing_grade
