from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Dict, Mapping, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from gradecalc.errors import GradeCalcError, IncompleteInputError, OutOfRangeError
from gradecalc.models import GWAGoal, GWASubject, HistoryRecord, PERIOD_FIELDS

# ------------------------
# Grade scale tables
# ------------------------
class GradeBand(NamedTuple):
    min: float
    max: float
    gwa: str
    remark: str
    label: str


# Ordered best to worst; first matching row wins
GRADE_RANGES: Tuple[GradeBand, ...] = (
    GradeBand(97.5, 100.0, "1.00", "Excellent", "97.50 - 100"),
    GradeBand(94.5, 97.49, "1.25", "Very Good", "94.50 - 97.49"),
    GradeBand(91.5, 94.49, "1.50", "Very Good", "91.50 - 94.49"),
    GradeBand(86.5, 91.49, "1.75", "Very Good", "86.50 - 91.49"),
    GradeBand(81.5, 86.49, "2.00", "Satisfactory", "81.50 - 86.49"),
    GradeBand(76.0, 81.49, "2.25", "Satisfactory", "76.00 - 81.49"),
    GradeBand(70.5, 75.99, "2.50", "Satisfactory", "70.50 - 75.99"),
    GradeBand(65.0, 70.49, "2.75", "Fair", "65.00 - 70.49"),
    GradeBand(59.5, 64.99, "3.00", "Fair", "59.50 - 64.99"),
    GradeBand(0.0, 59.49, "5.00", "Failed", "0.00 - 59.49"),
)

GWA_SCALE: Tuple[float, ...] = tuple(float(band.gwa) for band in GRADE_RANGES)
REMARKS = ("Excellent", "Very Good", "Satisfactory", "Fair", "Failed")

REMARK_COLORS = {
    "Excellent": "success",
    "Very Good": "success",
    "Satisfactory": "warning",
    "Fair": "info",
    "Failed": "error",
}

STATUS_COLORS = {
    "Honor Student": "success",
    "Passed": "info",
    "Needs Improvement": "warning",
    "Failed": "error",
}

PERIOD_WEIGHTS = {"prelims": 20, "midterm": 20, "prefinals": 20, "finals": 40}
PASSING_PERCENTAGE = 59.5

BEST_GWA = 1.00
WORST_GWA = 5.00
FAILING_GRADE = 5.00
PASSING_MAX_GWA = 3.00
HONOR_STUDENT_MAX_GWA = 1.75
HONOR_LIST_MAX_GWA = 1.50
HONOR_LIST_SUBJECT_FLOOR = 2.00

MIN_UNITS = 1
MAX_UNITS = 6
DEFAULT_IMPORT_UNITS = 3
PROJECTION_UNITS = 15


# ------------------------
# Rounding
# ------------------------
def round_1dp_half_up(x: float) -> float:
    return float(Decimal(str(x)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))

def round_2dp_half_up(x: float) -> float:
    return float(format_2dp(x))

def format_2dp(x) -> str:
    return str(Decimal(str(x)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


# ------------------------
# Final grade calculator
# ------------------------
def _score(periods: Mapping[str, object], field: str) -> Decimal:
    raw = periods.get(field)
    text = "" if raw is None else str(raw).strip()
    if not text:
        raise IncompleteInputError("This field is required", [field])
    try:
        value = Decimal(text)
    except InvalidOperation:
        raise IncompleteInputError("Grade must be a number", [field]) from None
    if not value.is_finite():
        raise IncompleteInputError("Grade must be a number", [field])
    if value < 0 or value > 100:
        raise OutOfRangeError("Grade must be between 0 and 100", [field])
    return value


def validate_period_grades(periods: Mapping[str, object]) -> Dict[str, str]:
    """Per-field error messages; an empty dict means every period is usable."""
    errors = {}
    for field in PERIOD_FIELDS:
        try:
            _score(periods, field)
        except GradeCalcError as e:
            errors[field] = str(e)
    return errors


def compute_final_grade(periods: Mapping[str, object]) -> str:
    """
    periods: mapping with prelims, midterm, prefinals, finals (text or numbers)
    returns: weighted final percentage as text with exactly 2 decimals

    Prelims, midterm and pre-finals weigh 20% each, finals 40%.
    Rounding is half-up on the exact decimal value.
    """
    scores = {}
    incomplete = []
    out_of_range = []
    for field in PERIOD_FIELDS:
        try:
            scores[field] = _score(periods, field)
        except IncompleteInputError:
            incomplete.append(field)
        except OutOfRangeError:
            out_of_range.append(field)

    if incomplete:
        raise IncompleteInputError(
            f"Missing or non-numeric grade for: {', '.join(incomplete)}", incomplete
        )
    if out_of_range:
        raise OutOfRangeError(
            f"Grade must be between 0 and 100 for: {', '.join(out_of_range)}", out_of_range
        )

    total = sum(scores[field] * PERIOD_WEIGHTS[field] for field in PERIOD_FIELDS)
    return format_2dp(total / 100)


# ------------------------
# Percentage classifier
# ------------------------
class Classification(NamedTuple):
    remark: str
    gwa: str


def _band_for(percentage) -> GradeBand:
    value = float(percentage)
    for band in GRADE_RANGES:
        if value >= band.min:
            return band
    # below zero (or NaN)
    return GRADE_RANGES[-1]


def classify(percentage) -> Classification:
    band = _band_for(percentage)
    return Classification(band.remark, band.gwa)

def get_remark(percentage) -> str:
    return _band_for(percentage).remark

def percentage_to_gwa(percentage) -> float:
    return float(_band_for(percentage).gwa)

def remark_to_color_class(remark: str) -> str:
    return REMARK_COLORS.get(remark, "info")


def get_gwa_remark(gwa: float) -> str:
    """Remark for a GWA value; values between buckets take the next worse bucket."""
    for band in GRADE_RANGES:
        if gwa <= float(band.gwa):
            return band.remark
    return GRADE_RANGES[-1].remark

def gwa_to_color_class(gwa: float) -> str:
    return REMARK_COLORS[get_gwa_remark(gwa)]

def status_to_color_class(status: str) -> str:
    return STATUS_COLORS.get(status, "info")


def grade_result_payload(final_grade: str) -> Dict[str, str]:
    remark = get_remark(final_grade)
    return {
        "finalGrade": final_grade,
        "remark": remark,
        "colorTag": remark_to_color_class(remark),
    }


# ------------------------
# GWA aggregation
# ------------------------
class AggregateGWA(NamedTuple):
    gwa: float
    total_units: int
    weighted_sum: float


def aggregate(subjects: Sequence[GWASubject]) -> Optional[AggregateGWA]:
    """
    Credit-weighted mean of subject grades, unrounded.
    Returns None when there are no subjects or no units.
    """
    if len(subjects) == 0:
        return None

    gc = np.array([[s.grade, s.units] for s in subjects], dtype=float)
    grades = gc[:, 0]
    units = gc[:, 1]
    total_units = float(units.sum())
    if total_units == 0:
        return None

    weighted_sum = float(np.dot(grades, units))
    return AggregateGWA(weighted_sum / total_units, int(total_units), weighted_sum)


# ------------------------
# Academic status & honors
# ------------------------
def _has_failed_subject(subjects: Sequence[GWASubject]) -> bool:
    return any(s.grade == FAILING_GRADE for s in subjects)


def academic_status(gwa: float, subjects: Sequence[GWASubject]) -> str:
    if _has_failed_subject(subjects):
        return "Failed"
    # only reachable if the scale gains grades between 3.00 and 5.00
    elif gwa > PASSING_MAX_GWA:
        return "Failed"
    elif gwa <= HONOR_STUDENT_MAX_GWA:
        return "Honor Student"
    elif gwa <= PASSING_MAX_GWA:
        return "Passed"
    else:
        return "Needs Improvement"


def _honor_list_eligible(gwa: float, subjects: Sequence[GWASubject]) -> bool:
    if len(subjects) == 0:
        return False
    if gwa > HONOR_LIST_MAX_GWA:
        return False
    if _has_failed_subject(subjects):
        return False
    return all(s.grade <= HONOR_LIST_SUBJECT_FLOOR for s in subjects)


def is_dean_lister(gwa: float, subjects: Sequence[GWASubject]) -> bool:
    """Dean's List: term GWA of 1.50 or better, no subject below 2.00."""
    return _honor_list_eligible(gwa, subjects)


def is_presidents_lister(gwa: float, subjects: Sequence[GWASubject]) -> bool:
    """President's List: cumulative GWA of 1.50 or better, no subject below 2.00.

    Terms are not tracked, so this is the same check as the Dean's List.
    """
    return _honor_list_eligible(gwa, subjects)


# ------------------------
# Subject input
# ------------------------
def validate_subject(name, units, grade) -> Tuple[str, int, float]:
    """Normalise subject form input; raises IncompleteInputError / OutOfRangeError."""
    name = "" if name is None else str(name).strip()
    if not name:
        raise IncompleteInputError("Subject name is required", ["name"])

    try:
        units_value = float(units)
    except (TypeError, ValueError):
        raise IncompleteInputError("Units must be a whole number", ["units"]) from None
    if not units_value.is_integer() or not MIN_UNITS <= units_value <= MAX_UNITS:
        raise OutOfRangeError(f"Units must be between {MIN_UNITS} and {MAX_UNITS}", ["units"])

    try:
        grade_value = float(grade)
    except (TypeError, ValueError):
        raise IncompleteInputError("Grade must be a number", ["grade"]) from None
    for allowed in GWA_SCALE:
        if abs(grade_value - allowed) < 1e-9:
            return name, int(units_value), allowed
    scale = ", ".join(f"{g:.2f}" for g in sorted(GWA_SCALE))
    raise OutOfRangeError(f"Grade must be one of {scale}", ["grade"])


def subject_fields_from_history(record: HistoryRecord, units: int = DEFAULT_IMPORT_UNITS) -> Dict[str, object]:
    """Convert a saved percentage calculation into GWA subject fields."""
    return {
        "name": record.title or "Imported Subject",
        "units": units,
        "grade": percentage_to_gwa(record.final_grade),
    }


# ------------------------
# Goal progress
# ------------------------
def minimal_forward_average_for_target_mean(target_mean,
                                            credits_outstanding,
                                            current_mean,
                                            credits_completed):
    Ca = credits_completed
    Cr = credits_outstanding
    Ma = current_mean

    if Cr == 0:
        return float('nan')

    x = (target_mean * (Ca + Cr) - Ma * Ca) / Cr
    return x


@dataclass(frozen=True)
class GoalProgress:
    percentage: float
    achieved: bool
    remaining: float
    target_gwa: float
    current_gwa: float
    # average GWA needed over the next PROJECTION_UNITS units; None once achieved
    required_average: Optional[float] = None


def validate_target_gwa(target) -> float:
    try:
        value = float(target)
    except (TypeError, ValueError):
        raise IncompleteInputError("Target GWA must be a number", ["targetGWA"]) from None
    if not BEST_GWA <= value <= WORST_GWA:
        raise OutOfRangeError(
            f"Target GWA must be between {BEST_GWA:.2f} and {WORST_GWA:.2f}", ["targetGWA"]
        )
    return value


def goal_progress(goal: Optional[GWAGoal],
                  current_gwa: Optional[float],
                  subjects: Sequence[GWASubject]) -> Optional[GoalProgress]:
    """
    Progress toward a target GWA (lower is better).

    Progress is the share of the distance from 5.00 down to the target that
    the current GWA has covered. The projection assumes PROJECTION_UNITS more
    units and solves for the average grade they need.
    """
    if goal is None or current_gwa is None:
        return None

    target = float(goal.target_gwa)
    if current_gwa <= target:
        return GoalProgress(100.0, True, 0.0, target, current_gwa)

    span = WORST_GWA - target
    raw = ((WORST_GWA - current_gwa) / span) * 100 if span > 0 else 0.0
    percentage = round_1dp_half_up(min(max(raw, 0.0), 100.0))

    summary = aggregate(subjects)
    total_units = summary.total_units if summary else 0
    needed = minimal_forward_average_for_target_mean(
        target_mean=target,
        credits_outstanding=PROJECTION_UNITS,
        current_mean=current_gwa,
        credits_completed=total_units,
    )
    needed = min(max(needed, BEST_GWA), WORST_GWA)

    return GoalProgress(
        percentage=percentage,
        achieved=False,
        remaining=round_2dp_half_up(current_gwa - target),
        target_gwa=target,
        current_gwa=current_gwa,
        required_average=round_2dp_half_up(needed),
    )


class CelebrationState(NamedTuple):
    achieved: bool
    newly_achieved: bool


def celebration_transition(previous_achieved: bool,
                           progress: Optional[GoalProgress]) -> CelebrationState:
    """Edge detector: newly_achieved is True only when achieved goes False -> True."""
    achieved = progress is not None and progress.achieved
    return CelebrationState(achieved, achieved and not previous_achieved)
