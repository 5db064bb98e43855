# tests/test_backend_logic.py
# Final grade computation, percentage/GWA classification, aggregation,
# academic status, honors and goal progress.

import pytest

from gradecalc.backend_logic import (
    GRADE_RANGES,
    GWA_SCALE,
    GoalProgress,
    academic_status,
    aggregate,
    celebration_transition,
    classify,
    compute_final_grade,
    get_gwa_remark,
    goal_progress,
    grade_result_payload,
    gwa_to_color_class,
    is_dean_lister,
    is_presidents_lister,
    percentage_to_gwa,
    remark_to_color_class,
    round_1dp_half_up,
    subject_fields_from_history,
    validate_period_grades,
    validate_subject,
    validate_target_gwa,
)
from gradecalc.errors import IncompleteInputError, OutOfRangeError
from gradecalc.models import GWAGoal, HistoryRecord


def periods(p, m, pf, f):
    return {"prelims": p, "midterm": m, "prefinals": pf, "finals": f}


# ------------------------
# Final grade calculator
# ------------------------
@pytest.mark.parametrize(
    "scores, expected",
    [
        ((75, 75, 75, 75), "75.00"),
        ((100, 100, 100, 100), "100.00"),
        ((60, 70, 80, 90), "78.00"),
        ((0, 0, 0, 0), "0.00"),
        (("85.5", "90", "88.25", "92"), "89.55"),
    ],
)
def test_compute_final_grade(scores, expected):
    assert compute_final_grade(periods(*scores)) == expected


def test_finals_weigh_double():
    assert compute_final_grade(periods(0, 0, 0, 100)) == "40.00"
    assert compute_final_grade(periods(100, 0, 0, 0)) == "20.00"


def test_rounding_is_half_up():
    # 0.2 * 0.025 = 0.005 exactly -> rounds up to 0.01
    assert compute_final_grade(periods("0.025", 0, 0, 0)) == "0.01"
    assert compute_final_grade(periods("0.075", 0, 0, 0)) == "0.02"


def test_text_with_whitespace_is_accepted():
    assert compute_final_grade(periods(" 75 ", "75", "75\n", "75")) == "75.00"


def test_missing_fields_raise_incomplete():
    with pytest.raises(IncompleteInputError) as exc:
        compute_final_grade({"prelims": "80", "midterm": "", "prefinals": None})
    assert exc.value.fields == ("midterm", "prefinals", "finals")


def test_non_numeric_is_incomplete():
    with pytest.raises(IncompleteInputError) as exc:
        compute_final_grade(periods("abc", 80, 80, 80))
    assert exc.value.fields == ("prelims",)


def test_out_of_range_names_fields():
    with pytest.raises(OutOfRangeError) as exc:
        compute_final_grade(periods(101, 80, -1, 80))
    assert exc.value.fields == ("prelims", "prefinals")


def test_validate_period_grades_reports_per_field():
    errors = validate_period_grades(periods("", "abc", "150", "90"))
    assert errors == {
        "prelims": "This field is required",
        "midterm": "Grade must be a number",
        "prefinals": "Grade must be between 0 and 100",
    }
    assert validate_period_grades(periods(1, 2, 3, 4)) == {}


# ------------------------
# Percentage classifier
# ------------------------
@pytest.mark.parametrize(
    "percentage, remark, gwa",
    [
        (97.5, "Excellent", "1.00"),
        (100, "Excellent", "1.00"),
        (97.49, "Very Good", "1.25"),
        (94.5, "Very Good", "1.25"),
        (91.5, "Very Good", "1.50"),
        (86.5, "Very Good", "1.75"),
        (86.49, "Satisfactory", "2.00"),
        (76.0, "Satisfactory", "2.25"),
        (75.99, "Satisfactory", "2.50"),
        (65.0, "Fair", "2.75"),
        (59.5, "Fair", "3.00"),
        (59.49, "Failed", "5.00"),
        (0, "Failed", "5.00"),
    ],
)
def test_classify_boundaries(percentage, remark, gwa):
    result = classify(percentage)
    assert result.remark == remark
    assert result.gwa == gwa


def test_classify_outside_zero_to_hundred():
    assert classify(105) == ("Excellent", "1.00")
    assert classify(-3) == ("Failed", "5.00")


def test_classify_between_printed_rows_takes_lower_row():
    assert classify(97.495).gwa == "1.25"


def test_classify_accepts_text_and_is_pure():
    assert classify("78.00") == classify(78.0)
    assert classify(88.1) == classify(88.1)


def test_percentage_to_gwa():
    assert percentage_to_gwa("92.00") == 1.50
    assert percentage_to_gwa(40) == 5.00


def test_every_remark_has_a_severity():
    tags = {remark_to_color_class(band.remark) for band in GRADE_RANGES}
    assert tags == {"success", "warning", "info", "error"}
    for gwa in GWA_SCALE:
        assert gwa_to_color_class(gwa) in {"success", "warning", "info", "error"}


def test_gwa_remarks():
    assert get_gwa_remark(1.00) == "Excellent"
    assert get_gwa_remark(1.6) == "Very Good"
    assert get_gwa_remark(2.50) == "Satisfactory"
    assert get_gwa_remark(3.00) == "Fair"
    assert get_gwa_remark(5.00) == "Failed"


def test_grade_result_payload():
    assert grade_result_payload("78.00") == {
        "finalGrade": "78.00",
        "remark": "Satisfactory",
        "colorTag": "warning",
    }


# ------------------------
# GWA aggregation
# ------------------------
def test_aggregate_empty_is_none():
    assert aggregate([]) is None


def test_aggregate_credit_weighted(make_subject):
    result = aggregate([make_subject(1.00, 3), make_subject(3.00, 3)])
    assert result.gwa == 2.00
    assert result.total_units == 6
    assert result.weighted_sum == 12.0


def test_aggregate_is_unrounded_and_order_independent(make_subject):
    subjects = [make_subject(1.25, 3), make_subject(2.00, 2), make_subject(1.50, 1)]
    forward = aggregate(subjects)
    backward = aggregate(list(reversed(subjects)))
    assert forward.gwa == pytest.approx((3.75 + 4.0 + 1.5) / 6)
    assert forward.gwa == pytest.approx(backward.gwa)


def test_aggregate_zero_units_is_none(make_subject):
    assert aggregate([make_subject(1.00, 0)]) is None


# ------------------------
# Academic status & honors
# ------------------------
def test_status_failed_subject_wins(make_subject):
    subjects = [make_subject(1.00, 6), make_subject(5.00, 1)]
    assert academic_status(aggregate(subjects).gwa, subjects) == "Failed"


def test_status_above_three_is_failed_without_failing_subject():
    assert academic_status(3.10, []) == "Failed"


@pytest.mark.parametrize(
    "gwa, status",
    [(1.00, "Honor Student"), (1.75, "Honor Student"), (1.76, "Passed"), (3.00, "Passed")],
)
def test_status_thresholds(make_subject, gwa, status):
    assert academic_status(gwa, [make_subject(2.00)]) == status


def test_honors_false_for_empty_subjects():
    assert is_dean_lister(1.00, []) is False
    assert is_presidents_lister(1.00, []) is False


def test_honors_eligible(make_subject):
    subjects = [make_subject(1.25), make_subject(1.75)]
    gwa = aggregate(subjects).gwa
    assert gwa == 1.50
    assert is_dean_lister(gwa, subjects)
    assert is_presidents_lister(gwa, subjects)


def test_honors_grade_floor(make_subject):
    subjects = [make_subject(1.00, 6), make_subject(2.25, 1)]
    gwa = aggregate(subjects).gwa
    assert gwa <= 1.50
    assert not is_dean_lister(gwa, subjects)
    assert not is_presidents_lister(gwa, subjects)


def test_honors_gwa_threshold(make_subject):
    subjects = [make_subject(1.75), make_subject(1.50)]
    assert not is_dean_lister(aggregate(subjects).gwa, subjects)


def test_dean_and_president_share_predicate(make_subject):
    cases = [
        (1.50, [make_subject(1.50)]),
        (1.25, [make_subject(1.00), make_subject(1.50)]),
        (1.40, [make_subject(5.00)]),
        (1.60, [make_subject(1.75)]),
    ]
    for gwa, subjects in cases:
        assert is_dean_lister(gwa, subjects) == is_presidents_lister(gwa, subjects)


# ------------------------
# Subjects & import bridge
# ------------------------
def test_validate_subject_normalises():
    assert validate_subject("  Calculus ", "3", "1.5") == ("Calculus", 3, 1.50)


@pytest.mark.parametrize("units", [0, 7, 2.5])
def test_validate_subject_units_range(units):
    with pytest.raises(OutOfRangeError):
        validate_subject("Calculus", units, 1.00)


def test_validate_subject_grade_must_be_on_scale():
    with pytest.raises(OutOfRangeError):
        validate_subject("Calculus", 3, 4.00)


def test_validate_subject_requires_name():
    with pytest.raises(IncompleteInputError):
        validate_subject("   ", 3, 1.00)


def test_subject_fields_from_history():
    record = HistoryRecord(1, "90", "90", "90", "95", "93.00", "now", "Physics")
    assert subject_fields_from_history(record) == {"name": "Physics", "units": 3, "grade": 1.50}
    blank = HistoryRecord(2, "50", "50", "50", "50", "50.00", "now", "")
    assert subject_fields_from_history(blank)["name"] == "Imported Subject"


# ------------------------
# Goal progress
# ------------------------
def test_goal_progress_none_without_goal_or_gwa(make_subject):
    assert goal_progress(None, 1.50, [make_subject(1.50)]) is None
    assert goal_progress(GWAGoal(1.75), None, []) is None


def test_goal_progress_from_worst():
    progress = goal_progress(GWAGoal(1.75), 5.00, [])
    assert progress.percentage == 0
    assert progress.achieved is False


@pytest.mark.parametrize("current", [1.75, 1.50, 1.00])
def test_goal_achieved_at_or_below_target(make_subject, current):
    progress = goal_progress(GWAGoal(1.75), current, [make_subject(current)])
    assert progress.achieved is True
    assert progress.percentage == 100
    assert progress.remaining == 0
    assert progress.required_average is None


def test_goal_progress_interpolates_and_projects(make_subject):
    subjects = [make_subject(2.00, 3), make_subject(2.50, 3)]
    current = aggregate(subjects).gwa
    progress = goal_progress(GWAGoal(2.00), current, subjects)
    # (5 - 2.25) / (5 - 2) = 91.666...
    assert progress.percentage == round_1dp_half_up(275 / 3)
    assert progress.remaining == 0.25
    # 2.00 * (6 + 15) - 13.5 = 28.5 over 15 units
    assert progress.required_average == 1.90


def test_goal_projection_is_clamped(make_subject):
    subjects = [make_subject(5.00, 6)] * 5
    progress = goal_progress(GWAGoal(1.00), 5.00, subjects)
    assert progress.required_average == 1.00


def test_validate_target_gwa():
    assert validate_target_gwa("1.75") == 1.75
    with pytest.raises(OutOfRangeError):
        validate_target_gwa(0.5)
    with pytest.raises(IncompleteInputError):
        validate_target_gwa("soon")


# ------------------------
# Celebration edge detector
# ------------------------
def _progress(achieved):
    return GoalProgress(100.0 if achieved else 50.0, achieved, 0.0, 1.75, 1.75)


def test_celebration_fires_once_on_rising_edge():
    state = celebration_transition(False, _progress(False))
    assert state == (False, False)
    state = celebration_transition(state.achieved, _progress(True))
    assert state == (True, True)
    state = celebration_transition(state.achieved, _progress(True))
    assert state == (True, False)


def test_celebration_resets_when_goal_cleared_or_lost():
    assert celebration_transition(True, None) == (False, False)
    state = celebration_transition(True, _progress(False))
    assert state == (False, False)
    assert celebration_transition(state.achieved, _progress(True)).newly_achieved
