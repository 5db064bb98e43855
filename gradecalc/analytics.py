from typing import Dict, Optional, Sequence

import pandas as pd

from gradecalc.backend_logic import (
    PASSING_PERCENTAGE,
    REMARKS,
    academic_status,
    aggregate,
    get_remark,
    is_dean_lister,
    is_presidents_lister,
)
from gradecalc.models import GWASubject, HistoryRecord


def history_frame(records: Sequence[HistoryRecord]) -> pd.DataFrame:
    """History as a DataFrame with a numeric ``grade`` column and its remark."""
    df = pd.DataFrame([r.to_dict() for r in records],
                      columns=["id", "title", "prelims", "midterm", "prefinals",
                               "finals", "finalGrade", "timestamp"])
    df["grade"] = pd.to_numeric(df["finalGrade"], errors="coerce")
    df = df.dropna(subset=["grade"])
    df["remark"] = df["grade"].map(get_remark)
    return df


def history_stats(records: Sequence[HistoryRecord]) -> Dict[str, object]:
    """
    Best / worst / average final grade plus pass-fail counts.
    Empty history reports "N/A" everywhere.
    """
    grades = history_frame(records)["grade"]
    if grades.empty:
        return {
            "highest": "N/A",
            "lowest": "N/A",
            "average": "N/A",
            "pass_fail_ratio": "N/A",
            "passed": 0,
            "failed": 0,
            "total": 0,
        }

    passed = int((grades >= PASSING_PERCENTAGE).sum())
    failed = int(len(grades) - passed)
    return {
        "highest": f"{grades.max():.2f}",
        "lowest": f"{grades.min():.2f}",
        "average": f"{grades.mean():.2f}",
        "pass_fail_ratio": f"{passed}:{failed}",
        "passed": passed,
        "failed": failed,
        "total": int(len(grades)),
    }


def remark_distribution(records: Sequence[HistoryRecord]) -> pd.Series:
    """Number of saved calculations per remark, in scale order (zeros included)."""
    counts = history_frame(records)["remark"].value_counts()
    return counts.reindex(list(REMARKS), fill_value=0).astype(int)


def gwa_summary(subjects: Sequence[GWASubject]) -> Dict[str, Optional[object]]:
    summary = aggregate(subjects)
    if summary is None:
        return {
            "gwa": None,
            "total_units": 0,
            "status": None,
            "deans_list_eligible": False,
            "presidents_list_eligible": False,
        }
    return {
        "gwa": summary.gwa,
        "total_units": summary.total_units,
        "status": academic_status(summary.gwa, subjects),
        "deans_list_eligible": is_dean_lister(summary.gwa, subjects),
        "presidents_list_eligible": is_presidents_lister(summary.gwa, subjects),
    }


def subjects_frame(subjects: Sequence[GWASubject]) -> pd.DataFrame:
    df = pd.DataFrame([s.to_dict() for s in subjects], columns=["id", "name", "units", "grade"])
    df["weighted"] = df["grade"] * df["units"]
    return df
