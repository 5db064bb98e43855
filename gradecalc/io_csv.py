from typing import Dict, List, Sequence

import pandas as pd

from gradecalc.backend_logic import validate_subject
from gradecalc.errors import GradeCalcError
from gradecalc.models import GWASubject, HistoryRecord

# ------------------------
# CSV helpers (UI-side)
# ------------------------

def _normalise_cols(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()
    df.columns = [str(c).strip().lower() for c in df.columns]
    # allow singular "unit" and "subject" for the name column
    if "unit" in df.columns and "units" not in df.columns:
        df = df.rename(columns={"unit": "units"})
    if "subject" in df.columns and "name" not in df.columns:
        df = df.rename(columns={"subject": "name"})
    return df

def read_csv_upload(uploaded_file) -> pd.DataFrame:
    df = pd.read_csv(uploaded_file)
    return _normalise_cols(df)

def validate_subjects_csv(df: pd.DataFrame) -> pd.DataFrame:
    required = {"name", "units", "grade"}
    missing = required - set(df.columns)
    if missing:
        raise ValueError(f"Missing columns: {sorted(missing)}. Expected: Name, Units, Grade.")
    out = df[["name", "units", "grade"]].copy()
    out = out.rename(columns={"name": "Name", "units": "Units", "grade": "Grade"})
    return out

def parse_subjects(df: pd.DataFrame) -> List[Dict[str, object]]:
    """
    Rows with blanks, units outside 1-6 or grades off the GWA scale are skipped.
    """
    rows = []
    for _, row in df.iterrows():
        name = row.get("Name")
        units = row.get("Units")
        grade = row.get("Grade")
        if pd.isna(name) or pd.isna(units) or pd.isna(grade):
            continue
        try:
            name, units, grade = validate_subject(name, units, grade)
        except GradeCalcError:
            continue
        rows.append({"name": name, "units": units, "grade": grade})
    return rows

def subjects_to_csv(subjects: Sequence[GWASubject]) -> str:
    df = pd.DataFrame(
        [{"Name": s.name, "Units": s.units, "Grade": f"{s.grade:.2f}"} for s in subjects],
        columns=["Name", "Units", "Grade"],
    )
    return df.to_csv(index=False)

def history_to_csv(records: Sequence[HistoryRecord]) -> str:
    df = pd.DataFrame(
        [
            {
                "Title": r.title,
                "Prelims": r.prelims,
                "Midterm": r.midterm,
                "Pre-Finals": r.prefinals,
                "Finals": r.finals,
                "Final Grade": r.final_grade,
                "Saved": r.timestamp,
            }
            for r in records
        ],
        columns=["Title", "Prelims", "Midterm", "Pre-Finals", "Finals", "Final Grade", "Saved"],
    )
    return df.to_csv(index=False)
