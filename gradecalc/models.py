from dataclasses import dataclass, field
from typing import Any, Dict, Mapping

PERIOD_FIELDS = ("prelims", "midterm", "prefinals", "finals")


@dataclass(frozen=True)
class HistoryRecord:
    """One saved final-grade calculation.

    Period scores are kept as the text the user typed; ``final_grade`` is
    always a 2-decimal string.
    """

    id: int
    prelims: str
    midterm: str
    prefinals: str
    finals: str
    final_grade: str
    timestamp: str
    title: str = "Untitled"

    def periods(self) -> Dict[str, str]:
        return {name: getattr(self, name) for name in PERIOD_FIELDS}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "prelims": self.prelims,
            "midterm": self.midterm,
            "prefinals": self.prefinals,
            "finals": self.finals,
            "finalGrade": self.final_grade,
            "timestamp": self.timestamp,
            "title": self.title,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "HistoryRecord":
        return cls(
            id=int(data["id"]),
            prelims=str(data["prelims"]),
            midterm=str(data["midterm"]),
            prefinals=str(data["prefinals"]),
            finals=str(data["finals"]),
            final_grade=str(data["finalGrade"]),
            timestamp=str(data.get("timestamp", "")),
            title=str(data.get("title") or "Untitled"),
        )


@dataclass(frozen=True)
class GWASubject:
    id: int
    name: str
    units: int
    grade: float

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "units": self.units, "grade": self.grade}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GWASubject":
        return cls(
            id=int(data["id"]),
            name=str(data["name"]),
            units=int(data["units"]),
            grade=float(data["grade"]),
        )


@dataclass(frozen=True)
class GWAGoal:
    target_gwa: float
    created_at: str = field(default="")

    def to_dict(self) -> Dict[str, Any]:
        return {"targetGWA": self.target_gwa, "createdAt": self.created_at}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GWAGoal":
        return cls(target_gwa=float(data["targetGWA"]), created_at=str(data.get("createdAt", "")))

