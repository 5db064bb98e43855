import time
from dataclasses import fields as dataclass_fields, replace
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, Iterable, List, Mapping, Optional

from gradecalc.app_logger import get_logger
from gradecalc.backend_logic import (
    DEFAULT_IMPORT_UNITS,
    compute_final_grade,
    format_2dp,
    subject_fields_from_history,
    validate_subject,
    validate_target_gwa,
)
from gradecalc.errors import (
    GradeCalcError,
    IncompleteInputError,
    MalformedPersistedDataError,
    NotFoundError,
    OutOfRangeError,
)
from gradecalc.models import GWAGoal, GWASubject, HistoryRecord, PERIOD_FIELDS
from gradecalc.storage import (
    GOAL_KEY,
    HISTORY_KEY,
    HISTORY_LAYOUT_KEY,
    SUBJECTS_KEY,
    THEME_KEY,
    JsonStore,
)

logger = get_logger("repositories")


def now_timestamp() -> str:
    return datetime.now().strftime("%m/%d/%Y, %I:%M:%S %p")


class _RecordRepository:
    """
    Ordered collection of frozen records, written through to ``store`` under
    ``key`` on every mutation and read once on construction.
    """

    key = ""
    record_type = None
    prepend = False

    def __init__(self, store: JsonStore):
        self.store = store
        self._last_id = 0
        self._records = self._load()

    def _load(self) -> list:
        try:
            raw = self.store.read(self.key, [])
            if not isinstance(raw, list):
                raise MalformedPersistedDataError(self.key, "expected a list")
            records = []
            seen = set()
            for item in raw:
                try:
                    record = self._checked(self.record_type.from_dict(item))
                except (KeyError, TypeError, ValueError, ArithmeticError) as e:
                    raise MalformedPersistedDataError(self.key, f"bad record {item!r}: {e}") from e
                if record.id in seen:
                    logger.warning("dropping duplicate id %s in %s", record.id, self.key)
                    continue
                seen.add(record.id)
                records.append(record)
            return records
        except MalformedPersistedDataError as e:
            logger.warning("%s; starting with an empty collection", e)
            return []

    def reload(self) -> None:
        self._records = self._load()

    def _save(self) -> None:
        self.store.write(self.key, [r.to_dict() for r in self._records])

    def _next_id(self) -> int:
        # epoch milliseconds, bumped past anything already handed out
        existing = {r.id for r in self._records}
        candidate = max(int(time.time() * 1000), self._last_id + 1)
        while candidate in existing:
            candidate += 1
        self._last_id = candidate
        return candidate

    def _insert(self, record):
        if self.prepend:
            self._records.insert(0, record)
        else:
            self._records.append(record)
        self._save()
        logger.debug("created %s in %s", record.id, self.key)
        return record

    def _checked(self, record):
        """Enforce the record rules; raises a GradeCalcError subclass."""
        return record

    def _apply(self, record, fields: Dict[str, object]):
        return self._checked(replace(record, **fields))

    def _check_fields(self, fields: Dict[str, object]) -> None:
        known = {f.name for f in dataclass_fields(self.record_type)} - {"id"}
        unknown = sorted(set(fields) - known)
        if unknown:
            raise GradeCalcError(f"Unknown field(s) for {self.key}: {', '.join(unknown)}")

    def _index_of(self, record_id: int) -> int:
        for i, record in enumerate(self._records):
            if record.id == record_id:
                return i
        raise NotFoundError(record_id)

    def list(self) -> List:
        return list(self._records)

    def get(self, record_id: int):
        try:
            return self._records[self._index_of(record_id)]
        except NotFoundError:
            return None

    def update(self, record_id: int, **fields):
        """Overwrite the given fields; returns None if the id is unknown."""
        fields.pop("id", None)
        self._check_fields(fields)
        try:
            i = self._index_of(record_id)
        except NotFoundError as e:
            logger.debug("update skipped: %s", e)
            return None
        updated = self._apply(self._records[i], fields)
        self._records[i] = updated
        self._save()
        logger.debug("updated %s in %s", record_id, self.key)
        return updated

    def delete(self, record_id: int) -> bool:
        try:
            i = self._index_of(record_id)
        except NotFoundError as e:
            logger.debug("delete skipped: %s", e)
            return False
        del self._records[i]
        self._save()
        logger.debug("deleted %s from %s", record_id, self.key)
        return True

    def clear(self) -> None:
        self._records = []
        self._save()
        logger.info("cleared %s", self.key)

    def __len__(self) -> int:
        return len(self._records)


def _period_text(periods: Mapping[str, object]) -> Dict[str, str]:
    return {name: str(periods.get(name, "")).strip() for name in PERIOD_FIELDS}


def _final_grade_text(value) -> str:
    try:
        text = format_2dp(value)
    except (InvalidOperation, ValueError):
        raise IncompleteInputError("Final grade must be a number", ["finalGrade"]) from None
    grade = Decimal(text)
    if not grade.is_finite():
        raise IncompleteInputError("Final grade must be a number", ["finalGrade"])
    if grade < 0 or grade > 100:
        raise OutOfRangeError("Final grade must be between 0 and 100", ["finalGrade"])
    return text


class HistoryRepository(_RecordRepository):
    """Saved final-grade calculations, newest first."""

    key = HISTORY_KEY
    record_type = HistoryRecord
    prepend = True

    def _checked(self, record: HistoryRecord) -> HistoryRecord:
        compute_final_grade(record.periods())
        return replace(record, final_grade=_final_grade_text(record.final_grade))

    def create(self, periods: Mapping[str, object], final_grade, title: Optional[str] = None) -> HistoryRecord:
        record = self._checked(HistoryRecord(
            id=self._next_id(),
            final_grade=str(final_grade),
            timestamp=now_timestamp(),
            title=(title or "").strip() or "Untitled",
            **_period_text(periods),
        ))
        return self._insert(record)

    def _apply(self, record: HistoryRecord, fields: Dict[str, object]) -> HistoryRecord:
        fields = dict(fields)
        title = fields.pop("title", None)
        if title is not None and str(title).strip():
            fields["title"] = str(title).strip()
        for name in PERIOD_FIELDS:
            if name in fields:
                fields[name] = str(fields[name]).strip()
        fields["timestamp"] = now_timestamp()
        return self._checked(replace(record, **fields))

    def save(self, periods: Mapping[str, object], final_grade,
             title: Optional[str] = None, record_id: Optional[int] = None) -> HistoryRecord:
        """Update ``record_id`` in place when it exists, otherwise create a new record."""
        if record_id is not None and self.get(record_id) is not None:
            return self.update(record_id, final_grade=final_grade, title=title, **_period_text(periods))
        return self.create(periods, final_grade, title)


class SubjectRepository(_RecordRepository):
    """Subjects feeding the GWA, in insertion order."""

    key = SUBJECTS_KEY
    record_type = GWASubject
    prepend = False

    def _checked(self, record: GWASubject) -> GWASubject:
        name, units, grade = validate_subject(record.name, record.units, record.grade)
        return replace(record, name=name, units=units, grade=grade)

    def create(self, name, units, grade) -> GWASubject:
        name, units, grade = validate_subject(name, units, grade)
        return self._insert(GWASubject(id=self._next_id(), name=name, units=units, grade=grade))

    def import_from_history(self, record: HistoryRecord, units: int = DEFAULT_IMPORT_UNITS) -> GWASubject:
        return self.create(**subject_fields_from_history(record, units))


class GoalRepository:
    """The optional target-GWA goal."""

    key = GOAL_KEY

    def __init__(self, store: JsonStore):
        self.store = store
        self._goal = self._load()

    def _load(self) -> Optional[GWAGoal]:
        try:
            raw = self.store.read(GOAL_KEY)
            if raw is None:
                return None
            try:
                goal = GWAGoal.from_dict(raw)
                validate_target_gwa(goal.target_gwa)
            except (KeyError, TypeError, ValueError) as e:
                raise MalformedPersistedDataError(GOAL_KEY, str(e)) from e
            return goal
        except MalformedPersistedDataError as e:
            logger.warning("%s; ignoring stored goal", e)
            return None

    def reload(self) -> None:
        self._goal = self._load()

    def get(self) -> Optional[GWAGoal]:
        return self._goal

    def set(self, target_gwa) -> GWAGoal:
        self._goal = GWAGoal(target_gwa=validate_target_gwa(target_gwa), created_at=now_timestamp())
        self.store.write(GOAL_KEY, self._goal.to_dict())
        logger.info("goal set to %.2f", self._goal.target_gwa)
        return self._goal

    def clear(self) -> None:
        self._goal = None
        self.store.remove(GOAL_KEY)
        logger.info("goal cleared")


class Preferences:
    """Display preferences; not part of any calculation."""

    DEFAULTS = {THEME_KEY: "light", HISTORY_LAYOUT_KEY: "table"}

    def __init__(self, store: JsonStore):
        self.store = store

    def get(self, key: str) -> str:
        default = self.DEFAULTS.get(key, "")
        try:
            value = self.store.read(key, default)
        except MalformedPersistedDataError as e:
            logger.warning("%s; using default", e)
            return default
        return value if isinstance(value, str) else default

    def set(self, key: str, value: str) -> None:
        self.store.write(key, value)


def reload_on_change(store: JsonStore, repositories: Iterable) -> Callable[[], None]:
    """Reload each repository whenever ``store`` reports a write to its key.

    Returns the unsubscribe function.
    """
    by_key = {}
    for repo in repositories:
        by_key.setdefault(repo.key, []).append(repo)

    def _on_change(key: str) -> None:
        for repo in by_key.get(key, ()):
            repo.reload()

    return store.subscribe(_on_change)
