from typing import Iterable


class GradeCalcError(ValueError):
    """Base class for everything the grade engine raises."""


class _FieldError(GradeCalcError):
    def __init__(self, message: str, fields: Iterable[str] = ()):
        super().__init__(message)
        self.fields = tuple(fields)


class IncompleteInputError(_FieldError):
    """A required value is missing or is not a number."""


class OutOfRangeError(_FieldError):
    """A value lies outside its allowed range."""


class MalformedPersistedDataError(GradeCalcError):
    """Stored JSON could not be parsed or has the wrong shape."""

    def __init__(self, key: str, reason: str):
        super().__init__(f"Stored data under '{key}' is malformed: {reason}")
        self.key = key


class NotFoundError(GradeCalcError):
    def __init__(self, record_id: int):
        super().__init__(f"No record with id {record_id}")
        self.record_id = record_id
