"""Patient data models and age helpers."""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, field_validator

UNKNOWN_AGE: Literal["unknown"] = "unknown"

Age = int | Literal["unknown"]


class Patient(BaseModel):
    """Patient record as stored in the registry."""

    id: str
    name: str
    birth_date: date | None = None
    created_at: datetime | None = None

    class Config:
        frozen = True
        extra = "ignore"  # Ignore any additional columns from the store

    @field_validator("id", mode="before")
    @classmethod
    def validate_id(cls, v: Any) -> Any:
        """Accept numeric keys (bigint identity columns) as opaque ids."""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


@dataclass(frozen=True)
class NewPatient:
    """Validated payload for a patient insert."""

    name: str
    birth_date: date | None = None

    def as_row(self) -> dict[str, Any]:
        """Return the insert row, omitting an absent birth date."""
        row: dict[str, Any] = {"name": self.name}
        if self.birth_date is not None:
            row["birth_date"] = self.birth_date.isoformat()
        return row


def parse_iso_date(value: str | date | None) -> date | None:
    """Parse an ISO date (or ISO timestamp) string.

    Returns None for absent or unparsable input.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = value.strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def calc_age(birth_date: str | date | None, today: date | None = None) -> Age:
    """Calculate calendar age in whole years.

    Args:
        birth_date: ISO date string, date, or None
        today: Reference date (defaults to the local clock)

    Returns:
        Age in years, or "unknown" when the birth date is absent or unparsable
    """
    born = parse_iso_date(birth_date)
    if born is None:
        return UNKNOWN_AGE

    today = today or date.today()
    age = today.year - born.year
    if (today.month, today.day) < (born.month, born.day):
        age -= 1
    return age


def format_age(age: Age) -> str:
    """Render an age for display."""
    if age == UNKNOWN_AGE:
        return UNKNOWN_AGE
    return f"{age} year" if age == 1 else f"{age} years"
