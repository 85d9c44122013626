"""Dashboard state and API data models."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel

from app.models.patient import Age, Patient, calc_age, format_age


class OperationState(str, Enum):
    """Lifecycle of a single dashboard operation."""

    IDLE = "idle"
    LOADING = "loading"
    ERROR = "error"
    READY = "ready"


@dataclass(frozen=True)
class DashboardSnapshot:
    """Values committed by a successful dashboard load."""

    patients: tuple[Patient, ...] = ()
    total_patients: int = 0
    total_visits: int = 0
    refreshed_at: datetime | None = None


@dataclass
class PatientForm:
    """State of the "new patient" form."""

    open: bool = False
    name: str = ""
    birth_date: str = ""

    def clear(self) -> None:
        """Reset the form to its closed, empty state."""
        self.open = False
        self.name = ""
        self.birth_date = ""


@dataclass(frozen=True)
class DashboardView:
    """Read-only view of the controller state."""

    snapshot: DashboardSnapshot
    load_state: OperationState
    save_state: OperationState
    error: str | None
    form: PatientForm = field(default_factory=PatientForm)

    @property
    def loading(self) -> bool:
        return self.load_state is OperationState.LOADING

    @property
    def saving(self) -> bool:
        return self.save_state is OperationState.LOADING


class CreatePatientRequest(BaseModel):
    """Request model for the patient creation endpoint."""

    name: str = ""
    birth_date: str | None = None


class PatientResponse(BaseModel):
    """A patient as shown on the dashboard."""

    id: str
    name: str
    birth_date: date | None
    created_at: datetime | None
    age: Age
    age_display: str

    @classmethod
    def from_patient(cls, patient: Patient, today: date | None = None) -> "PatientResponse":
        age = calc_age(patient.birth_date, today)
        return cls(
            id=patient.id,
            name=patient.name,
            birth_date=patient.birth_date,
            created_at=patient.created_at,
            age=age,
            age_display=format_age(age),
        )


class FormResponse(BaseModel):
    """Response model for the new patient form state."""

    open: bool
    name: str
    birth_date: str


class DashboardResponse(BaseModel):
    """Response model for the dashboard endpoints."""

    total_patients: int
    total_visits: int
    patients: list[PatientResponse]
    loading: bool
    saving: bool
    load_state: OperationState
    save_state: OperationState
    error: str | None
    form: FormResponse
    refreshed_at: datetime | None

    @classmethod
    def from_view(cls, view: DashboardView) -> "DashboardResponse":
        today = date.today()
        return cls(
            total_patients=view.snapshot.total_patients,
            total_visits=view.snapshot.total_visits,
            patients=[PatientResponse.from_patient(p, today) for p in view.snapshot.patients],
            loading=view.loading,
            saving=view.saving,
            load_state=view.load_state,
            save_state=view.save_state,
            error=view.error,
            form=FormResponse(open=view.form.open, name=view.form.name, birth_date=view.form.birth_date),
            refreshed_at=view.snapshot.refreshed_at,
        )


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    timestamp: datetime
    version: str
