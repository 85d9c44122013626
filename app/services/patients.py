"""Patient store interface and in-memory implementation."""

from datetime import UTC, date, datetime
from typing import Protocol

from cuid2 import cuid_wrapper

from app.exceptions import StoreError
from app.models.patient import NewPatient, Patient
from app.utils.logging import get_logger

logger = get_logger(__name__)

cuid = cuid_wrapper()


class PatientStore(Protocol):
    """Interface for the remote patient registry."""

    async def list_recent_patients(self, limit: int) -> list[Patient]:
        """List the most recently created patients.

        Args:
            limit: Maximum number of patients to return

        Returns:
            Patients ordered by creation time descending, then id descending
        """
        ...

    async def count_patients(self) -> int:
        """Count all patients."""
        ...

    async def count_visits(self) -> int:
        """Count all visits."""
        ...

    async def insert_patient(self, patient: NewPatient) -> Patient | None:
        """Insert a patient.

        Args:
            patient: Validated patient payload

        Returns:
            The stored patient, or None if the store returned no representation

        Raises:
            StoreError: If the insert fails
        """
        ...

    async def close(self) -> None:
        """Release any connections held by the store."""
        ...


def recency_key(patient: Patient) -> tuple[datetime, str]:
    """Sort key for newest-first ordering with an id tie-break."""
    created_at = patient.created_at or datetime.min.replace(tzinfo=UTC)
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=UTC)
    return created_at, patient.id


class InMemoryPatientStore:
    """In-memory patient store

    Used for local development and tests. Visits are only counted, so they
    are kept as a plain list of ids.
    """

    def __init__(self, patients: list[Patient] | None = None, visit_count: int = 0):
        """Initialize with optional seed data."""
        self.patients: dict[str, Patient] = {p.id: p for p in patients or []}
        self.visits: list[str] = [cuid() for _ in range(visit_count)]

    async def list_recent_patients(self, limit: int) -> list[Patient]:
        """List the most recently created patients."""
        ordered = sorted(self.patients.values(), key=recency_key, reverse=True)
        return ordered[:limit]

    async def count_patients(self) -> int:
        """Count all patients."""
        return len(self.patients)

    async def count_visits(self) -> int:
        """Count all visits."""
        return len(self.visits)

    async def insert_patient(self, patient: NewPatient) -> Patient:
        """Insert a patient, assigning id and creation time."""
        if not patient.name.strip():
            # Mirrors the registry's NOT NULL / CHECK constraint on name
            raise StoreError('new row for relation "patients" violates check constraint "patients_name_check"')

        stored = Patient(
            id=cuid(),
            name=patient.name,
            birth_date=patient.birth_date,
            created_at=datetime.now(UTC),
        )
        self.patients[stored.id] = stored
        logger.debug(f"Stored patient {stored.id} in memory")
        return stored

    async def close(self) -> None:
        """Nothing to release for the in-memory store."""

    def add_visit(self) -> str:
        """Record a visit and return its id."""
        visit_id = cuid()
        self.visits.append(visit_id)
        return visit_id


def create_demo_store() -> InMemoryPatientStore:
    """Create an in-memory store seeded with demo patients."""
    seed = [
        ("Andreína Oliveira", date(1985, 3, 14), datetime(2025, 1, 6, 9, 30, tzinfo=UTC)),
        ("Carlos Mendes", date(1979, 11, 2), datetime(2025, 1, 7, 14, 0, tzinfo=UTC)),
        ("Beatriz Souza", None, datetime(2025, 1, 9, 11, 15, tzinfo=UTC)),
    ]
    patients = [
        Patient(id=cuid(), name=name, birth_date=birth_date, created_at=created_at)
        for name, birth_date, created_at in seed
    ]
    return InMemoryPatientStore(patients=patients, visit_count=5)
