"""Dashboard controller: loads the patient snapshot and creates patients."""

import asyncio
from dataclasses import replace
from datetime import UTC, datetime

from app.exceptions import StoreError, ValidationError
from app.models.dashboard import DashboardSnapshot, DashboardView, OperationState, PatientForm
from app.models.patient import NewPatient, Patient, parse_iso_date
from app.services.patients import PatientStore
from app.utils.logging import get_logger

logger = get_logger(__name__)

SNAPSHOT_LIMIT = 50


class DashboardController:
    """Orchestrates dashboard loading and patient creation.

    Holds the committed snapshot (recent patients plus patient and visit
    totals), one OperationState each for loading and saving, the last
    user-visible error message, and the new patient form.
    """

    def __init__(self, store: PatientStore, snapshot_limit: int = SNAPSHOT_LIMIT):
        """Initialize dashboard controller.

        Args:
            store: Patient store used for all reads and writes
            snapshot_limit: Maximum number of patients kept in the snapshot
        """
        self.store = store
        self.snapshot_limit = snapshot_limit
        self.snapshot = DashboardSnapshot()
        self.load_state = OperationState.IDLE
        self.save_state = OperationState.IDLE
        self.error: str | None = None
        self.form = PatientForm()
        self.closed = False

    @property
    def loading(self) -> bool:
        return self.load_state is OperationState.LOADING

    @property
    def saving(self) -> bool:
        return self.save_state is OperationState.LOADING

    def view(self) -> DashboardView:
        """Return a read-only view of the current state."""
        return DashboardView(
            snapshot=self.snapshot,
            load_state=self.load_state,
            save_state=self.save_state,
            error=self.error,
            form=replace(self.form),
        )

    async def load_dashboard(self) -> DashboardSnapshot:
        """Refresh the patient snapshot and totals.

        The three reads run concurrently and are committed together only
        when all of them succeed.

        Returns:
            The snapshot in effect after the call

        Raises:
            StoreError: If any of the reads fails
        """
        logger.info("Loading dashboard")
        self.load_state = OperationState.LOADING
        self.error = None

        try:
            patients, total_patients, total_visits = await self._fetch_all()
        except StoreError as e:
            if self.closed:
                logger.debug(f"Discarding failed dashboard load after close: {e.message}")
                return self.snapshot
            logger.error(f"Dashboard load failed: {e.message}")
            self.load_state = OperationState.ERROR
            self.error = e.message
            raise

        if self.closed:
            logger.debug("Discarding dashboard load that completed after close")
            return self.snapshot

        self.snapshot = DashboardSnapshot(
            patients=tuple(patients[: self.snapshot_limit]),
            total_patients=total_patients,
            total_visits=total_visits,
            refreshed_at=datetime.now(UTC),
        )
        self.load_state = OperationState.READY
        logger.info(
            f"Dashboard loaded: {len(self.snapshot.patients)} patients shown, "
            f"{total_patients} patients total, {total_visits} visits total"
        )
        return self.snapshot

    async def create_patient(self, name: str, birth_date: str | None = None) -> Patient | None:
        """Validate and insert a patient, then reload the dashboard.

        Args:
            name: Patient name (trimmed before validation)
            birth_date: Optional ISO calendar date (YYYY-MM-DD)

        Returns:
            The stored patient, if the store returned it

        Raises:
            ValidationError: If the name is empty or the birth date is invalid
            StoreError: If the insert or the follow-up reload fails
        """
        self.form.name = name
        self.form.birth_date = birth_date or ""
        self.save_state = OperationState.LOADING
        self.error = None

        try:
            new_patient = self._validate(name, birth_date)
        except ValidationError as e:
            logger.warning(f"Rejected new patient: {e.message}")
            self.save_state = OperationState.ERROR
            self.error = e.message
            raise

        logger.info("Creating patient")
        try:
            created = await self._insert(new_patient)
        except StoreError as e:
            logger.error(f"Patient insert failed: {e.message}")
            self.save_state = OperationState.ERROR
            self.error = e.message
            raise

        if created is not None:
            logger.info(f"Created patient {created.id}")
        self.form.clear()

        try:
            await self.load_dashboard()
        except StoreError:
            self.save_state = OperationState.ERROR
            raise

        self.save_state = OperationState.READY
        return created

    def open_form(self) -> None:
        """Show the new patient form."""
        self.form.open = True

    def close_form(self) -> None:
        """Hide the new patient form, keeping any typed values."""
        self.form.open = False

    def close(self) -> None:
        """Dispose the controller. Loads still in flight are discarded."""
        logger.info("Closing dashboard controller")
        self.closed = True

    async def _fetch_all(self) -> tuple[list[Patient], int, int]:
        """Run the three dashboard reads concurrently and join them."""
        try:
            patients, total_patients, total_visits = await asyncio.gather(
                self.store.list_recent_patients(self.snapshot_limit),
                self.store.count_patients(),
                self.store.count_visits(),
            )
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(str(e) or type(e).__name__) from e
        return patients, total_patients, total_visits

    async def _insert(self, new_patient: NewPatient) -> Patient | None:
        try:
            return await self.store.insert_patient(new_patient)
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(str(e) or type(e).__name__) from e

    @staticmethod
    def _validate(name: str, birth_date: str | None) -> NewPatient:
        trimmed = (name or "").strip()
        if not trimmed:
            raise ValidationError("name required")

        if birth_date is None or not birth_date.strip():
            return NewPatient(name=trimmed)

        parsed = parse_iso_date(birth_date)
        if parsed is None or parsed.isoformat() != birth_date.strip():
            raise ValidationError(f"birth date must be a calendar date in YYYY-MM-DD format, got '{birth_date}'")
        return NewPatient(name=trimmed, birth_date=parsed)
