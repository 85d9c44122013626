"""Tests for the dashboard controller."""

import asyncio
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from app.exceptions import StoreError, ValidationError
from app.models.dashboard import OperationState
from app.models.patient import NewPatient, Patient
from app.services.dashboard import DashboardController
from app.services.patients import InMemoryPatientStore

T0 = datetime(2025, 1, 1, 8, 0, tzinfo=UTC)


def make_patient(index: int, minutes: int | None = None) -> Patient:
    """Create a patient created `minutes` after T0 (defaults to index)."""
    offset = index if minutes is None else minutes
    return Patient(id=f"p{index:03d}", name=f"Patient {index}", created_at=T0 + timedelta(minutes=offset))


def mock_store(patients=None, total_patients=0, total_visits=0) -> AsyncMock:
    """Create a store double with canned read results."""
    store = AsyncMock()
    store.list_recent_patients.return_value = patients or []
    store.count_patients.return_value = total_patients
    store.count_visits.return_value = total_visits
    store.insert_patient.return_value = Patient(id="new", name="Ana", created_at=T0)
    return store


class TestLoadDashboard:
    """Tests for loading the dashboard snapshot."""

    @pytest.mark.asyncio
    async def test_three_patients_five_visits(self):
        """Test totals and newest-first ordering from the in-memory store."""
        p1, p2, p3 = make_patient(1), make_patient(2), make_patient(3)
        store = InMemoryPatientStore(patients=[p2, p1, p3], visit_count=5)
        controller = DashboardController(store)

        snapshot = await controller.load_dashboard()

        assert snapshot.total_patients == 3
        assert snapshot.total_visits == 5
        assert [p.id for p in snapshot.patients] == [p3.id, p2.id, p1.id]
        assert snapshot.refreshed_at is not None
        assert controller.load_state is OperationState.READY
        assert controller.loading is False
        assert controller.error is None

    @pytest.mark.asyncio
    async def test_snapshot_capped_at_fifty(self):
        """Test that only the 50 newest patients are kept."""
        patients = [make_patient(i) for i in range(75)]
        controller = DashboardController(InMemoryPatientStore(patients=patients))

        snapshot = await controller.load_dashboard()

        assert len(snapshot.patients) == 50
        assert snapshot.total_patients == 75
        assert snapshot.patients[0].id == "p074"
        created = [p.created_at for p in snapshot.patients]
        assert created == sorted(created, reverse=True)

    @pytest.mark.asyncio
    async def test_snapshot_capped_even_if_store_returns_more(self):
        """Test the controller enforces the cap on an oversized result."""
        store = mock_store(patients=[make_patient(i) for i in range(60)], total_patients=60)
        controller = DashboardController(store)

        snapshot = await controller.load_dashboard()

        store.list_recent_patients.assert_awaited_once_with(50)
        assert len(snapshot.patients) == 50

    @pytest.mark.asyncio
    async def test_equal_creation_times_tie_break_on_id(self):
        """Test deterministic ordering when creation times collide."""
        a = Patient(id="a", name="A", created_at=T0)
        b = Patient(id="b", name="B", created_at=T0)
        controller = DashboardController(InMemoryPatientStore(patients=[a, b]))

        snapshot = await controller.load_dashboard()

        assert [p.id for p in snapshot.patients] == ["b", "a"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("failing", ["list_recent_patients", "count_patients", "count_visits"])
    async def test_failed_read_keeps_previous_snapshot(self, failing):
        """Test that a failure in any read commits nothing."""
        store = mock_store(patients=[make_patient(1)], total_patients=1, total_visits=2)
        controller = DashboardController(store)
        previous = await controller.load_dashboard()

        store.list_recent_patients.return_value = [make_patient(2), make_patient(1)]
        store.count_patients.return_value = 2
        store.count_visits.return_value = 9
        getattr(store, failing).side_effect = StoreError("connection reset")

        with pytest.raises(StoreError, match="connection reset"):
            await controller.load_dashboard()

        assert controller.snapshot == previous
        assert controller.snapshot.total_visits == 2
        assert controller.error == "connection reset"
        assert controller.load_state is OperationState.ERROR
        assert controller.loading is False

    @pytest.mark.asyncio
    async def test_unexpected_read_failure_becomes_store_error(self):
        """Test that non-store exceptions are surfaced as StoreError."""
        store = mock_store()
        store.count_visits.side_effect = TimeoutError("read timed out")
        controller = DashboardController(store)

        with pytest.raises(StoreError, match="read timed out"):
            await controller.load_dashboard()

        assert controller.error == "read timed out"
        assert controller.loading is False

    @pytest.mark.asyncio
    async def test_reads_run_concurrently(self):
        """Test that all three reads are in flight before any completes."""
        started = []
        release = asyncio.Event()

        async def list_patients(limit):
            started.append("list")
            await release.wait()
            return []

        async def count_patients():
            started.append("patients")
            await release.wait()
            return 0

        async def count_visits():
            started.append("visits")
            await release.wait()
            return 0

        store = mock_store()
        store.list_recent_patients.side_effect = list_patients
        store.count_patients.side_effect = count_patients
        store.count_visits.side_effect = count_visits
        controller = DashboardController(store)

        task = asyncio.create_task(controller.load_dashboard())
        for _ in range(5):
            await asyncio.sleep(0)

        assert sorted(started) == ["list", "patients", "visits"]
        assert controller.loading is True

        release.set()
        await task
        assert controller.loading is False

    @pytest.mark.asyncio
    async def test_load_after_close_is_discarded(self):
        """Test that a load completing after close does not touch state."""
        release = asyncio.Event()

        async def slow_count():
            await release.wait()
            return 42

        store = mock_store(patients=[make_patient(1)])
        store.count_patients.side_effect = slow_count
        controller = DashboardController(store)

        task = asyncio.create_task(controller.load_dashboard())
        await asyncio.sleep(0)
        controller.close()
        release.set()
        snapshot = await task

        assert snapshot.total_patients == 0
        assert controller.snapshot.patients == ()

    @pytest.mark.asyncio
    async def test_failed_load_after_close_is_discarded(self):
        """Test that a failure completing after close is not raised."""
        release = asyncio.Event()

        async def failing_count():
            await release.wait()
            raise StoreError("gone")

        store = mock_store()
        store.count_visits.side_effect = failing_count
        controller = DashboardController(store)

        task = asyncio.create_task(controller.load_dashboard())
        await asyncio.sleep(0)
        controller.close()
        release.set()
        await task

        assert controller.error is None

    @pytest.mark.asyncio
    async def test_new_load_clears_previous_error(self):
        """Test that a successful retry clears the error message."""
        store = mock_store()
        store.count_visits.side_effect = [StoreError("temporarily unavailable"), 3]
        controller = DashboardController(store)

        with pytest.raises(StoreError):
            await controller.load_dashboard()
        await controller.load_dashboard()

        assert controller.error is None
        assert controller.snapshot.total_visits == 3


class TestCreatePatient:
    """Tests for patient creation."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["", "   ", "\t\n"])
    async def test_blank_name_rejected_without_store_call(self, name):
        """Test that blank names never reach the store."""
        store = mock_store()
        controller = DashboardController(store)

        with pytest.raises(ValidationError, match="name required"):
            await controller.create_patient(name)

        store.insert_patient.assert_not_awaited()
        store.list_recent_patients.assert_not_awaited()
        assert controller.error == "name required"
        assert controller.save_state is OperationState.ERROR
        assert controller.saving is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("birth_date", ["14/03/1985", "1985-02-30", "1985-3-4", "yesterday"])
    async def test_invalid_birth_date_rejected(self, birth_date):
        """Test that non-ISO birth dates are rejected locally."""
        store = mock_store()
        controller = DashboardController(store)

        with pytest.raises(ValidationError, match="YYYY-MM-DD"):
            await controller.create_patient("Ana", birth_date)

        store.insert_patient.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_name_only_insert_then_single_reload(self):
        """Test inserting only a name triggers exactly one reload."""
        store = mock_store()
        controller = DashboardController(store)

        created = await controller.create_patient("Ana")

        store.insert_patient.assert_awaited_once_with(NewPatient(name="Ana"))
        assert store.insert_patient.await_args.args[0].as_row() == {"name": "Ana"}
        assert store.list_recent_patients.await_count == 1
        assert store.count_patients.await_count == 1
        assert store.count_visits.await_count == 1
        assert created.id == "new"
        assert controller.save_state is OperationState.READY

    @pytest.mark.asyncio
    async def test_name_is_trimmed_and_birth_date_sent(self):
        """Test trimming the name and passing a valid birth date."""
        store = mock_store()
        controller = DashboardController(store)

        await controller.create_patient("  Ana Souza  ", "1990-07-04")

        row = store.insert_patient.await_args.args[0].as_row()
        assert row == {"name": "Ana Souza", "birth_date": "1990-07-04"}

    @pytest.mark.asyncio
    async def test_blank_birth_date_treated_as_absent(self):
        """Test that an empty date field is omitted from the insert."""
        store = mock_store()
        controller = DashboardController(store)

        await controller.create_patient("Ana", "")

        assert store.insert_patient.await_args.args[0].as_row() == {"name": "Ana"}

    @pytest.mark.asyncio
    async def test_success_clears_form(self):
        """Test the form is emptied and closed after saving."""
        controller = DashboardController(mock_store())
        controller.open_form()

        await controller.create_patient("Ana", "1990-07-04")

        assert controller.form.open is False
        assert controller.form.name == ""
        assert controller.form.birth_date == ""

    @pytest.mark.asyncio
    async def test_store_failure_preserves_form(self):
        """Test a rejected insert keeps the typed values for a retry."""
        store = mock_store()
        store.insert_patient.side_effect = StoreError('duplicate key value violates unique constraint "patients_pkey"')
        controller = DashboardController(store)
        controller.open_form()

        with pytest.raises(StoreError, match="duplicate key"):
            await controller.create_patient("Ana", "1990-07-04")

        assert controller.form.open is True
        assert controller.form.name == "Ana"
        assert controller.form.birth_date == "1990-07-04"
        assert "duplicate key" in controller.error
        assert controller.saving is False
        store.list_recent_patients.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unexpected_insert_failure_becomes_store_error(self):
        """Test that transport errors from the insert surface as StoreError."""
        store = mock_store()
        store.insert_patient.side_effect = ConnectionError("network unreachable")
        controller = DashboardController(store)

        with pytest.raises(StoreError, match="network unreachable"):
            await controller.create_patient("Ana")

        assert controller.saving is False

    @pytest.mark.asyncio
    async def test_reload_failure_after_insert(self):
        """Test a reload failure after a successful insert is reported."""
        store = mock_store()
        store.count_visits.side_effect = StoreError("visits unavailable")
        controller = DashboardController(store)

        with pytest.raises(StoreError, match="visits unavailable"):
            await controller.create_patient("Ana")

        store.insert_patient.assert_awaited_once()
        assert controller.error == "visits unavailable"
        assert controller.saving is False
        assert controller.loading is False

    @pytest.mark.asyncio
    async def test_created_patient_appears_in_snapshot(self):
        """Test end to end against the in-memory store."""
        store = InMemoryPatientStore(patients=[make_patient(1)], visit_count=2)
        controller = DashboardController(store)

        created = await controller.create_patient("Ana", "1990-07-04")

        assert controller.snapshot.total_patients == 2
        assert controller.snapshot.patients[0].id == created.id
        assert controller.snapshot.patients[0].name == "Ana"


class TestPatientForm:
    """Tests for the new patient form toggles."""

    def test_open_and_close(self):
        controller = DashboardController(mock_store())
        controller.open_form()
        assert controller.view().form.open is True
        controller.close_form()
        assert controller.view().form.open is False

    def test_close_keeps_typed_values(self):
        controller = DashboardController(mock_store())
        controller.open_form()
        controller.form.name = "Ana"
        controller.close_form()
        assert controller.form.name == "Ana"

    def test_view_is_a_copy(self):
        """Test that mutating the view does not leak into the controller."""
        controller = DashboardController(mock_store())
        view = controller.view()
        view.form.name = "changed"
        assert controller.form.name == ""
