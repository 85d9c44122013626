"""API endpoints for the clinical dashboard."""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException, Request

from app import __version__
from app.exceptions import StoreError, ValidationError
from app.models.dashboard import CreatePatientRequest, DashboardResponse, HealthResponse, PatientResponse
from app.services.dashboard import DashboardController
from app.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


def get_dashboard(request: Request) -> DashboardController:
    """Return the dashboard controller created at startup."""
    return request.app.state.dashboard


@router.get("/dashboard", response_model=DashboardResponse, tags=["Dashboard"])
async def get_dashboard_view(dashboard: DashboardController = Depends(get_dashboard)) -> DashboardResponse:
    """Return the current patient snapshot, totals and form state."""
    return DashboardResponse.from_view(dashboard.view())


@router.post("/dashboard/refresh", response_model=DashboardResponse, tags=["Dashboard"])
async def refresh_dashboard(dashboard: DashboardController = Depends(get_dashboard)) -> DashboardResponse:
    """Reload patients and totals from the store."""
    try:
        await dashboard.load_dashboard()
    except StoreError as e:
        raise HTTPException(status_code=502, detail=e.message) from e
    return DashboardResponse.from_view(dashboard.view())


@router.post(
    "/patients",
    response_model=PatientResponse | None,
    status_code=201,
    tags=["Patients"],
)
async def create_patient(
    request: CreatePatientRequest, dashboard: DashboardController = Depends(get_dashboard)
) -> PatientResponse | None:
    """Register a patient and refresh the dashboard."""
    try:
        created = await dashboard.create_patient(request.name, request.birth_date)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.message) from e
    except StoreError as e:
        raise HTTPException(status_code=502, detail=e.message) from e

    if created is None:
        return None
    return PatientResponse.from_patient(created)


@router.post("/patients/form/open", response_model=DashboardResponse, tags=["Patients"])
async def open_patient_form(dashboard: DashboardController = Depends(get_dashboard)) -> DashboardResponse:
    """Show the new patient form."""
    dashboard.open_form()
    return DashboardResponse.from_view(dashboard.view())


@router.post("/patients/form/close", response_model=DashboardResponse, tags=["Patients"])
async def close_patient_form(dashboard: DashboardController = Depends(get_dashboard)) -> DashboardResponse:
    """Hide the new patient form."""
    dashboard.close_form()
    return DashboardResponse.from_view(dashboard.view())


@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC),
        version=__version__,
    )
