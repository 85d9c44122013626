"""Main FastAPI application."""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app import __version__
from app.api.endpoints import router
from app.clients.supabase import SupabasePatientStore
from app.exceptions import ConfigurationError, StoreError
from app.services.dashboard import DashboardController
from app.services.patients import PatientStore, create_demo_store
from app.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


async def create_patient_store() -> PatientStore:
    """Create the patient store selected by PATIENT_STORE.

    Raises:
        ConfigurationError: If the backend is unknown or its settings are missing
    """
    backend = os.getenv("PATIENT_STORE", "supabase").strip().lower()
    if backend == "memory":
        logger.info("Using in-memory patient store with demo data")
        return create_demo_store()
    if backend == "supabase":
        return await SupabasePatientStore.connect()
    raise ConfigurationError(f"Unknown PATIENT_STORE backend: {backend!r} (expected 'supabase' or 'memory')")


def create_app(store: PatientStore | None = None) -> FastAPI:
    """Create the dashboard application.

    Args:
        store: Patient store to use (defaults to the one selected by environment)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        setup_logging()
        dashboard = DashboardController(store if store is not None else await create_patient_store())
        app.state.dashboard = dashboard

        # First render: a store failure here is shown on the dashboard, not fatal
        try:
            await dashboard.load_dashboard()
        except StoreError as e:
            logger.warning(f"Initial dashboard load failed: {e.message}")

        yield

        dashboard.close()
        await dashboard.store.close()

    app = FastAPI(
        title="BariPronto Clinical Dashboard",
        description=(
            "Clinical dashboard for a bariatric-care patient registry: recent patients, "
            "patient and visit totals, and patient registration."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
        openapi_tags=[
            {
                "name": "Dashboard",
                "description": "Patient snapshot, totals and refresh.",
            },
            {
                "name": "Patients",
                "description": "Patient registration and the new patient form.",
            },
            {
                "name": "Health",
                "description": "Service health monitoring and status checks.",
            },
        ],
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
