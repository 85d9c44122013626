"""Supabase client for the patient registry."""

import os
from dataclasses import dataclass
from typing import Any

import httpx
from postgrest.exceptions import APIError
from pydantic import ValidationError as PydanticValidationError
from supabase import AsyncClient, acreate_client

from app.exceptions import ConfigurationError, StoreError
from app.models.patient import NewPatient, Patient
from app.utils.logging import get_logger

logger = get_logger(__name__)

PATIENT_COLUMNS = "id,name,birth_date,created_at"


@dataclass
class SupabaseConfig:
    """Configuration for the Supabase patient store."""

    url: str
    anon_key: str
    patients_table: str = "patients"
    visits_table: str = "visits"

    @classmethod
    def from_env(cls) -> "SupabaseConfig":
        """Build configuration from environment variables.

        Raises:
            ConfigurationError: If SUPABASE_URL or SUPABASE_ANON_KEY is missing
        """
        url = os.getenv("SUPABASE_URL", "").strip()
        anon_key = os.getenv("SUPABASE_ANON_KEY", "").strip()

        missing = [name for name, value in (("SUPABASE_URL", url), ("SUPABASE_ANON_KEY", anon_key)) if not value]
        if missing:
            raise ConfigurationError(f"Missing required environment variables: {', '.join(missing)}")

        return cls(url=url, anon_key=anon_key)


class SupabasePatientStore:
    """Patient store backed by Supabase (PostgREST)."""

    def __init__(self, client: AsyncClient, config: SupabaseConfig):
        """Initialize with a connected Supabase client.

        Args:
            client: Async Supabase client
            config: Store configuration
        """
        self.client = client
        self.config = config

    @classmethod
    async def connect(cls, config: SupabaseConfig | None = None) -> "SupabasePatientStore":
        """Create a store from configuration (defaults to environment)."""
        config = config or SupabaseConfig.from_env()
        logger.info(f"Connecting to Supabase at {config.url}")
        client = await acreate_client(config.url, config.anon_key)
        return cls(client, config)

    async def list_recent_patients(self, limit: int) -> list[Patient]:
        """List the most recently created patients."""
        query = (
            self.client.table(self.config.patients_table)
            .select(PATIENT_COLUMNS)
            .order("created_at", desc=True, nullsfirst=False)
            .order("id", desc=True)
            .limit(limit)
        )
        response = await self._execute("list patients", query)
        try:
            return [Patient.model_validate(row) for row in response.data or []]
        except PydanticValidationError as e:
            logger.error(f"Unreadable patient row from store: {e}")
            raise StoreError(f"Unreadable patient row from store: {e}") from e

    async def count_patients(self) -> int:
        """Count all patients."""
        return await self._count(self.config.patients_table)

    async def count_visits(self) -> int:
        """Count all visits."""
        return await self._count(self.config.visits_table)

    async def insert_patient(self, patient: NewPatient) -> Patient | None:
        """Insert a patient and return the stored row."""
        query = self.client.table(self.config.patients_table).insert(patient.as_row())
        response = await self._execute("insert patient", query)
        rows = response.data or []
        if not rows:
            return None
        try:
            return Patient.model_validate(rows[0])
        except PydanticValidationError as e:
            # The row is already written, so this is not a failed insert
            logger.warning(f"Inserted patient but could not read the returned row: {e}")
            return None

    async def close(self) -> None:
        """Release the PostgREST HTTP session."""
        logger.info("Closing Supabase patient store")
        await self.client.postgrest.aclose()

    async def _count(self, table: str) -> int:
        query = self.client.table(table).select("id", count="exact", head=True)
        response = await self._execute(f"count {table}", query)
        return response.count or 0

    async def _execute(self, operation: str, query: Any) -> Any:
        """Execute a PostgREST query, translating failures into StoreError."""
        logger.debug(f"Executing store operation: {operation}")
        try:
            return await query.execute()
        except APIError as e:
            message = e.message or str(e)
            logger.error(f"Store operation '{operation}' failed: {message}")
            raise StoreError(message) from e
        except httpx.HTTPError as e:
            logger.error(f"Store operation '{operation}' failed: {e}")
            raise StoreError(str(e) or f"Network error during {operation}") from e
