"""
Unified async database client for all persistence operations.

ALL database operations go through the SupabaseDB class defined here.
No direct Supabase calls should appear anywhere else in the codebase.

Tables::

    concept_cache  (key text primary key, document jsonb, updated_at timestamptz)
    pipeline_runs  (run_id text primary key, company_id text, status text,
                    degraded_mode bool, result jsonb, created_at timestamptz)
    api_costs      (id uuid, run_id text, service text, model text, ...)
    agent_logs     (id uuid, timestamp timestamptz, level int, ...)
    pipeline_errors(id uuid, run_id text, stage text, error text, ...)

Usage::

    from src.database import SupabaseDB, get_db

    # In async context:
    db = await get_db()
    doc = await db.get_document("latest")

``InMemoryDocumentStore`` implements the same document interface for runs
without a database (CLI ``--no-db``) and for tests.
"""

import asyncio
import copy
import logging
import os
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

from supabase import AsyncClient, create_async_client

from src.exceptions import DatabaseError, ValidationError
from src.utils import utc_now

logger = logging.getLogger(__name__)

CONCEPT_CACHE_TABLE = "concept_cache"


# =============================================================================
# VALIDATION HELPERS
# =============================================================================


def validate_not_empty(value: Any, name: str) -> None:
    """Validate that *value* is not ``None`` or an empty string.

    Raises:
        ValidationError: If *value* is ``None`` or a blank string.
    """
    if value is None:
        raise ValidationError(f"{name} cannot be None")
    if isinstance(value, str) and not value.strip():
        raise ValidationError(f"{name} cannot be empty string")


# =============================================================================
# CONFIGURATION
# =============================================================================


@dataclass
class SupabaseConfig:
    """Supabase configuration loaded from environment variables.

    Attributes:
        url: The Supabase project URL (``SUPABASE_URL``).
        key: The service-role key for full server-side access
            (``SUPABASE_SERVICE_KEY``).
    """

    url: str
    key: str

    @classmethod
    def from_env(cls) -> "SupabaseConfig":
        """Create a config instance from environment variables.

        Raises:
            ValueError: If either variable is missing or empty.
        """
        url = os.environ.get("SUPABASE_URL")
        key = os.environ.get("SUPABASE_SERVICE_KEY")

        if not url or not key:
            raise ValueError(
                "SUPABASE_URL and SUPABASE_SERVICE_KEY must be set"
            )

        return cls(url=url, key=key)


# =============================================================================
# SUPABASE DATABASE CLIENT
# =============================================================================


class SupabaseDB:
    """Unified **async** database client for all persistence operations.

    **Important:** Use the :meth:`create` factory method instead of
    ``__init__`` directly -- the underlying async client requires an
    ``await`` during initialisation.
    """

    def __init__(self, client: AsyncClient) -> None:
        """Private constructor.  Use :meth:`create` factory method."""
        self.client = client

    @classmethod
    async def create(
        cls, config: Optional[SupabaseConfig] = None
    ) -> "SupabaseDB":
        """Factory method to create an async :class:`SupabaseDB` instance.

        Args:
            config: Optional configuration.  When ``None``,
                :meth:`SupabaseConfig.from_env` is used.
        """
        config = config or SupabaseConfig.from_env()
        client = await create_async_client(config.url, config.key)
        return cls(client)

    # -----------------------------------------------------------------
    # CONCEPT CACHE DOCUMENTS
    # -----------------------------------------------------------------

    async def get_document(self, key: str) -> Optional[Dict[str, Any]]:
        """Return the cached document stored under *key*, or ``None``."""
        validate_not_empty(key, "key")
        result = await (
            self.client.table(CONCEPT_CACHE_TABLE)
            .select("document")
            .eq("key", key)
            .limit(1)
            .execute()
        )
        if not result.data:
            return None
        return result.data[0].get("document")

    async def set_document(self, key: str, document: Dict[str, Any]) -> None:
        """Replace the whole document stored under *key* (upsert).

        Raises:
            ValidationError: On an empty key or document.
            DatabaseError: When the upsert returns no data.
        """
        validate_not_empty(key, "key")
        if not document:
            raise ValidationError("document cannot be None or empty")

        row = {"key": key, "document": document, "updated_at": utc_now().isoformat()}
        result = await (
            self.client.table(CONCEPT_CACHE_TABLE)
            .upsert(row, on_conflict="key")
            .execute()
        )
        if not result.data:
            raise DatabaseError("Upsert succeeded but returned no data")

    async def delete_document(self, key: str) -> None:
        """Delete the document stored under *key* (no-op when absent)."""
        validate_not_empty(key, "key")
        await self.client.table(CONCEPT_CACHE_TABLE).delete().eq("key", key).execute()

    # -----------------------------------------------------------------
    # PIPELINE RUNS
    # -----------------------------------------------------------------

    async def save_pipeline_run(self, run: Dict[str, Any]) -> str:
        """Persist a finished pipeline run record.

        Args:
            run: Run record.  Must contain ``run_id`` and ``status``.

        Returns:
            The run id.

        Raises:
            ValidationError: On missing fields.
            DatabaseError: When the upsert returns no data.
        """
        if not run:
            raise ValidationError("run cannot be None or empty")
        if not run.get("run_id") or "status" not in run:
            raise ValidationError("run must have 'run_id' and 'status'")

        result = await (
            self.client.table("pipeline_runs")
            .upsert(run, on_conflict="run_id")
            .execute()
        )
        if not result.data:
            raise DatabaseError("Upsert succeeded but returned no data")
        return result.data[0]["run_id"]

    # -----------------------------------------------------------------
    # COSTS
    # -----------------------------------------------------------------

    async def save_api_cost(self, record: Dict[str, Any]) -> str:
        """Insert an API cost record built by ``build_cost_record``.

        Raises:
            ValidationError: On missing fields.
            DatabaseError: When the insert returns no data.
        """
        if not record:
            raise ValidationError("record cannot be None or empty")
        if "service" not in record or "total_cost" not in record:
            raise ValidationError("record must have 'service' and 'total_cost'")

        result = await self.client.table("api_costs").insert(record).execute()
        if not result.data:
            raise DatabaseError("Insert succeeded but returned no data")
        return result.data[0]["id"]

    # -----------------------------------------------------------------
    # LOGS & ERRORS
    # -----------------------------------------------------------------

    async def save_agent_log(self, log_entry: Dict[str, Any]) -> str:
        """Save a structured log entry.

        Raises:
            ValidationError: On missing / invalid fields.
            DatabaseError: When the insert returns no data.
        """
        if not log_entry:
            raise ValidationError("log_entry cannot be None or empty")
        if "timestamp" not in log_entry or "level" not in log_entry:
            raise ValidationError(
                "log_entry must have 'timestamp' and 'level'"
            )

        result = await (
            self.client.table("agent_logs").insert(log_entry).execute()
        )
        if not result.data:
            raise DatabaseError("Insert succeeded but returned no data")
        return result.data[0]["id"]

    async def save_pipeline_error(self, error: Dict[str, Any]) -> str:
        """Record a pipeline-critical failure.

        Raises:
            ValidationError: On missing fields.
            DatabaseError: When the insert returns no data.
        """
        if not error:
            raise ValidationError("error cannot be None or empty")
        if "stage" not in error or "error" not in error:
            raise ValidationError("error must have 'stage' and 'error'")

        result = await self.client.table("pipeline_errors").insert(error).execute()
        if not result.data:
            raise DatabaseError("Insert succeeded but returned no data")
        return result.data[0]["id"]


# =============================================================================
# IN-MEMORY DOCUMENT STORE
# =============================================================================


class InMemoryDocumentStore:
    """Process-local document store with the same interface as ``SupabaseDB``.

    Documents are deep-copied on the way in and out so callers can never
    mutate the stored value.
    """

    def __init__(self, documents: Optional[Dict[str, Dict[str, Any]]] = None) -> None:
        self._documents: Dict[str, Dict[str, Any]] = copy.deepcopy(documents or {})

    async def get_document(self, key: str) -> Optional[Dict[str, Any]]:
        doc = self._documents.get(key)
        return copy.deepcopy(doc) if doc is not None else None

    async def set_document(self, key: str, document: Dict[str, Any]) -> None:
        validate_not_empty(key, "key")
        self._documents[key] = copy.deepcopy(document)

    async def delete_document(self, key: str) -> None:
        self._documents.pop(key, None)


# =============================================================================
# GLOBAL SINGLETON
# =============================================================================

_db_instance: Optional[SupabaseDB] = None
_db_lock: Optional[asyncio.Lock] = None

# Thread lock for safe initialisation of the async lock itself.
_init_lock = threading.Lock()


async def get_db() -> SupabaseDB:
    """Get the global async database instance.

    Thread-safe **and** async-safe.  The first call creates the
    :class:`SupabaseDB` singleton; subsequent calls return the same
    instance.
    """
    global _db_instance, _db_lock

    if _db_lock is None:
        with _init_lock:
            if _db_lock is None:
                _db_lock = asyncio.Lock()

    if _db_instance is None:
        async with _db_lock:
            if _db_instance is None:
                _db_instance = await SupabaseDB.create()

    return _db_instance
