"""
Concept Cache -- TTL cache of extracted concepts that fails open to stale.

The cache holds exactly one document (key ``"latest"``), always written as
a whole.  A fresh entry is served without any extraction cost; an expired
or missing entry triggers a new extraction.  When that extraction fails,
any existing entry is returned marked ``stale`` instead of an error, so a
dead news source never takes the pipeline down once a cache exists.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Protocol

from src.agents.concept_extractor import ConceptExtractor
from src.exceptions import ConceptCacheError, ConceptExtractionError
from src.models import CacheRead, CachedConceptSet, ConceptFetchResult, CostInfo
from src.utils import hours_since, utc_now

logger = logging.getLogger("ConceptCache")

DEFAULT_CACHE_KEY = "latest"
DEFAULT_TTL_HOURS = 24.0
DEFAULT_EXTRACTION_TIMEOUT = 150.0


class DocumentStore(Protocol):
    """Durable key/document store (``SupabaseDB`` or ``InMemoryDocumentStore``)."""

    async def get_document(self, key: str) -> Optional[Dict[str, Any]]: ...

    async def set_document(self, key: str, document: Dict[str, Any]) -> None: ...

    async def delete_document(self, key: str) -> None: ...


class ConceptCache:
    """
    Single-entry concept cache over a durable document store.

    Args:
        store: Document store.
        extractor: Concept extractor used to refresh the entry.
        ttl_hours: Default maximum age of a fresh entry.
        key: Document key.
        clock: Returns the current UTC time (injected in tests).
        extraction_timeout: Seconds a refresh may take before it counts as
            a failed extraction.

    Usage::

        cache = ConceptCache(store=db, extractor=extractor)
        result = await cache.get_or_refresh()
        if result.stale:
            ...
    """

    def __init__(
        self,
        store: DocumentStore,
        extractor: ConceptExtractor,
        ttl_hours: float = DEFAULT_TTL_HOURS,
        key: str = DEFAULT_CACHE_KEY,
        clock: Callable[[], datetime] = utc_now,
        extraction_timeout: float = DEFAULT_EXTRACTION_TIMEOUT,
    ) -> None:
        self.store = store
        self.extractor = extractor
        self.ttl_hours = ttl_hours
        self.key = key
        self._clock = clock
        self.extraction_timeout = extraction_timeout
        self.logger = logging.getLogger("ConceptCache")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _read_entry(self) -> Optional[CachedConceptSet]:
        """Load and decode the stored entry; read failures count as a miss."""
        try:
            doc = await self.store.get_document(self.key)
        except Exception as exc:
            self.logger.warning("[CACHE] Store read failed, treating as miss: %s", exc)
            return None
        if not doc:
            return None
        try:
            return CachedConceptSet.from_document(doc)
        except (ValueError, TypeError, KeyError) as exc:
            self.logger.warning("[CACHE] Stored document is unreadable, ignoring: %s", exc)
            return None

    async def get(self, max_age_hours: Optional[float] = None) -> Optional[CacheRead]:
        """Return the stored entry with its age, or ``None`` when there is none.

        The entry is returned even when older than ``max_age_hours``; it is
        then flagged ``stale``.
        """
        max_age = self.ttl_hours if max_age_hours is None else max_age_hours
        entry = await self._read_entry()
        if entry is None:
            return None
        age = hours_since(entry.extracted_at, self._clock())
        return CacheRead(entry=entry, age_hours=age, stale=age > max_age)

    async def status(self) -> Optional[Dict[str, Any]]:
        """Summary of the stored entry for operators, or ``None``."""
        entry = await self._read_entry()
        if entry is None:
            return None
        now = self._clock()
        age = hours_since(entry.extracted_at, now)
        expires_in = (entry.expires_at - now).total_seconds() / 3600.0
        return {
            "exists": True,
            "concept_count": len(entry.concepts),
            "age_hours": round(age, 2),
            "expires_in_hours": round(max(0.0, expires_in), 2),
            "stale": age > self.ttl_hours,
            "sources": list(entry.sources),
            "extracted_at": entry.extracted_at.isoformat(),
        }

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def _extract_and_store(self, timeout: Optional[float] = None) -> ConceptFetchResult:
        """Run a fresh extraction and persist it as the whole document.

        Raises:
            ConceptExtractionError: If extraction fails or outlasts ``timeout``.
        """
        timeout = self.extraction_timeout if timeout is None else timeout
        try:
            outcome = await asyncio.wait_for(self.extractor.fetch_and_extract(), timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise ConceptExtractionError(
                f"Concept extraction timed out after {timeout:g} seconds"
            ) from exc
        now = self._clock()
        entry = CachedConceptSet(
            concepts=outcome.concepts,
            extracted_at=now,
            expires_at=now + timedelta(hours=self.ttl_hours),
            raw_signal_count=outcome.raw_signal_count,
            sources=list(self.extractor.source_names),
        )
        try:
            await self.store.set_document(self.key, entry.to_document())
        except Exception as exc:
            self.logger.warning("[CACHE] Failed to persist fresh concepts: %s", exc)

        self.logger.info(
            "[CACHE] Refreshed %d concepts from %d signals",
            len(entry.concepts),
            entry.raw_signal_count,
        )
        return ConceptFetchResult(
            concepts=entry.concepts,
            cached=False,
            stale=False,
            age_hours=0.0,
            cost=outcome.cost,
            extracted_at=now,
        )

    async def get_or_refresh(
        self,
        max_age_hours: Optional[float] = None,
        extraction_timeout: Optional[float] = None,
    ) -> ConceptFetchResult:
        """Serve a fresh entry, else refresh; fall back to a stale entry.

        A refresh that outlasts ``extraction_timeout`` (default: the cache's
        own) is handled like any other extraction failure.

        Raises:
            ConceptCacheError: Only when extraction fails and no entry exists.
        """
        existing = await self.get(max_age_hours)
        if existing is not None and not existing.stale:
            self.logger.info(
                "[CACHE] Using cached concepts (%.1fh old, %d concepts)",
                existing.age_hours,
                len(existing.entry.concepts),
            )
            return ConceptFetchResult(
                concepts=existing.entry.concepts,
                cached=True,
                stale=False,
                age_hours=existing.age_hours,
                cost=CostInfo(),
                extracted_at=existing.entry.extracted_at,
            )

        try:
            return await self._extract_and_store(extraction_timeout)
        except ConceptExtractionError as exc:
            if existing is None:
                raise ConceptCacheError(
                    f"Concept extraction failed and no cached concepts exist: {exc}"
                ) from exc
            self.logger.warning(
                "[CACHE] Extraction failed, serving stale concepts (%.1fh old): %s",
                existing.age_hours,
                exc,
            )
            return ConceptFetchResult(
                concepts=existing.entry.concepts,
                cached=True,
                stale=True,
                age_hours=existing.age_hours,
                cost=CostInfo(),
                extracted_at=existing.entry.extracted_at,
            )

    async def refresh(self) -> ConceptFetchResult:
        """Force a new extraction regardless of the stored entry's age.

        Raises:
            ConceptCacheError: If the extraction fails.
        """
        try:
            return await self._extract_and_store()
        except ConceptExtractionError as exc:
            raise ConceptCacheError(f"Forced concept refresh failed: {exc}") from exc

    async def invalidate(self) -> None:
        """Delete the stored entry unconditionally."""
        await self.store.delete_document(self.key)
        self.logger.info("[CACHE] Invalidated concept cache '%s'", self.key)


__all__ = [
    "ConceptCache",
    "DocumentStore",
    "DEFAULT_CACHE_KEY",
    "DEFAULT_TTL_HOURS",
    "DEFAULT_EXTRACTION_TIMEOUT",
]
