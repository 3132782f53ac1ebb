"""Application history — newest first, capped.

Stored as a JSON array under ``rule-application-log.json``. Appending past
the cap evicts the oldest entries.
"""

from __future__ import annotations

import logging

from pydantic import TypeAdapter, ValidationError

from rulectl.config.models import MAX_LOG_ENTRIES
from rulectl.domain.models import ApplicationLogEntry
from rulectl.errors import PersistenceError
from rulectl.infrastructure.store import StoreName
from rulectl.services.base import BaseService
from rulectl.services.result import ServiceResult
from rulectl.services.telemetry import traced

logger = logging.getLogger(__name__)

_ENTRIES = TypeAdapter(list[ApplicationLogEntry])


class ApplicationLog(BaseService):
    """Append-only record of bulk propagations."""

    @property
    def max_entries(self) -> int:
        return min(self._workspace.settings.log.max_entries, MAX_LOG_ENTRIES)

    def entries(self) -> list[ApplicationLogEntry]:
        raw = self._workspace.store.read(StoreName.APPLICATION_LOG)
        if raw is None:
            return []
        try:
            return _ENTRIES.validate_python(raw)
        except ValidationError as exc:
            msg = f"Stored application log is invalid: {exc.error_count()} errors"
            raise PersistenceError(msg) from exc

    def append(self, entry: ApplicationLogEntry) -> list[ApplicationLogEntry]:
        """Insert *entry* at the head and evict beyond the cap.

        Raises:
            PersistenceError: if the log cannot be read or written.
        """
        kept = [entry, *self.entries()][: self.max_entries]
        self._workspace.store.write(
            StoreName.APPLICATION_LOG, _ENTRIES.dump_python(kept, mode="json")
        )
        logger.debug("Application log now holds %d entries", len(kept))
        return kept

    @traced
    def history(
        self, *, limit: int | None = None, template_id: str | None = None
    ) -> ServiceResult:
        op = "application_history"
        try:
            items = self.entries()
        except PersistenceError as exc:
            return ServiceResult.from_exception(op, exc)

        if template_id:
            items = [e for e in items if e.template_id == template_id]
        total = len(items)
        if limit is not None:
            items = items[: max(limit, 0)]
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "entries": [e.model_dump(mode="json") for e in items],
                "count": len(items),
                "total": total,
            },
        )
