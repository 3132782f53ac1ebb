"""TemplateVersionLedger — sole owner of the template collection.

Every mutation rewrites the whole collection through the store's atomic
replace, stamps ``last_updated``, then reads it back and checks the record
count. A mismatch is a PERSISTENCE_ERROR, never a silent success.

Version policy: the minor segment is bumped when the normalized
expression or the action changes; no other edit touches the version.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from rulectl.domain.ids import next_friendly_id, new_template_id
from rulectl.domain.models import RuleTemplate, TemplateCollection
from rulectl.domain.versions import INITIAL_VERSION, bump_minor
from rulectl.errors import PersistenceError
from rulectl.infrastructure.store import StoreName
from rulectl.services._helpers import normalize_expression, now_iso
from rulectl.services.base import BaseService
from rulectl.services.result import NOT_FOUND, VALIDATION_FAILED, ServiceResult
from rulectl.services.telemetry import trace_span, traced

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("name", "expression", "action")
MUTABLE_FIELDS = frozenset(
    {
        "name",
        "description",
        "expression",
        "action",
        "action_parameters",
        "tags",
        "applicable_tags",
        "excluded_domains",
        "enabled",
        "priority",
    }
)
IMMUTABLE_FIELDS = frozenset({"id", "friendly_id", "version", "created_at", "updated_at"})


def _validation_message(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "template"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


class TemplateVersionLedger(BaseService):
    """Create, update, delete and look up rule templates."""

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> TemplateCollection:
        """Read the stored collection; empty when nothing is stored yet.

        Raises:
            PersistenceError: if the stored document is unreadable.
        """
        raw = self._workspace.store.read(StoreName.TEMPLATES)
        if raw is None:
            return TemplateCollection()
        try:
            return TemplateCollection.model_validate(raw)
        except ValidationError as exc:
            msg = f"Stored template collection is invalid: {exc.error_count()} errors"
            raise PersistenceError(msg) from exc

    def _save(self, templates: list[RuleTemplate]) -> TemplateCollection:
        collection = TemplateCollection(templates=templates, last_updated=now_iso())
        store = self._workspace.store
        with trace_span("persist_templates"):
            store.write(StoreName.TEMPLATES, collection.model_dump(mode="json"))
            written = self.load()
        if len(written.templates) != len(templates):
            msg = (
                f"Template write verification failed: expected {len(templates)} "
                f"records, found {len(written.templates)}"
            )
            raise PersistenceError(msg, detail={"expected": len(templates)})
        return written

    def templates(self) -> list[RuleTemplate]:
        return self.load().templates

    def find(self, ref: str) -> RuleTemplate | None:
        """Look a template up by id, falling back to friendlyId."""
        templates = self.templates()
        for template in templates:
            if template.id == ref:
                return template
        for template in templates:
            if template.friendly_id == ref:
                return template
        return None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @traced
    def list_templates(
        self, *, enabled_only: bool = False, tag: str | None = None
    ) -> ServiceResult:
        op = "list_templates"
        try:
            collection = self.load()
        except PersistenceError as exc:
            return ServiceResult.from_exception(op, exc)

        items = collection.templates
        if enabled_only:
            items = [t for t in items if t.enabled]
        if tag:
            items = [t for t in items if tag in t.tags]
        items = sorted(items, key=lambda t: t.friendly_id)
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "templates": [t.model_dump(mode="json") for t in items],
                "count": len(items),
                "last_updated": collection.last_updated,
            },
        )

    @traced
    def get(self, ref: str) -> ServiceResult:
        op = "get_template"
        try:
            template = self.find(ref)
        except PersistenceError as exc:
            return ServiceResult.from_exception(op, exc)
        if template is None:
            return ServiceResult.failure(op, NOT_FOUND, f"No template found with ID: {ref}")
        return ServiceResult(ok=True, op=op, data={"template": template.model_dump(mode="json")})

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    @traced
    def create(self, fields: dict[str, Any]) -> ServiceResult:
        """Create a template at version 1.0.0 with the next free friendlyId."""
        op = "create_template"
        warnings: list[str] = []

        missing = [f for f in REQUIRED_FIELDS if not str(fields.get(f) or "").strip()]
        if missing:
            return ServiceResult.failure(
                op,
                VALIDATION_FAILED,
                f"Missing required field(s): {', '.join(missing)}",
                detail={"missing": missing},
            )

        try:
            templates = self.templates()
        except PersistenceError as exc:
            return ServiceResult.from_exception(op, exc)

        name = str(fields["name"]).strip()
        if any(t.name == name for t in templates):
            return ServiceResult.failure(
                op, VALIDATION_FAILED, f"A template named {name!r} already exists"
            )

        values: dict[str, Any] = {}
        for key, value in fields.items():
            if key in MUTABLE_FIELDS:
                values[key] = value
            else:
                warnings.append(f"Ignored unknown or immutable field: {key}")

        now = now_iso()
        values.update(
            id=new_template_id(),
            friendly_id=next_friendly_id(t.friendly_id for t in templates),
            name=name,
            version=INITIAL_VERSION,
            created_at=now,
            updated_at=now,
        )
        try:
            template = RuleTemplate.model_validate(values)
        except ValidationError as exc:
            return ServiceResult.failure(op, VALIDATION_FAILED, _validation_message(exc))

        try:
            self._save([*templates, template])
        except PersistenceError as exc:
            return ServiceResult.from_exception(op, exc, warnings=warnings)

        logger.info("Created template %s (%s)", template.friendly_id, template.name)
        return ServiceResult(
            ok=True,
            op=op,
            data={"template": template.model_dump(mode="json")},
            warnings=warnings,
        )

    @traced
    def update(self, template_id: str, changes: dict[str, Any]) -> ServiceResult:
        """Apply *changes*; bump the minor version if expression or action changed."""
        op = "update_template"
        warnings: list[str] = []

        try:
            templates = self.templates()
        except PersistenceError as exc:
            return ServiceResult.from_exception(op, exc)

        index = next((i for i, t in enumerate(templates) if t.id == template_id), None)
        if index is None:
            return ServiceResult.failure(
                op, NOT_FOUND, f"No template found with ID: {template_id}"
            )
        current = templates[index]

        applied: dict[str, Any] = {}
        for key, value in changes.items():
            if key in IMMUTABLE_FIELDS:
                warnings.append(f"Cannot change immutable field: {key}")
                continue
            if key not in MUTABLE_FIELDS:
                warnings.append(f"Ignored unknown field: {key}")
                continue
            applied[key] = value

        if "name" in applied:
            applied["name"] = str(applied["name"]).strip()
            if not applied["name"]:
                return ServiceResult.failure(op, VALIDATION_FAILED, "name must not be empty")
            clash = any(
                t.name == applied["name"] and t.id != current.id for t in templates
            )
            if clash:
                return ServiceResult.failure(
                    op, VALIDATION_FAILED, f"A template named {applied['name']!r} already exists"
                )
        if "expression" in applied and not str(applied["expression"] or "").strip():
            return ServiceResult.failure(op, VALIDATION_FAILED, "expression must not be empty")

        try:
            candidate = RuleTemplate.model_validate({**current.model_dump(), **applied})
        except ValidationError as exc:
            return ServiceResult.failure(op, VALIDATION_FAILED, _validation_message(exc))

        version_changed = (
            normalize_expression(candidate.expression) != normalize_expression(current.expression)
            or candidate.action != current.action
        )
        version = bump_minor(current.version) if version_changed else current.version
        updated = candidate.model_copy(update={"version": version, "updated_at": now_iso()})
        fields_changed = sorted(
            k for k in applied if getattr(updated, k) != getattr(current, k)
        )

        new_templates = list(templates)
        new_templates[index] = updated
        try:
            self._save(new_templates)
        except PersistenceError as exc:
            return ServiceResult.from_exception(op, exc, warnings=warnings)

        if version_changed:
            logger.info(
                "Template %s bumped %s -> %s", updated.friendly_id, current.version, version
            )
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "template": updated.model_dump(mode="json"),
                "version_changed": version_changed,
                "previous_version": current.version,
                "fields_changed": fields_changed,
            },
            warnings=warnings,
        )

    @traced
    def delete(self, template_id: str) -> ServiceResult:
        """Remove a template.

        Usage on live domains is not checked here; callers consult
        :meth:`DomainRuleStateIndex.usage` first and refuse if needed.
        """
        op = "delete_template"
        try:
            templates = self.templates()
        except PersistenceError as exc:
            return ServiceResult.from_exception(op, exc)

        target = next((t for t in templates if t.id == template_id), None)
        if target is None:
            return ServiceResult.failure(
                op, NOT_FOUND, f"No template found with ID: {template_id}"
            )

        try:
            self._save([t for t in templates if t.id != template_id])
        except PersistenceError as exc:
            return ServiceResult.from_exception(op, exc)

        logger.info("Deleted template %s (%s)", target.friendly_id, target.name)
        return ServiceResult(ok=True, op=op, data={"template": target.model_dump(mode="json")})
