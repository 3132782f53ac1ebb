"""BaseService — foundation for all rulectl services.

Every service receives a :class:`Workspace` at construction time. The
Workspace provides the JSON store, the provider client and batch policies.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rulectl.infrastructure.workspace import Workspace


class BaseService:
    """Abstract base for all service-layer classes.

    Usage::

        class TemplateVersionLedger(BaseService):
            def create(self, fields: dict[str, Any]) -> ServiceResult:
                store = self._workspace.store
                ...
    """

    def __init__(self, workspace: Workspace) -> None:
        self._workspace = workspace
