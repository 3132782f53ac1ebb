"""Edge/WAF provider client.

:class:`Provider` is the port the services depend on. :class:`CloudflareProvider`
implements it over the Cloudflare v4 REST API with ``httpx.AsyncClient``.

Only the zone-level custom firewall phase is touched; managed rulesets and
other phases are never read or modified.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from rulectl.domain.models import ProviderRule, Zone
from rulectl.errors import ProviderError

logger = logging.getLogger(__name__)

CUSTOM_PHASE = "http_request_firewall_custom"
DEFAULT_API_BASE = "https://api.cloudflare.com/client/v4"


class Provider(Protocol):
    """Operations the engine needs from the provider. All calls are async."""

    async def list_zones(self, page: int = 1, per_page: int = 50) -> tuple[list[Zone], int]:
        """Return ``(zones, total_pages)`` for one page."""
        ...

    async def get_security_rules(self, zone_id: str) -> list[ProviderRule]:
        """Return every rule in the zone's custom firewall phase."""
        ...

    async def add_rule(self, zone_id: str, rule: dict[str, Any]) -> dict[str, Any]:
        """Append *rule* to the zone's custom phase; return the resulting ruleset."""
        ...

    async def remove_rule(self, zone_id: str, rule_id: str) -> None:
        """Remove *rule_id* from whichever custom ruleset holds it."""
        ...


async def iter_all_zones(provider: Provider, *, per_page: int = 50) -> AsyncIterator[Zone]:
    """Yield every zone, walking pages until ``total_pages`` is reached."""
    page = 1
    while True:
        zones, total_pages = await provider.list_zones(page, per_page)
        for zone in zones:
            yield zone
        if page >= total_pages or not zones:
            return
        page += 1


async def zone_name_map(provider: Provider, *, per_page: int = 50) -> dict[str, str]:
    """Map every zone id to its domain name."""
    return {zone.id: zone.name async for zone in iter_all_zones(provider, per_page=per_page)}


def _retry_after(response: httpx.Response) -> float | None:
    raw = response.headers.get("retry-after")
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


class CloudflareProvider:
    """Cloudflare v4 API client for zone custom firewall rules."""

    def __init__(
        self,
        api_token: str,
        *,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = 30.0,
        phase: str = CUSTOM_PHASE,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.phase = phase
        self._client = httpx.AsyncClient(
            base_url=api_base.rstrip("/"),
            timeout=httpx.Timeout(timeout),
            headers={
                "Authorization": f"Bearer {api_token}",
                "Content-Type": "application/json",
            },
            transport=transport,
        )

    async def __aenter__(self) -> CloudflareProvider:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        """Issue a request and unwrap the v4 envelope.

        Raises:
            ProviderError: on any httpx request failure, non-2xx status, or
                an envelope with ``success: false``.
        """
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            msg = f"{method} {path} failed: {exc}"
            raise ProviderError(msg) from exc

        if response.is_error:
            msg = f"{method} {path} returned HTTP {response.status_code}"
            raise ProviderError(
                msg,
                status_code=response.status_code,
                retry_after=_retry_after(response),
                detail={"body": response.text[:500]},
            )

        try:
            body: dict[str, Any] = response.json()
        except ValueError as exc:
            msg = f"{method} {path} returned invalid JSON"
            raise ProviderError(msg, status_code=response.status_code) from exc

        if not body.get("success", False):
            errors = body.get("errors") or []
            text = "; ".join(str(e.get("message", e)) for e in errors) or "unknown error"
            msg = f"{method} {path} rejected: {text}"
            raise ProviderError(msg, status_code=response.status_code)
        return body

    # ------------------------------------------------------------------
    # Zones
    # ------------------------------------------------------------------

    async def list_zones(self, page: int = 1, per_page: int = 50) -> tuple[list[Zone], int]:
        body = await self._request("GET", "/zones", params={"page": page, "per_page": per_page})
        try:
            zones = [Zone.model_validate(z) for z in body.get("result") or []]
        except ValidationError as exc:
            msg = f"Malformed zone listing: {exc.error_count()} errors"
            raise ProviderError(msg) from exc
        info = body.get("result_info") or {}
        return zones, int(info.get("total_pages") or 1)

    # ------------------------------------------------------------------
    # Rulesets
    # ------------------------------------------------------------------

    async def _phase_rulesets(self, zone_id: str) -> list[dict[str, Any]]:
        body = await self._request("GET", f"/zones/{zone_id}/rulesets")
        return [rs for rs in body.get("result") or [] if rs.get("phase") == self.phase]

    async def _ruleset(self, zone_id: str, ruleset_id: str) -> dict[str, Any]:
        body = await self._request("GET", f"/zones/{zone_id}/rulesets/{ruleset_id}")
        return dict(body.get("result") or {})

    async def _put_rules(
        self, zone_id: str, ruleset: dict[str, Any], rules: list[dict[str, Any]]
    ) -> dict[str, Any]:
        payload = {
            "name": ruleset.get("name", f"Custom {self.phase} rules"),
            "description": ruleset.get("description", ""),
            "kind": ruleset.get("kind", "zone"),
            "phase": self.phase,
            "rules": rules,
        }
        body = await self._request(
            "PUT", f"/zones/{zone_id}/rulesets/{ruleset['id']}", json=payload
        )
        return dict(body.get("result") or {})

    async def get_security_rules(self, zone_id: str) -> list[ProviderRule]:
        rules: list[ProviderRule] = []
        for summary in await self._phase_rulesets(zone_id):
            detailed = await self._ruleset(zone_id, summary["id"])
            for raw in detailed.get("rules") or []:
                try:
                    rules.append(
                        ProviderRule.model_validate({**raw, "ruleset_id": summary["id"]})
                    )
                except ValidationError as exc:
                    msg = f"Malformed rule in zone {zone_id} ruleset {summary['id']}"
                    raise ProviderError(msg) from exc
        logger.debug("Zone %s: %d custom rules", zone_id, len(rules))
        return rules

    async def add_rule(self, zone_id: str, rule: dict[str, Any]) -> dict[str, Any]:
        rulesets = await self._phase_rulesets(zone_id)
        if not rulesets:
            payload = {
                "name": f"Custom {self.phase} rules",
                "kind": "zone",
                "phase": self.phase,
                "rules": [rule],
            }
            body = await self._request("POST", f"/zones/{zone_id}/rulesets", json=payload)
            return dict(body.get("result") or {})

        target = await self._ruleset(zone_id, rulesets[0]["id"])
        existing = list(target.get("rules") or [])
        return await self._put_rules(zone_id, target, [*existing, rule])

    async def remove_rule(self, zone_id: str, rule_id: str) -> None:
        for summary in await self._phase_rulesets(zone_id):
            ruleset = await self._ruleset(zone_id, summary["id"])
            rules = list(ruleset.get("rules") or [])
            remaining = [r for r in rules if r.get("id") != rule_id]
            if len(remaining) != len(rules):
                await self._put_rules(zone_id, ruleset, remaining)
                return
        msg = f"Rule {rule_id} not found in zone {zone_id}"
        raise ProviderError(msg, status_code=404)
