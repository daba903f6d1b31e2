"""App registry — per-tenant commission rates and timing windows.

An app scopes every order: it fixes the dispute, refuse and claim
windows and the commission percentages paid to moderators and to the
app owner. The engine trusts these values without re-checking them, so
every write is validated here against the policy bounds first.

Invariants:
- app_id is assigned sequentially from 1 and never changes.
- Only the current owner can modify an app (including handing it over).
- Bounded fields are validated on every write; a rejected write leaves
  the app untouched.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Optional

from custodian.errors import InvalidArgument, Unauthorized, UnknownApp
from custodian.models.escrow import App
from custodian.policy.resolver import APP_BOUNDED_FIELDS, PolicyResolver

_MUTABLE_FIELDS = frozenset({"name", "uri", "owner", *APP_BOUNDED_FIELDS})


class AppRegistry:
    """Registry of tenant apps.

    Usage:
        registry = AppRegistry(resolver)
        app = registry.register_app("alice", "Shop", "https://shop", ...)
        registry.update_app(app.app_id, "alice", owner_commission_pct=3)
    """

    def __init__(self, resolver: PolicyResolver) -> None:
        self._resolver = resolver
        self._apps: dict[int, App] = {}
        self._next_id = 1

    def register_app(
        self,
        owner: str,
        name: str,
        uri: str,
        dispute_window_seconds: int,
        refuse_window_seconds: int,
        claim_window_seconds: int,
        moderator_commission_pct: int,
        owner_commission_pct: int,
        now: Optional[datetime] = None,
    ) -> App:
        """Create a new app owned by ``owner``.

        Raises InvalidArgument if any field is blank or out of bounds.
        """
        if now is None:
            now = datetime.now(timezone.utc)
        candidate = App(
            app_id=self._next_id,
            owner=owner,
            name=name,
            uri=uri,
            dispute_window_seconds=dispute_window_seconds,
            refuse_window_seconds=refuse_window_seconds,
            claim_window_seconds=claim_window_seconds,
            moderator_commission_pct=moderator_commission_pct,
            owner_commission_pct=owner_commission_pct,
            created_utc=now,
        )
        self._validate(candidate)
        self._apps[candidate.app_id] = candidate
        self._next_id += 1
        return candidate

    def update_app(self, app_id: int, caller: str, **changes: Any) -> App:
        """Apply ``changes`` to an app on behalf of its current owner.

        Validation runs on a copy, so a rejected update changes nothing.
        """
        app = self.get_app(app_id)
        if caller != app.owner:
            raise Unauthorized(f"Only the owner of app {app_id} can modify it")
        unknown = set(changes) - _MUTABLE_FIELDS
        if unknown:
            raise InvalidArgument(
                f"Fields cannot be modified: {', '.join(sorted(unknown))}"
            )
        candidate = replace(app, **changes)
        self._validate(candidate)
        self._apps[app_id] = candidate
        return candidate

    def get_app(self, app_id: int) -> App:
        app = self._apps.get(app_id)
        if app is None:
            raise UnknownApp(f"Unknown app ID: {app_id}")
        return app

    def has_app(self, app_id: int) -> bool:
        return app_id in self._apps

    def list_apps(self) -> list[App]:
        return [self._apps[k] for k in sorted(self._apps)]

    def _validate(self, app: App) -> None:
        if not app.owner or not app.owner.strip():
            raise InvalidArgument("App owner must be non-empty")
        if not app.name or not app.name.strip():
            raise InvalidArgument("App name must be non-empty")
        for field_name in APP_BOUNDED_FIELDS:
            bound = self._resolver.app_bound(field_name)
            value = getattr(app, field_name)
            if not bound.contains(value):
                raise InvalidArgument(
                    f"{field_name} must be in {bound.describe()}, got {value!r}"
                )
