"""
Navigation State
================

The single source of truth for which dashboard is showing: view, tab,
status filter and property. Round-trips through query parameters so any
dashboard state is deep-linkable.
"""

from dataclasses import asdict, dataclass, replace
from typing import Mapping, Optional
from urllib.parse import parse_qsl, urlencode

from facilityops.config import VALID_STATUSES
from facilityops.core import ValidationException
from facilityops.directory.domain import Role

VIEWS = ("tenant", "resolver", "admin")
TABS = ("active", "completed", "all")

DEFAULT_VIEW = {
    Role.TENANT: "tenant",
    Role.RESOLVER: "resolver",
    Role.PROPERTY_ADMIN: "admin",
    Role.ORG_ADMIN: "admin",
    Role.SYSTEM: "admin",
}


@dataclass(frozen=True)
class NavigationState:
    view: str = "tenant"
    tab: str = "active"
    status_filter: Optional[str] = None
    property_id: Optional[str] = None

    def __post_init__(self):
        if self.view not in VIEWS:
            raise ValidationException(f"Unknown view '{self.view}'", {"allowed": list(VIEWS)})
        if self.tab not in TABS:
            raise ValidationException(f"Unknown tab '{self.tab}'", {"allowed": list(TABS)})
        if self.status_filter is not None and self.status_filter not in VALID_STATUSES:
            raise ValidationException(f"Unknown status '{self.status_filter}'", {"allowed": VALID_STATUSES})

    @classmethod
    def for_role(cls, role: Role, **overrides) -> "NavigationState":
        return cls(view=DEFAULT_VIEW[role], **overrides)

    @classmethod
    def from_query(cls, params: Mapping[str, str], role: Optional[Role] = None) -> "NavigationState":
        """Parse query parameters; missing ones fall back to the role's defaults."""
        view = params.get("view") or (DEFAULT_VIEW[role] if role is not None else "tenant")
        return cls(
            view=view,
            tab=params.get("tab") or "active",
            status_filter=params.get("status") or None,
            property_id=params.get("property_id") or None,
        )

    @classmethod
    def from_query_string(cls, query: str, role: Optional[Role] = None) -> "NavigationState":
        return cls.from_query(dict(parse_qsl(query)), role)

    def to_query(self) -> dict:
        params = {"view": self.view, "tab": self.tab}
        if self.status_filter:
            params["status"] = self.status_filter
        if self.property_id:
            params["property_id"] = self.property_id
        return params

    def to_query_string(self) -> str:
        return urlencode(self.to_query())

    def with_changes(self, **changes) -> "NavigationState":
        return replace(self, **changes)

    def to_dict(self) -> dict:
        return asdict(self)
