"""Request and response models for the Metrics Router v3 API.

Each dataclass mirrors one JSON object of the service and provides
``to_dict()`` and ``from_dict()`` for conversion. ``to_dict()`` omits fields
that are ``None`` so partial updates only send what the caller set.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

_FRACTION = re.compile(r"\.(\d+)")


def _parse_datetime(value: Any) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp; ``None`` passes through.

    Fractional seconds of any precision are padded or truncated to
    microseconds, which is all ``datetime.fromisoformat`` accepts on 3.10.
    """
    if value is None or isinstance(value, datetime):
        return value
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    return datetime.fromisoformat(text)


def _format_datetime(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat().replace("+00:00", "Z")


def _compact(d: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in d.items() if v is not None}


# ---------------------------------------------------------------------------
# Targets
# ---------------------------------------------------------------------------


@dataclass
class WriteStatus:
    """Health of metric delivery to a target."""

    status: str
    """``success`` or ``failed``."""

    last_failure: Optional[datetime] = None
    reason_for_last_failure: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "status": self.status,
                "last_failure": _format_datetime(self.last_failure),
                "reason_for_last_failure": self.reason_for_last_failure,
            }
        )

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> WriteStatus:
        return cls(
            status=d["status"],
            last_failure=_parse_datetime(d.get("last_failure")),
            reason_for_last_failure=d.get("reason_for_last_failure"),
        )


@dataclass
class Target:
    """A destination that metrics can be routed to.

    Examples:
        >>> target = Target.from_dict(response_json)
        >>> target.destination_crn
        'crn:v1:bluemix:public:sysdig-monitor:us-south:a/...::'
    """

    id: str
    """Service-assigned identifier (UUID)."""

    name: str
    """Human-readable name."""

    crn: Optional[str] = None
    destination_crn: Optional[str] = None
    """CRN of the monitoring instance receiving the metrics."""

    target_type: Optional[str] = None
    """Destination kind, e.g. ``sysdig_monitor``."""

    region: Optional[str] = None
    write_status: Optional[WriteStatus] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "id": self.id,
                "name": self.name,
                "crn": self.crn,
                "destination_crn": self.destination_crn,
                "target_type": self.target_type,
                "region": self.region,
                "write_status": self.write_status.to_dict() if self.write_status else None,
                "created_at": _format_datetime(self.created_at),
                "updated_at": _format_datetime(self.updated_at),
            }
        )

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Target:
        ws = d.get("write_status")
        return cls(
            id=d["id"],
            name=d["name"],
            crn=d.get("crn"),
            destination_crn=d.get("destination_crn"),
            target_type=d.get("target_type"),
            region=d.get("region"),
            write_status=WriteStatus.from_dict(ws) if ws else None,
            created_at=_parse_datetime(d.get("created_at")),
            updated_at=_parse_datetime(d.get("updated_at")),
        )


@dataclass
class TargetCollection:
    targets: list[Target] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"targets": [t.to_dict() for t in self.targets]}

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> TargetCollection:
        return cls(targets=[Target.from_dict(t) for t in d.get("targets", [])])


@dataclass
class TargetReference:
    """A target as embedded in routes and settings."""

    id: str
    crn: Optional[str] = None
    name: Optional[str] = None
    target_type: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "id": self.id,
                "crn": self.crn,
                "name": self.name,
                "target_type": self.target_type,
            }
        )

    @classmethod
    def from_dict(cls, d: dict[str, Any] | str) -> TargetReference:
        """Deserialize; a bare string is taken as the target ID."""
        if isinstance(d, str):
            return cls(id=d)
        return cls(
            id=d["id"],
            crn=d.get("crn"),
            name=d.get("name"),
            target_type=d.get("target_type"),
        )


@dataclass
class WarningItem:
    """One warning attached to a delete-target response."""

    code: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> WarningItem:
        return cls(code=d.get("code", ""), message=d.get("message", ""))


@dataclass
class WarningReport:
    """Body returned when a target is deleted.

    Deleting a target that routes or settings still reference succeeds, but
    the service reports each dangling reference as a warning.
    """

    warnings: list[WarningItem] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"warnings": [w.to_dict() for w in self.warnings]}

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> WarningReport:
        return cls(warnings=[WarningItem.from_dict(w) for w in d.get("warnings") or []])


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@dataclass
class InclusionFilter:
    """Selects the metrics a rule applies to.

    Examples:
        >>> InclusionFilter(operand="location", operator="is", values=["us-south"])
    """

    operand: str
    """What to match: ``location``, ``service_name``, ``service_instance``,
    ``resource_type`` or ``resource``."""

    operator: str
    """``is`` for a single value, ``in`` for several."""

    values: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"operand": self.operand, "operator": self.operator, "values": list(self.values)}

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> InclusionFilter:
        return cls(
            operand=d["operand"],
            operator=d["operator"],
            values=list(d.get("values") or []),
        )


@dataclass
class RulePrototype:
    """A routing rule as sent when creating or replacing a route."""

    target_ids: list[str]
    """IDs of the targets that matching metrics are sent to."""

    inclusion_filters: list[InclusionFilter] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "target_ids": list(self.target_ids),
            "inclusion_filters": [f.to_dict() for f in self.inclusion_filters],
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> RulePrototype:
        return cls(
            target_ids=list(d.get("target_ids") or []),
            inclusion_filters=[
                InclusionFilter.from_dict(f) for f in d.get("inclusion_filters") or []
            ],
        )


@dataclass
class Rule:
    """A routing rule as returned by the service."""

    targets: list[TargetReference] = field(default_factory=list)
    inclusion_filters: list[InclusionFilter] = field(default_factory=list)

    @property
    def target_ids(self) -> list[str]:
        return [t.id for t in self.targets]

    def to_dict(self) -> dict[str, Any]:
        return {
            "targets": [t.to_dict() for t in self.targets],
            "inclusion_filters": [f.to_dict() for f in self.inclusion_filters],
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Rule:
        raw_targets = d.get("targets")
        if raw_targets is None:
            raw_targets = d.get("target_ids") or []
        return cls(
            targets=[TargetReference.from_dict(t) for t in raw_targets],
            inclusion_filters=[
                InclusionFilter.from_dict(f) for f in d.get("inclusion_filters") or []
            ],
        )


@dataclass
class Route:
    """An ordered set of rules mapping metrics to targets."""

    id: str
    name: str
    crn: Optional[str] = None
    rules: list[Rule] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "id": self.id,
                "name": self.name,
                "crn": self.crn,
                "rules": [r.to_dict() for r in self.rules],
                "created_at": _format_datetime(self.created_at),
                "updated_at": _format_datetime(self.updated_at),
            }
        )

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Route:
        return cls(
            id=d["id"],
            name=d["name"],
            crn=d.get("crn"),
            rules=[Rule.from_dict(r) for r in d.get("rules") or []],
            created_at=_parse_datetime(d.get("created_at")),
            updated_at=_parse_datetime(d.get("updated_at")),
        )


@dataclass
class RouteCollection:
    routes: list[Route] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"routes": [r.to_dict() for r in self.routes]}

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> RouteCollection:
        return cls(routes=[Route.from_dict(r) for r in d.get("routes", [])])


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@dataclass
class Settings:
    """Account-wide routing configuration."""

    default_targets: list[TargetReference] = field(default_factory=list)
    """Targets that receive metrics no route matches."""

    permitted_target_regions: list[str] = field(default_factory=list)
    """Regions where targets may be created. Empty means unrestricted."""

    metadata_region_primary: Optional[str] = None
    metadata_region_backup: Optional[str] = None
    private_api_endpoint_only: Optional[bool] = None

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "default_targets": [t.to_dict() for t in self.default_targets],
                "permitted_target_regions": list(self.permitted_target_regions),
                "metadata_region_primary": self.metadata_region_primary,
                "metadata_region_backup": self.metadata_region_backup,
                "private_api_endpoint_only": self.private_api_endpoint_only,
            }
        )

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Settings:
        return cls(
            default_targets=[
                TargetReference.from_dict(t) for t in d.get("default_targets") or []
            ],
            permitted_target_regions=list(d.get("permitted_target_regions") or []),
            metadata_region_primary=d.get("metadata_region_primary"),
            metadata_region_backup=d.get("metadata_region_backup"),
            private_api_endpoint_only=d.get("private_api_endpoint_only"),
        )
