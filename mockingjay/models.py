"""Data models for endpoint contracts, check results, and monkey behaviors."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(frozen=True)
class RequestSpec:
    uri: str
    method: str = "GET"
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None


@dataclass(frozen=True)
class ResponseSpec:
    code: int
    body: str = ""
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Endpoint:
    name: str
    request: RequestSpec
    response: ResponseSpec


@dataclass(frozen=True)
class CheckResult:
    name: str
    success: bool
    diagnostic: str = ""  # empty on success
    transport_error: bool = False


@dataclass
class CompatibilityReport:
    results: List[CheckResult] = field(default_factory=list)
    passed: int = 0
    failed: int = 0
    narrative: str = ""

    @property
    def compatible(self) -> bool:
        return self.failed == 0


_EFFECT_FIELDS = ("body", "delay", "status", "garbage")


@dataclass(frozen=True)
class Behavior:
    frequency: float
    body: Optional[str] = None
    delay: Optional[int] = None  # milliseconds
    status: Optional[int] = None
    garbage: Optional[int] = None  # byte count

    def effects(self) -> List[str]:
        """Names of the effect fields this behavior sets."""
        return [name for name in _EFFECT_FIELDS if getattr(self, name) is not None]

    def describe(self) -> str:
        parts = [f"{name}={getattr(self, name)!r}" for name in self.effects()]
        if not parts:
            parts.append("no-op")
        return f"frequency={self.frequency} " + " ".join(parts)
