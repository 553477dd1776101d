"""Shared data models for the price feed.

CRITICAL: All prices and thresholds use Decimal. Never use float for values
that are compared against thresholds or hashed.
"""

import time
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from pricefeed.exceptions import ValidationError


def to_decimal(raw: Any, what: str = "value") -> Decimal:
    """Convert a raw JSON/number value to Decimal via its string form.

    Floats go through str() so that 1800.5 becomes Decimal("1800.5") rather
    than its binary expansion.

    Raises:
        ValidationError: If the value is missing, not numeric, or not finite.
    """
    if raw is None or isinstance(raw, bool):
        raise ValidationError(f"{what} is required")
    try:
        value = raw if isinstance(raw, Decimal) else Decimal(str(raw).strip())
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"{what} is not a number: {raw!r}") from e
    if not value.is_finite():
        raise ValidationError(f"{what} must be finite: {raw!r}")
    return value


def validate_asset(asset: str | None, supported: Iterable[str]) -> str:
    """Normalise an asset id and check it against the supported set."""
    if not asset:
        raise ValidationError("asset is required")
    normalised = asset.strip().lower()
    if normalised not in supported:
        raise ValidationError(f"Unsupported asset: {asset}")
    return normalised


@dataclass(frozen=True, slots=True)
class PricePoint:
    """A single timestamped price observation. Immutable."""

    value: Decimal
    observed_at: float = field(default_factory=time.time)  # Unix seconds

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", to_decimal(self.value, "price"))
        if self.value <= 0:
            raise ValidationError(f"price must be positive, got {self.value}")

    def to_dict(self) -> dict:
        """Serialize for JSON / WebSocket transmission."""
        return {"price": str(self.value), "observed_at": self.observed_at}


@dataclass(frozen=True, slots=True)
class AlertSubscription:
    """Threshold alert for one asset. At most one is active per asset."""

    asset: str
    threshold: Decimal


@dataclass(frozen=True, slots=True)
class AlertEvent:
    """Emitted when a newer price is strictly above the subscribed threshold."""

    asset: str
    value: Decimal
    threshold: Decimal
    observed_at: float


@dataclass
class RefreshResult:
    """Outcome of refreshing one asset inside a batch."""

    asset: str
    point: PricePoint | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.point is not None
