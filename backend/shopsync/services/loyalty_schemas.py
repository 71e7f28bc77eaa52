from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date
from typing import Any

from ..errors import ValidationError
from shopsync.time_utils import PERIOD_UNITS, parse_iso_date

REDEMPTION_FIXED_VALUE = "fixedValue"
REDEMPTION_PERCENTAGE = "percentage"
REDEMPTION_METHODS = (REDEMPTION_FIXED_VALUE, REDEMPTION_PERCENTAGE)


def _to_int(value: Any, field_name: str, errors: list[str], *, required: bool = True) -> int | None:
    if value is None or value == "":
        if required:
            errors.append(f"{field_name} is required")
        return None
    if isinstance(value, bool):
        errors.append(f"{field_name} must be an integer")
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    text = str(value).strip()
    if text.lstrip("-").isdigit():
        return int(text)
    errors.append(f"{field_name} must be an integer")
    return None


def _to_float(value: Any, field_name: str, errors: list[str]) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        errors.append(f"{field_name} is required")
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        errors.append(f"{field_name} must be a number")
        return None


def _to_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


def _check_unit(value: Any, field_name: str, errors: list[str]) -> str:
    unit = _to_text(value) or ""
    if unit not in PERIOD_UNITS:
        errors.append(f"{field_name} must be one of {list(PERIOD_UNITS)}")
    return unit


def _raise_if(errors: list[str], message: str) -> None:
    if errors:
        raise ValidationError(message, details={"errors": errors})


@dataclass
class RedemptionRule:
    """points are exchanged in units of `points`; value is cents (fixedValue) or a percent (percentage)."""
    method: str = REDEMPTION_FIXED_VALUE
    points: int = 1
    value: int | float = 100

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RedemptionRule":
        errors: list[str] = []
        method = _to_text(data.get("method"))
        if method not in REDEMPTION_METHODS:
            errors.append(f"method must be one of {list(REDEMPTION_METHODS)}")
        points = _to_int(data.get("points"), "points", errors)
        if points is not None and points <= 0:
            errors.append("points must be positive")
        if method == REDEMPTION_PERCENTAGE:
            value = _to_float(data.get("value"), "value", errors)
        else:
            value = _to_int(data.get("value"), "value", errors)
        if value is not None and value < 0:
            errors.append("value must not be negative")
        _raise_if(errors, "Invalid redemption rule")
        return cls(method=method, points=points, value=value)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ExpirySettings:
    enabled: bool = False
    inactivity_period_value: int = 12
    inactivity_period_unit: str = "months"
    points_lifespan_value: int = 24
    points_lifespan_unit: str = "months"
    reminder_period_value: int = 1
    reminder_period_unit: str = "months"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExpirySettings":
        errors: list[str] = []
        values = {}
        for prefix in ("inactivity_period", "points_lifespan", "reminder_period"):
            amount = _to_int(data.get(f"{prefix}_value"), f"{prefix}_value", errors)
            if amount is not None and amount <= 0:
                errors.append(f"{prefix}_value must be positive")
            values[f"{prefix}_value"] = amount
            values[f"{prefix}_unit"] = _check_unit(data.get(f"{prefix}_unit"), f"{prefix}_unit", errors)
        _raise_if(errors, "Invalid loyalty expiry settings")
        return cls(enabled=bool(data.get("enabled", False)), **values)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class EarningRuleSpec:
    min_spend_cents: int
    max_spend_cents: int | None
    points_per_hundred: float

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EarningRuleSpec":
        errors: list[str] = []
        min_spend = _to_int(data.get("min_spend_cents"), "min_spend_cents", errors)
        max_spend = _to_int(data.get("max_spend_cents"), "max_spend_cents", errors, required=False)
        rate = _to_float(data.get("points_per_hundred"), "points_per_hundred", errors)
        if min_spend is not None and min_spend < 0:
            errors.append("min_spend_cents must not be negative")
        if min_spend is not None and max_spend is not None and max_spend < min_spend:
            errors.append("max_spend_cents must be >= min_spend_cents")
        if rate is not None and rate < 0:
            errors.append("points_per_hundred must not be negative")
        _raise_if(errors, "Invalid earning rule")
        return cls(min_spend_cents=min_spend, max_spend_cents=max_spend, points_per_hundred=rate)


@dataclass
class TierSpec:
    id: str
    name: str
    min_visits: int
    min_spend_cents: int
    period_value: int
    period_unit: str
    points_multiplier: float
    rank: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TierSpec":
        errors: list[str] = []
        tier_id = _to_text(data.get("id"))
        name = _to_text(data.get("name"))
        if not tier_id:
            errors.append("id is required")
        if not name:
            errors.append("name is required")
        min_visits = _to_int(data.get("min_visits", 0), "min_visits", errors)
        min_spend = _to_int(data.get("min_spend_cents", 0), "min_spend_cents", errors)
        period_value = _to_int(data.get("period_value"), "period_value", errors)
        period_unit = _check_unit(data.get("period_unit"), "period_unit", errors)
        multiplier = _to_float(data.get("points_multiplier", 1), "points_multiplier", errors)
        rank = _to_int(data.get("rank"), "rank", errors)
        if period_value is not None and period_value <= 0:
            errors.append("period_value must be positive")
        if (min_visits or 0) < 0 or (min_spend or 0) < 0:
            errors.append("thresholds must not be negative")
        if multiplier is not None and multiplier <= 0:
            errors.append("points_multiplier must be positive")
        _raise_if(errors, "Invalid customer tier")
        return cls(
            id=tier_id,
            name=name,
            min_visits=min_visits,
            min_spend_cents=min_spend,
            period_value=period_value,
            period_unit=period_unit,
            points_multiplier=multiplier,
            rank=rank,
        )


@dataclass
class PromotionSpec:
    name: str
    start_date: date
    end_date: date
    multiplier: float

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PromotionSpec":
        errors: list[str] = []
        name = _to_text(data.get("name"))
        if not name:
            errors.append("name is required")
        try:
            start = parse_iso_date(data.get("start_date"))
            end = parse_iso_date(data.get("end_date"))
        except (AttributeError, TypeError, ValueError):
            start = end = None
            errors.append("start_date and end_date must be YYYY-MM-DD")
        else:
            if start is None or end is None:
                errors.append("start_date and end_date are required")
        if start and end and end < start:
            errors.append("end_date must not be before start_date")
        multiplier = _to_float(data.get("multiplier"), "multiplier", errors)
        if multiplier is not None and multiplier <= 0:
            errors.append("multiplier must be positive")
        _raise_if(errors, "Invalid promotion")
        return cls(name=name, start_date=start, end_date=end, multiplier=multiplier)
