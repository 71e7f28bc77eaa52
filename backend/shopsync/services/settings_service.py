"""
Loyalty configuration service

Earning rules, redemption rule, customer tiers and expiry settings are
replaced wholesale by the settings screen. Each replacement is committed in
the same transaction as a full tier re-evaluation, so no customer is left
pointing at a tier computed from the old definitions.

Promotions are edited one at a time and do not affect tiers.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from flask import current_app

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import CustomerTier, EarningRule, LoyaltySetting, Promotion
from .concurrency import run_in_transaction
from .loyalty_schemas import EarningRuleSpec, ExpirySettings, PromotionSpec, RedemptionRule, TierSpec
from .tier_service import ranked_tiers, refresh_all_tiers


SETTING_REDEMPTION_RULE = "loyalty.redemption_rule"
SETTING_EXPIRY = "loyalty.expiry_settings"
SETTING_LAST_MAINTENANCE_DATE = "loyalty.maintenance_last_run_date"


# =============================================================================
# KEY-VALUE SETTINGS
# =============================================================================

def get_setting(key: str, default: Any = None) -> Any:
    row = db.session.get(LoyaltySetting, key)
    if row is None:
        return default
    return row.value


def set_setting(key: str, value: Any) -> LoyaltySetting:
    """Upsert a setting inside the caller's transaction."""
    row = db.session.get(LoyaltySetting, key)
    if row is None:
        row = LoyaltySetting(key=key, value=value)
        db.session.add(row)
    else:
        row.value = value
    return row


def get_redemption_rule() -> RedemptionRule:
    stored = get_setting(SETTING_REDEMPTION_RULE)
    if stored is None:
        return RedemptionRule()
    return RedemptionRule.from_dict(stored)


def get_expiry_settings() -> ExpirySettings:
    stored = get_setting(SETTING_EXPIRY)
    if stored is None:
        return ExpirySettings()
    return ExpirySettings.from_dict(stored)


# =============================================================================
# READ
# =============================================================================

def list_earning_rules() -> list[EarningRule]:
    return db.session.query(EarningRule).order_by(EarningRule.position.asc(), EarningRule.id.asc()).all()


def list_tiers() -> list[CustomerTier]:
    return ranked_tiers()


def list_promotions() -> list[Promotion]:
    return db.session.query(Promotion).order_by(Promotion.id.asc()).all()


# =============================================================================
# CONFIGURATION REPLACEMENT (each followed by a tier pass)
# =============================================================================

def update_earning_rules(rules: list[dict], now: datetime | None = None) -> list[EarningRule]:
    """Replace the earning brackets; stored positions follow min spend ascending."""
    if not isinstance(rules, list):
        raise ValidationError("rules must be a list")
    specs = sorted((EarningRuleSpec.from_dict(r) for r in rules), key=lambda s: s.min_spend_cents)

    def _op():
        db.session.query(EarningRule).delete()
        rows = [
            EarningRule(
                position=position,
                min_spend_cents=spec.min_spend_cents,
                max_spend_cents=spec.max_spend_cents,
                points_per_hundred=spec.points_per_hundred,
            )
            for position, spec in enumerate(specs)
        ]
        db.session.add_all(rows)
        db.session.flush()
        refresh_all_tiers(now)
        return rows

    rows = run_in_transaction(_op)
    current_app.logger.info("Earning rules replaced (%s bracket(s))", len(rows))
    return rows


def update_redemption_rule(rule: dict, now: datetime | None = None) -> RedemptionRule:
    parsed = RedemptionRule.from_dict(rule or {})

    def _op():
        set_setting(SETTING_REDEMPTION_RULE, parsed.to_dict())
        refresh_all_tiers(now)
        return parsed

    run_in_transaction(_op)
    current_app.logger.info("Redemption rule updated: %s", parsed.to_dict())
    return parsed


def update_loyalty_expiry_settings(settings: dict, now: datetime | None = None) -> ExpirySettings:
    parsed = ExpirySettings.from_dict(settings or {})

    def _op():
        set_setting(SETTING_EXPIRY, parsed.to_dict())
        refresh_all_tiers(now)
        return parsed

    run_in_transaction(_op)
    current_app.logger.info("Loyalty expiry settings updated (enabled=%s)", parsed.enabled)
    return parsed


def update_customer_tiers(tiers: list[dict], now: datetime | None = None) -> list[CustomerTier]:
    """Replace every tier definition and re-evaluate every customer."""
    if not isinstance(tiers, list):
        raise ValidationError("tiers must be a list")
    specs = [TierSpec.from_dict(t) for t in tiers]
    ids = [spec.id for spec in specs]
    if len(set(ids)) != len(ids):
        raise ValidationError("Tier ids must be unique", details={"ids": ids})

    def _op():
        db.session.query(CustomerTier).delete()
        db.session.add_all(
            CustomerTier(
                id=spec.id,
                name=spec.name,
                min_visits=spec.min_visits,
                min_spend_cents=spec.min_spend_cents,
                period_value=spec.period_value,
                period_unit=spec.period_unit,
                points_multiplier=spec.points_multiplier,
                rank=spec.rank,
            )
            for spec in specs
        )
        db.session.flush()
        return refresh_all_tiers(now)

    changed = run_in_transaction(_op)
    current_app.logger.info("Customer tiers replaced (%s tier(s)); %s customer(s) moved", len(specs), changed)
    return list_tiers()


# =============================================================================
# PROMOTIONS
# =============================================================================

def add_promotion(data: dict) -> Promotion:
    spec = PromotionSpec.from_dict(data or {})

    def _op():
        promo = Promotion(
            name=spec.name,
            start_date=spec.start_date,
            end_date=spec.end_date,
            multiplier=spec.multiplier,
        )
        db.session.add(promo)
        db.session.flush()
        return promo

    return run_in_transaction(_op)


def update_promotion(promo_id: int, data: dict) -> Promotion:
    spec = PromotionSpec.from_dict(data or {})

    def _op():
        promo = db.session.get(Promotion, promo_id)
        if not promo:
            raise NotFoundError(f"Promotion {promo_id} not found")
        promo.name = spec.name
        promo.start_date = spec.start_date
        promo.end_date = spec.end_date
        promo.multiplier = spec.multiplier
        return promo

    return run_in_transaction(_op)


def delete_promotion(promo_id: int) -> None:
    def _op():
        promo = db.session.get(Promotion, promo_id)
        if not promo:
            raise NotFoundError(f"Promotion {promo_id} not found")
        db.session.delete(promo)

    run_in_transaction(_op)


# =============================================================================
# DEFAULTS
# =============================================================================

def ensure_loyalty_defaults() -> None:
    """
    Seed the default configuration where none exists.

    Safe to call repeatedly (idempotent): one open-ended 1-point-per-100
    bracket, 1 point = 1 currency unit, expiry disabled, and a rank-0 base
    tier with zero thresholds.
    """
    def _op():
        if db.session.query(EarningRule).count() == 0:
            db.session.add(EarningRule(position=0, min_spend_cents=0, max_spend_cents=None, points_per_hundred=1.0))
        if get_setting(SETTING_REDEMPTION_RULE) is None:
            set_setting(SETTING_REDEMPTION_RULE, RedemptionRule().to_dict())
        if get_setting(SETTING_EXPIRY) is None:
            set_setting(SETTING_EXPIRY, ExpirySettings().to_dict())
        if db.session.query(CustomerTier).count() == 0:
            db.session.add(CustomerTier(
                id=current_app.config.get("BASE_TIER_ID", "base-tier"),
                name="Standard",
                min_visits=0,
                min_spend_cents=0,
                period_value=12,
                period_unit="months",
                points_multiplier=1.0,
                rank=0,
            ))

    run_in_transaction(_op)
