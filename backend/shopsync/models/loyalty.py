from __future__ import annotations

from ..extensions import db
from .types import UTCDateTime
from shopsync.time_utils import to_utc_z


class EarningRule(db.Model):
    """
    Spend bracket mapping to a points-per-100 earning rate.

    position is assigned when the rule set is replaced (min spend
    ascending) so lookups walk rows in a fixed order; first match wins.
    """
    __tablename__ = "earning_rules"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    position = db.Column(db.Integer, nullable=False, index=True)

    min_spend_cents = db.Column(db.Integer, nullable=False, default=0)
    max_spend_cents = db.Column(db.Integer, nullable=True)  # NULL = unbounded
    points_per_hundred = db.Column(db.Float, nullable=False, default=1.0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "position": self.position,
            "min_spend_cents": self.min_spend_cents,
            "max_spend_cents": self.max_spend_cents,
            "points_per_hundred": self.points_per_hundred,
        }


class Promotion(db.Model):
    """
    Date-bounded points multiplier.

    start_date and end_date are inclusive calendar days. When promotions
    overlap, the earliest stored one wins.
    """
    __tablename__ = "promotions"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    multiplier = db.Column(db.Float, nullable=False, default=1.0)

    created_at = db.Column(UTCDateTime, nullable=False, server_default=db.func.now())

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "multiplier": self.multiplier,
            "created_at": to_utc_z(self.created_at),
        }


class CustomerTier(db.Model):
    """
    Loyalty tier unlocked by spend and visits inside a rolling window.

    Higher rank is evaluated first. A rank-0 tier with zero thresholds
    guarantees every customer matches something.
    """
    __tablename__ = "customer_tiers"

    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(128), nullable=False)

    min_visits = db.Column(db.Integer, nullable=False, default=0)
    min_spend_cents = db.Column(db.Integer, nullable=False, default=0)
    period_value = db.Column(db.Integer, nullable=False, default=12)
    period_unit = db.Column(db.String(8), nullable=False, default="months")  # days, months, years

    points_multiplier = db.Column(db.Float, nullable=False, default=1.0)
    rank = db.Column(db.Integer, nullable=False, default=0, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "min_visits": self.min_visits,
            "min_spend_cents": self.min_spend_cents,
            "period_value": self.period_value,
            "period_unit": self.period_unit,
            "points_multiplier": self.points_multiplier,
            "rank": self.rank,
        }


class LoyaltySetting(db.Model):
    """
    Key-value loyalty configuration.

    Holds the redemption rule, the expiry settings and the date the daily
    maintenance pass last ran.
    """
    __tablename__ = "loyalty_settings"

    key = db.Column(db.String(128), primary_key=True)
    value = db.Column(db.JSON, nullable=True)

    updated_at = db.Column(UTCDateTime, nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self):
        return {
            "key": self.key,
            "value": self.value,
            "updated_at": to_utc_z(self.updated_at),
        }
