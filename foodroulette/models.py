from . import db
from datetime import datetime

from .coupon_rules import (
    DEFAULT_HIDE_AFTER_DAYS,
    coupon_expiry,
    get_days_expired,
    is_coupon_expired,
    should_hide_coupon,
)


class User(db.Model):
    __tablename__ = "users"
    id = db.Column(db.Integer, primary_key=True)
    phone = db.Column(db.String(20), unique=True, nullable=True)
    email = db.Column(db.String(320), unique=True, nullable=True)
    device_id = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)
    screen_resolution = db.Column(db.String(32), nullable=True)
    timezone = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.now, nullable=False)
    last_signed_in = db.Column(db.DateTime, default=datetime.now, nullable=False)

    coupons = db.relationship("UserCoupon", backref="user", lazy=True)

    def to_dict(self):
        return {
            "id": self.id,
            "phone": self.phone,
            "email": self.email,
            "deviceId": self.device_id,
            "lastSignedIn": self.last_signed_in.isoformat(sep=" ", timespec="seconds") if self.last_signed_in else None,
        }


class Restaurant(db.Model):
    __tablename__ = "restaurants"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    address = db.Column(db.String(255), default="")
    phone = db.Column(db.String(32), default="")
    operating_hours = db.Column(db.Text, default="{}")  # JSON keyed by weekday name
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    coupons = db.relationship("Coupon", backref="restaurant", lazy=True)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address or "",
            "phone": self.phone or "",
        }


class Coupon(db.Model):
    __tablename__ = "coupons"
    id = db.Column(db.Integer, primary_key=True)
    restaurant_id = db.Column(db.Integer, db.ForeignKey("restaurants.id"), nullable=False)
    title = db.Column(db.String(120), nullable=False)
    description = db.Column(db.String(255), nullable=True)
    is_check_in_reward = db.Column(db.Boolean, default=False, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)


class UserCoupon(db.Model):
    """A coupon won on the wheel."""
    __tablename__ = "user_coupons"
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    coupon_id = db.Column(db.Integer, db.ForeignKey("coupons.id"), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.now, nullable=False)
    is_redeemed = db.Column(db.Boolean, default=False, nullable=False)

    coupon = db.relationship("Coupon")

    @property
    def is_check_in_reward(self):
        return bool(self.coupon and self.coupon.is_check_in_reward)

    @property
    def expires_at(self):
        return coupon_expiry(self.created_at, self.is_check_in_reward)

    def is_expired(self, at=None):
        return is_coupon_expired(self.created_at, self.is_check_in_reward, now=at)

    def days_expired(self, at=None):
        return get_days_expired(self.created_at, self.is_check_in_reward, now=at)

    def should_hide(self, max_days=DEFAULT_HIDE_AFTER_DAYS, at=None):
        return should_hide_coupon(self.created_at, max_days, self.is_check_in_reward, now=at)

    def status(self, at=None):
        if self.is_redeemed:
            return "Redeemed"
        if self.is_expired(at):
            return "Expired"
        return "Active"


class AuditLog(db.Model):
    __tablename__ = "audit_logs"
    id = db.Column(db.Integer, primary_key=True)
    timestamp = db.Column(db.DateTime, default=datetime.now, nullable=False)
    user_id = db.Column(db.Integer, nullable=True)
    action = db.Column(db.String(80))
    device_id = db.Column(db.String(64), nullable=True)
    details = db.Column(db.String(255), nullable=True)
