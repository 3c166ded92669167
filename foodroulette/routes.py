# foodroulette/routes.py
import io
import logging
import time
from datetime import datetime

from flask import Blueprint, current_app, jsonify, request, send_file, session
from sqlalchemy.exc import SQLAlchemyError
import pandas as pd

from . import db
from .device import LoginPrefill, LoginValidationError, SessionStore, validate_login_payload
from .meal_periods import FALLBACK_ICON, FALLBACK_LABEL, TAIPEI, filter_open_restaurants, primary_meal_period, taipei_clock
from .models import AuditLog, Restaurant, User, UserCoupon
from .offline_cache import service_worker_config
from .share import (
    ShareCouponData,
    clipboard_text,
    facebook_share_url,
    generate_share_text,
    line_share_url,
    native_share_payload,
)
from .utils import parse_timestamp

logger = logging.getLogger(__name__)

bp = Blueprint("main", __name__)

SESSION_USER_KEY = "user_id"

_EXPORT_COLS = [
    "id",
    "coupon_title",
    "restaurant_name",
    "is_check_in_reward",
    "created_at",
    "expires_at",
    "days_expired",
    "status",
]


class BadTimestamp(ValueError):
    pass


# --------------------
# Small helpers
# --------------------
def _error(message, status):
    return jsonify({"ok": False, "message": message}), status


def _requested_instant():
    """The ?at= override, or None for "now"."""
    raw = request.args.get("at")
    if not raw:
        return None
    parsed = parse_timestamp(raw)
    if parsed is None:
        raise BadTimestamp(raw)
    # both zone conversions used downstream must be representable
    try:
        parsed.astimezone(TAIPEI)
        parsed.astimezone()
    except (OverflowError, ValueError, OSError):
        raise BadTimestamp(raw)
    return parsed


def _local_naive(at):
    # coupon timestamps are stored as naive host-local datetimes
    if at is None or at.tzinfo is None:
        return at
    return at.astimezone().replace(tzinfo=None)


def _current_user():
    user_id = session.get(SESSION_USER_KEY)
    if user_id is None:
        return None
    return db.session.get(User, user_id)


def _user_coupons(user):
    return UserCoupon.query.filter_by(user_id=user.id).order_by(UserCoupon.created_at.desc()).all()


def _share_data(uc):
    coupon = uc.coupon
    restaurant = coupon.restaurant if coupon else None
    return ShareCouponData(
        coupon_title=coupon.title if coupon else "未知優惠券",
        restaurant_name=restaurant.name if restaurant else "未知店家",
        restaurant_address=(restaurant.address or "") if restaurant else "",
        expiry_date=uc.expires_at.strftime("%Y/%m/%d"),
        description=(coupon.description or None) if coupon else None,
    )


def _coupon_dict(uc, at):
    coupon = uc.coupon
    restaurant = coupon.restaurant if coupon else None
    return {
        "id": uc.id,
        "couponId": uc.coupon_id,
        "couponTitle": coupon.title if coupon else "未知優惠券",
        "couponDescription": (coupon.description or "") if coupon else "",
        "restaurant": restaurant.to_dict() if restaurant else None,
        "isCheckInReward": uc.is_check_in_reward,
        "isRedeemed": uc.is_redeemed,
        "createdAt": uc.created_at.isoformat(sep=" ", timespec="seconds"),
        "expiresAt": uc.expires_at.isoformat(sep=" ", timespec="seconds"),
        "isExpired": uc.is_expired(at),
        "daysExpired": uc.days_expired(at),
    }


@bp.errorhandler(BadTimestamp)
def _bad_timestamp(e):
    return _error(f"Invalid timestamp: {e}", 400)


# --------------------
# Meal period / restaurants
# --------------------
@bp.route("/api/meal-period", methods=["GET"])
def api_meal_period():
    at = _requested_instant()
    period = primary_meal_period(at)
    if period is None:
        return jsonify({
            "active": False,
            "id": None,
            "name": FALLBACK_LABEL,
            "icon": FALLBACK_ICON,
            "clock": taipei_clock(at),
        })
    return jsonify({
        "active": True,
        "id": period.id,
        "name": period.name,
        "icon": period.icon,
        "start": period.start,
        "end": period.end,
        "clock": taipei_clock(at),
    })


@bp.route("/api/restaurants/open", methods=["GET"])
def api_open_restaurants():
    at = _requested_instant()
    rows = Restaurant.query.order_by(Restaurant.id.asc()).all()
    return jsonify({"restaurants": [r.to_dict() for r in filter_open_restaurants(rows, at)]})


# --------------------
# Passwordless login
# --------------------
@bp.route("/api/auth/simple-login", methods=["POST"])
def api_simple_login():
    data = request.get_json(silent=True) or {}
    try:
        phone, email, device_id, info = validate_login_payload(data)
    except LoginValidationError as e:
        return _error(str(e), 400)

    if phone:
        user = User.query.filter_by(phone=phone).first()
    else:
        user = User.query.filter_by(email=email).first()

    now = datetime.now()
    is_new_user = user is None
    try:
        if is_new_user:
            user = User(phone=phone, email=email, device_id=device_id, created_at=now)
            db.session.add(user)
            action, details = "register", "created via simple login"
        else:
            action, details = "login", None
            if user.device_id and user.device_id != device_id:
                # a new device takes over the account
                details = f"rebound from device {user.device_id[:12]}"
            user.device_id = device_id

        user.user_agent = info.user_agent
        user.screen_resolution = info.screen_resolution
        user.timezone = info.timezone
        user.last_signed_in = now
        db.session.flush()

        db.session.add(AuditLog(user_id=user.id, action=action, device_id=device_id, details=details))
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("Simple login failed: %s", e)
        return _error("登入失敗，請稍後再試", 500)

    session[SESSION_USER_KEY] = user.id
    prefill = LoginPrefill(SessionStore())
    prefill.save_device_id(device_id)
    prefill.save_login_info(phone, email)

    logger.info("User %s %s", user.id, "registered" if is_new_user else "signed in")
    return jsonify({"ok": True, "success": True, "isNewUser": is_new_user, "user": user.to_dict()})


@bp.route("/api/auth/logout", methods=["POST"])
def api_logout():
    session.pop(SESSION_USER_KEY, None)
    return jsonify({"ok": True})


@bp.route("/api/auth/me", methods=["GET"])
def api_me():
    user = _current_user()
    return jsonify({"user": user.to_dict() if user else None})


@bp.route("/api/auth/prefill", methods=["GET", "DELETE"])
def api_prefill():
    prefill = LoginPrefill(SessionStore())
    if request.method == "DELETE":
        prefill.clear()
        return jsonify({"ok": True})
    return jsonify(dict(prefill.get_login_info(), deviceId=prefill.get_device_id()))


# --------------------
# My coupons
# --------------------
@bp.route("/api/coupons", methods=["GET"])
def api_my_coupons():
    user = _current_user()
    if user is None:
        return _error("請先登入", 401)

    at = _local_naive(_requested_instant())
    max_days = current_app.config["COUPON_HIDE_AFTER_DAYS"]
    visible = [uc for uc in _user_coupons(user) if not uc.should_hide(max_days, at)]
    return jsonify({"coupons": [_coupon_dict(uc, at) for uc in visible]})


@bp.route("/api/coupons/<int:coupon_id>/share", methods=["GET"])
def api_share_coupon(coupon_id):
    user = _current_user()
    if user is None:
        return _error("請先登入", 401)

    uc = UserCoupon.query.filter_by(id=coupon_id, user_id=user.id).first()
    if not uc:
        return _error("Coupon not found", 404)

    data = _share_data(uc)
    origin = request.host_url.rstrip("/")
    return jsonify({
        "text": generate_share_text(data),
        "line": line_share_url(data, origin),
        "facebook": facebook_share_url(data, origin),
        "native": native_share_payload(data, origin),
        "clipboard": clipboard_text(data, origin),
    })


@bp.route("/api/coupons/export_xlsx", methods=["GET"])
def api_export_coupons():
    user = _current_user()
    if user is None:
        return _error("請先登入", 401)

    now = datetime.now()
    data = []
    for uc in _user_coupons(user):
        share = _share_data(uc)
        data.append(
            {
                "id": uc.id,
                "coupon_title": share.coupon_title,
                "restaurant_name": share.restaurant_name,
                "is_check_in_reward": uc.is_check_in_reward,
                "created_at": uc.created_at,
                "expires_at": uc.expires_at,
                "days_expired": uc.days_expired(now),
                "status": uc.status(now),
            }
        )

    df = pd.DataFrame(data, columns=_EXPORT_COLS)
    for dt_col in ("created_at", "expires_at"):
        df[dt_col] = pd.to_datetime(df[dt_col])

    output = io.BytesIO()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name="coupons")
    output.seek(0)

    fn = f"my_coupons_{int(time.time())}.xlsx"
    return send_file(
        output,
        as_attachment=True,
        download_name=fn,
        mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )


# --------------------
# Service worker
# --------------------
@bp.route("/sw-config.json", methods=["GET"])
def sw_config():
    return jsonify(service_worker_config())
