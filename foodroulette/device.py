"""
Device fingerprint and passwordless (phone / email) login helpers.

The fingerprint is an anonymous correlation key, not a credential. The actual
session is issued by the login endpoint.
"""

import hashlib
import re
from dataclasses import dataclass

from flask import session

PHONE_RE = re.compile(r"09[0-9]{8}")
EMAIL_RE = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")

# Keys of the client-side prefill store
DEVICE_ID_KEY = "deviceId"
PHONE_KEY = "loginPhone"
EMAIL_KEY = "loginEmail"

MSG_PHONE_REQUIRED = "請輸入手機號碼"
MSG_PHONE_INVALID = "手機號碼格式錯誤，請輸入09開頭的10位數字"
MSG_EMAIL_REQUIRED = "請輸入 Email"
MSG_EMAIL_INVALID = "Email 格式錯誤"
MSG_CONTACT_REQUIRED = "請提供手機號碼或 Email"
MSG_DEVICE_REQUIRED = "缺少裝置資訊"


class LoginValidationError(ValueError):
    """Login input rejected before it reaches the network; str() is the user-facing message."""


@dataclass(frozen=True)
class DeviceInfo:
    user_agent: str
    screen_resolution: str
    timezone: str

    @classmethod
    def from_screen(cls, user_agent, width, height, timezone):
        return cls(user_agent, f"{width}x{height}", timezone)

    @classmethod
    def from_dict(cls, data):
        return cls(data["userAgent"], data["screenResolution"], data["timezone"])

    def to_dict(self):
        return {
            "userAgent": self.user_agent,
            "screenResolution": self.screen_resolution,
            "timezone": self.timezone,
        }


def generate_device_fingerprint(info):
    data = f"{info.user_agent}|{info.screen_resolution}|{info.timezone}"
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def validate_phone_number(phone):
    return bool(PHONE_RE.fullmatch(phone or ""))


def validate_email(email):
    return bool(EMAIL_RE.fullmatch(email or ""))


# --------------------
# Prefill store
# --------------------
class KeyValueStore:
    def get(self, key):
        raise NotImplementedError

    def set(self, key, value):
        raise NotImplementedError

    def delete(self, key):
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    def __init__(self, data=None):
        self.data = dict(data or {})

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = value

    def delete(self, key):
        self.data.pop(key, None)


class SessionStore(KeyValueStore):
    """Backed by the Flask session cookie; needs a request context."""

    def get(self, key):
        return session.get(key)

    def set(self, key, value):
        session[key] = value

    def delete(self, key):
        session.pop(key, None)


class LoginPrefill:
    """Non-sensitive values remembered to pre-fill the next login."""

    def __init__(self, store):
        self.store = store

    def save_device_id(self, device_id):
        self.store.set(DEVICE_ID_KEY, device_id)

    def get_device_id(self):
        return self.store.get(DEVICE_ID_KEY)

    def save_login_info(self, phone=None, email=None):
        if phone:
            self.store.set(PHONE_KEY, phone)
        if email:
            self.store.set(EMAIL_KEY, email)

    def get_login_info(self):
        return {
            "phone": self.store.get(PHONE_KEY) or None,
            "email": self.store.get(EMAIL_KEY) or None,
        }

    def clear(self):
        for key in (DEVICE_ID_KEY, PHONE_KEY, EMAIL_KEY):
            self.store.delete(key)


# --------------------
# Login request
# --------------------
def _check_phone(phone):
    if not phone:
        raise LoginValidationError(MSG_PHONE_REQUIRED)
    if not validate_phone_number(phone):
        raise LoginValidationError(MSG_PHONE_INVALID)


def _check_email(email):
    if not email:
        raise LoginValidationError(MSG_EMAIL_REQUIRED)
    if not validate_email(email):
        raise LoginValidationError(MSG_EMAIL_INVALID)


def build_login_request(login_type, info, prefill, phone=None, email=None):
    """
    Validate the contact for the chosen login type and build the request body
    for the login endpoint. The device id is reused from the prefill store, or
    generated and saved on first use.
    """
    if login_type == "phone":
        _check_phone(phone)
        contact = {"phone": phone}
    elif login_type == "email":
        _check_email(email)
        contact = {"email": email}
    else:
        raise LoginValidationError(MSG_CONTACT_REQUIRED)

    device_id = prefill.get_device_id()
    if not device_id:
        device_id = generate_device_fingerprint(info)
        prefill.save_device_id(device_id)

    return dict(contact, deviceId=device_id, deviceInfo=info.to_dict())


def validate_login_payload(data):
    """
    Server-side check of a login body. Returns (phone, email, device_id, DeviceInfo).
    """
    if not isinstance(data, dict):
        raise LoginValidationError(MSG_CONTACT_REQUIRED)
    for field in ("phone", "email"):
        if data.get(field) is not None and not isinstance(data[field], str):
            raise LoginValidationError(MSG_PHONE_INVALID if field == "phone" else MSG_EMAIL_INVALID)
    if data.get("deviceId") is not None and not isinstance(data["deviceId"], str):
        raise LoginValidationError(MSG_DEVICE_REQUIRED)

    phone = (data.get("phone") or "").strip() or None
    email = (data.get("email") or "").strip() or None

    if not phone and not email:
        raise LoginValidationError(MSG_CONTACT_REQUIRED)
    if phone and not validate_phone_number(phone):
        raise LoginValidationError(MSG_PHONE_INVALID)
    if email and not validate_email(email):
        raise LoginValidationError(MSG_EMAIL_INVALID)

    device_id = (data.get("deviceId") or "").strip()
    raw_info = data.get("deviceInfo")
    if not device_id or not isinstance(raw_info, dict):
        raise LoginValidationError(MSG_DEVICE_REQUIRED)
    if not all(isinstance(raw_info.get(k), str) for k in ("userAgent", "screenResolution", "timezone")):
        raise LoginValidationError(MSG_DEVICE_REQUIRED)

    return phone, email, device_id, DeviceInfo.from_dict(raw_info)
