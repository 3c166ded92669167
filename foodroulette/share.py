"""
Share a won coupon to LINE, Facebook, the native share sheet or the clipboard.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

logger = logging.getLogger(__name__)

APP_NAME = "草屯美食轉轉樂"
SHARE_TITLE = f"{APP_NAME} - 我的優惠券"

LINE_SHARE_URL = "https://social-plugins.line.me/lineit/share"
FACEBOOK_SHARE_URL = "https://www.facebook.com/sharer/sharer.php"


@dataclass
class ShareCouponData:
    coupon_title: str
    restaurant_name: str
    restaurant_address: str
    expiry_date: str
    description: Optional[str] = None


class ShareResult(enum.Enum):
    SUCCESS = "success"
    CANCELLED = "cancelled"
    UNSUPPORTED = "unsupported"
    ERROR = "error"


class ShareAborted(Exception):
    """Raised by a share surface when the user dismisses it."""


def _encode(value):
    # same escaping as encodeURIComponent
    return quote(value, safe="-_.!~*'()")


def generate_share_text(data: ShareCouponData) -> str:
    text = f"🎉 我在「{APP_NAME}」抽到優惠券了！\n\n"
    text += f"🎫 {data.coupon_title}\n"
    text += f"🏪 {data.restaurant_name}\n"
    if data.description:
        text += f"📝 {data.description}\n"
    text += f"📍 {data.restaurant_address}\n"
    text += f"⏰ 有效期限：{data.expiry_date}\n\n"
    text += "快來一起轉轉盤，抽取專屬優惠券吧！"
    return text


def line_share_url(data: ShareCouponData, origin: str) -> str:
    text = generate_share_text(data)
    return f"{LINE_SHARE_URL}?url={_encode(origin)}&text={_encode(text)}"


def facebook_share_url(data: ShareCouponData, origin: str) -> str:
    text = generate_share_text(data)
    return f"{FACEBOOK_SHARE_URL}?u={_encode(origin)}&quote={_encode(text)}"


def native_share_payload(data: ShareCouponData, origin: str) -> dict:
    return {"title": SHARE_TITLE, "text": generate_share_text(data), "url": origin}


def clipboard_text(data: ShareCouponData, origin: str) -> str:
    return f"{generate_share_text(data)}\n\n{origin}"


def share_natively(data: ShareCouponData, origin: str, share=None) -> ShareResult:
    """
    Hand the coupon to a native share surface.

    ``share`` is a callable taking the payload dict, or None when the platform
    has none. CANCELLED is a normal outcome; callers fall back to the
    clipboard on UNSUPPORTED or ERROR.
    """
    if share is None:
        logger.debug("Native share not supported")
        return ShareResult.UNSUPPORTED

    try:
        share(native_share_payload(data, origin))
    except ShareAborted:
        logger.debug("User cancelled share")
        return ShareResult.CANCELLED
    except Exception:
        logger.exception("Native share failed")
        return ShareResult.ERROR
    return ShareResult.SUCCESS


def copy_share_link(data: ShareCouponData, origin: str, write_text) -> bool:
    try:
        write_text(clipboard_text(data, origin))
    except Exception:
        logger.exception("Copy to clipboard failed")
        return False
    return True
