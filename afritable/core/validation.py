"""Field validation rules shared by enhancement and monitoring."""

import re
from dataclasses import dataclass
from typing import Dict, Optional
from urllib.parse import urlparse

from afritable.models import DayHours, RestaurantRecord

PHONE_REGEX = re.compile(r"^[+]?[1-9]\d{0,15}$")
PHONE_STRIP_REGEX = re.compile(r"[\s\-().]")
EMAIL_REGEX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
IMAGE_EXTENSION_REGEX = re.compile(r"\.(jpg|jpeg|png|gif|webp)(\?.*)?$", re.IGNORECASE)


def is_valid_phone(phone: Optional[str]) -> bool:
    if not phone:
        return False
    return bool(PHONE_REGEX.match(PHONE_STRIP_REGEX.sub("", phone)))


def is_valid_address(address: Optional[str], latitude: Optional[float], longitude: Optional[float]) -> bool:
    return bool(address and address.strip()) and bool(latitude) and bool(longitude)


def is_valid_website(website: Optional[str]) -> bool:
    if not website:
        return False
    parsed = urlparse(website.strip())
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email) and bool(EMAIL_REGEX.match(email.strip()))


def has_hours(hours: Optional[Dict[str, DayHours]]) -> bool:
    return any(entry.is_set() for entry in (hours or {}).values())


def is_image_url(url: Optional[str]) -> bool:
    return bool(url) and bool(IMAGE_EXTENSION_REGEX.search(url))


def digits_only(phone: Optional[str]) -> str:
    return re.sub(r"\D", "", phone or "")


@dataclass(slots=True)
class BusinessValidation:
    phone_valid: bool
    address_valid: bool
    website_valid: bool
    hours_present: bool
    email_valid: bool = False

    def as_dict(self) -> Dict[str, bool]:
        return {
            "phone_valid": self.phone_valid,
            "address_valid": self.address_valid,
            "website_valid": self.website_valid,
            "hours_present": self.hours_present,
            "email_valid": self.email_valid,
        }


def validate_business(record: RestaurantRecord) -> BusinessValidation:
    return BusinessValidation(
        phone_valid=is_valid_phone(record.phone),
        address_valid=is_valid_address(record.address, record.latitude, record.longitude),
        website_valid=is_valid_website(record.website),
        hours_present=has_hours(record.hours),
        email_valid=is_valid_email(record.email),
    )
