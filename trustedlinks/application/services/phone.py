from typing import Dict, List

from ...exceptions import InvalidPhone
from ...utils import digits_only

MIN_PHONE_DIGITS = 8
MAX_PHONE_DIGITS = 15

# Dial codes offered by the registration form
SUPPORTED_DIAL_CODES: List[Dict[str, str]] = [
    {"code": "JO", "dial": "+962", "name_en": "Jordan", "name_ar": "الأردن"},
    {"code": "SA", "dial": "+966", "name_en": "Saudi Arabia", "name_ar": "السعودية"},
    {"code": "AE", "dial": "+971", "name_en": "United Arab Emirates", "name_ar": "الإمارات"},
    {"code": "QA", "dial": "+974", "name_en": "Qatar", "name_ar": "قطر"},
    {"code": "KW", "dial": "+965", "name_en": "Kuwait", "name_ar": "الكويت"},
    {"code": "BH", "dial": "+973", "name_en": "Bahrain", "name_ar": "البحرين"},
    {"code": "OM", "dial": "+968", "name_en": "Oman", "name_ar": "عمان"},
]


def normalize(raw_input: str, country_dial_code: str) -> str:
    """Return the canonical digits-only international number.

    ``normalize("079 123 4567", "+962") == "962791234567"``. One leading
    national trunk ``0`` is dropped before the dial code is prepended.
    """
    national = digits_only(raw_input)
    dial = digits_only(country_dial_code)
    if not national:
        raise InvalidPhone("Phone number has no digits")
    if not dial or len(dial) > 4:
        raise InvalidPhone(f"Invalid dial code: {country_dial_code!r}")

    if national.startswith("0"):
        national = national[1:]

    phone = dial + national
    if not MIN_PHONE_DIGITS <= len(phone) <= MAX_PHONE_DIGITS:
        raise InvalidPhone(f"Phone number must have {MIN_PHONE_DIGITS}-{MAX_PHONE_DIGITS} digits, got {len(phone)}")
    return phone


def whatsapp_link(phone: str) -> str:
    return f"https://wa.me/{digits_only(phone)}"


def to_e164(phone: str) -> str:
    return f"+{digits_only(phone)}"
