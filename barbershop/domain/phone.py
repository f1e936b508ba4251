"""
Phone number normalization (storage) and masking (display).
"""

import re

_NON_DIGITS = re.compile(r"\D")
_LANDLINE = re.compile(r"(\d{2})(\d{4})(\d{4})")
_MOBILE = re.compile(r"(\d{2})(\d{5})(\d{4})")


def normalize_phone(phone: str) -> str:
    """Strip everything but digits."""
    return _NON_DIGITS.sub("", phone)


def mask_phone(phone: str) -> str:
    """
    Apply the display mask: ``(11) 9999-8888`` up to 10 digits,
    ``(11) 99999-8888`` beyond that. Inputs too short for the mask come back
    as plain digits.
    """
    cleaned = normalize_phone(phone)
    if len(cleaned) <= 10:
        return _LANDLINE.sub(r"(\1) \2-\3", cleaned, count=1)
    return _MOBILE.sub(r"(\1) \2-\3", cleaned, count=1)
