# Overview: Guesses the shipping carrier from the shape of a tracking number.

"""
Carrier detection.

Patterns are evaluated in the order listed and the first match wins, so the
order below is part of the behavior: several digit-only lengths are valid for
more than one carrier (22 digits is both a FedEx and a USPS form) and the
earlier carrier takes the number.

detect_carrier never raises. Anything it cannot place is UNKNOWN.
"""

from __future__ import annotations

import re


UPS = "UPS"
FEDEX = "FEDEX"
USPS = "USPS"
DHL = "DHL"
UNKNOWN = "UNKNOWN"

CARRIERS = (UPS, FEDEX, USPS, DHL, UNKNOWN)

MIN_TRACKING_LENGTH = 8

CARRIER_PATTERNS: tuple[tuple[str, re.Pattern], ...] = tuple(
    (carrier, re.compile(pattern))
    for carrier, pattern in (
        # UPS
        (UPS, r"^1Z[A-Z0-9]{16}$"),
        (UPS, r"^T\d{10}$"),
        (UPS, r"^\d{9}$"),
        (UPS, r"^K\d{10}$"),
        # FedEx
        (FEDEX, r"^\d{12}$"),
        (FEDEX, r"^\d{15}$"),
        (FEDEX, r"^96\d{20}$"),
        (FEDEX, r"^61\d{18}$"),
        (FEDEX, r"^\d{20}$"),
        (FEDEX, r"^\d{22}$"),
        (FEDEX, r"^DT\d{12}$"),
        # USPS
        (USPS, r"^(94|93|92|91)\d{18,22}$"),
        (USPS, r"^[A-Z]{2}\d{9}US$"),
        (USPS, r"^420\d{5}(91|92|93|94)\d{18,22}$"),
        (USPS, r"^\d{20,22}$"),
        (USPS, r"^82\d{8}$"),
        # DHL
        (DHL, r"^\d{10,11}$"),
        (DHL, r"^JD\d{18}$"),
        (DHL, r"^GM\d{16,18}$"),
        (DHL, r"^LX\d{9}[A-Z]{2}$"),
    )
)

_STRIP = re.compile(r"[\s-]+")


def normalize_tracking_number(tracking_number) -> str:
    if not isinstance(tracking_number, str):
        return ""
    return _STRIP.sub("", tracking_number).upper()


def detect_carrier(tracking_number) -> str:
    """
    Return one of UPS / FEDEX / USPS / DHL / UNKNOWN.

    Input is stripped of whitespace and hyphens and upper-cased first;
    anything shorter than MIN_TRACKING_LENGTH is UNKNOWN.
    """
    cleaned = normalize_tracking_number(tracking_number)
    if len(cleaned) < MIN_TRACKING_LENGTH:
        return UNKNOWN

    for carrier, pattern in CARRIER_PATTERNS:
        if pattern.match(cleaned):
            return carrier
    return UNKNOWN


def format_tracking_number(tracking_number) -> str:
    """Display form: UPS and long numbers are grouped in blocks of four."""
    cleaned = normalize_tracking_number(tracking_number)
    if cleaned.startswith("1Z") or len(cleaned) > 12:
        return " ".join(cleaned[i:i + 4] for i in range(0, len(cleaned), 4))
    return cleaned
