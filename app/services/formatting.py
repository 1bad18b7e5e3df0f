"""Display helpers shared by the prompt, the PDF template and the email bodies."""

import re
from datetime import date
from decimal import Decimal, InvalidOperation

from app.constants import FRENCH_MONTHS

CURRENCY = "CHF"


def format_price(price) -> str:
    """Swiss grouping with apostrophes: ``665000`` -> ``665'000 CHF``."""
    if price is None or price == "":
        return "Prix sur demande"
    try:
        amount = int(Decimal(str(price).replace("'", "").replace(" ", "")))
    except (InvalidOperation, ValueError):
        return str(price)
    if amount == 0:
        return "Prix sur demande"
    return f"{amount:,}".replace(",", "'") + f" {CURRENCY}"


def format_area(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_french_date(day: date) -> str:
    return f"{day.day} {FRENCH_MONTHS[day.month - 1]} {day.year}"


def location_from_address(address: str) -> str:
    """Best-effort town name: last comma-separated part, postcode stripped."""
    parts = [p.strip() for p in (address or "").split(",") if p.strip()]
    if not parts:
        return ""
    town = re.sub(r"^\d[\d\s-]*", "", parts[-1]).strip()
    return town or parts[-1]
