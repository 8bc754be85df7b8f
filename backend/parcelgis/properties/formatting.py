import math
import re

ADDRESS_TOKEN_EXPANSIONS = {
    "N": "North",
    "S": "South",
    "E": "East",
    "W": "West",
    "NE": "Northeast",
    "NW": "Northwest",
    "SE": "Southeast",
    "SW": "Southwest",
    "ST": "Street",
    "RD": "Road",
    "DR": "Drive",
    "AVE": "Avenue",
    "BLVD": "Boulevard",
    "LN": "Lane",
    "CT": "Court",
    "CIR": "Circle",
    "PL": "Place",
    "PKWY": "Parkway",
    "HWY": "Highway",
    "TRL": "Trail",
    "SQ": "Square",
    "TER": "Terrace",
    "WAY": "Way",
    "TX": "Texas",
}

_ZIP_RE = re.compile(r"^\d{5}(?:-\d{4})?$")
_HOUSE_NUMBER_RE = re.compile(r"^\d+[A-Za-z]?$")
_WORD_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9'/-]*$")
_LEADING_NUMBER_RE = re.compile(r"^\s*\d+")
_WORD_START_RE = re.compile(r"(^|[-/'])([a-z])")

ADDRESS_UNAVAILABLE = "Address unavailable"
OWNER_UNKNOWN = "Unknown"
ZONING_NOT_MAPPED = "Not mapped"


def _title_case_word(word: str) -> str:
    return _WORD_START_RE.sub(lambda m: m.group(1) + m.group(2).upper(), word.lower())


def format_property_address(address: str | None) -> str | None:
    """Display form: expand abbreviations, title-case words, keep numbers upper."""
    if not address:
        return None
    compact = " ".join(address.split())
    if not compact:
        return None

    formatted = []
    for token in compact.split(" "):
        expanded = ADDRESS_TOKEN_EXPANSIONS.get(token.upper())
        if expanded:
            formatted.append(expanded)
        elif _ZIP_RE.match(token) or _HOUSE_NUMBER_RE.match(token):
            formatted.append(token.upper())
        elif _WORD_RE.match(token):
            formatted.append(_title_case_word(token))
        else:
            formatted.append(token)
    return " ".join(formatted)


def has_house_number(address: str | None) -> bool:
    return bool(address and _LEADING_NUMBER_RE.match(address))


def choose_situs_address(parcel_address: str | None, address_point_label: str | None) -> str | None:
    """Parcel addresses without a leading house number are treated as stale.

    They are replaced by the nearest address point's label when one exists.
    """
    parcel_address = (parcel_address or "").strip() or None
    address_point_label = (address_point_label or "").strip() or None
    if has_house_number(parcel_address):
        return parcel_address
    return address_point_label or parcel_address


def to_number(value) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def normalize_acreage(acreage) -> float | None:
    value = to_number(acreage)
    if value is None or not math.isfinite(value):
        return None
    return round(value, 4)
