"""Decode barcode scanner payloads into candidate receiving fields.

Supported inputs, tried in order: GS1 element strings written with
parenthesised application identifiers, HIBC, simple delimited text, and
finally the raw text itself (taken as a lot number). Decoding never raises;
fields that cannot be recognised stay ``None``.
"""

import calendar
import re
from dataclasses import asdict, dataclass
from datetime import date

GS1_ELEMENT = re.compile(r"\((\d{2,4})\)([^(]+)")
DELIMITERS = ("|", ",", ";", "\t")
CENTURY_PIVOT = 50


@dataclass
class ScanResult:
    format: str
    raw: str = ""
    gtin: str | None = None
    lot: str | None = None
    serial: str | None = None
    quantity: int | None = None
    expiration_date: date | None = None
    manufacturer: str | None = None
    sku: str | None = None

    def as_dict(self):
        data = asdict(self)
        if self.expiration_date is not None:
            data["expiration_date"] = self.expiration_date.isoformat()
        return data


def parse_gs1_date(value):
    """YYMMDD to a date; day ``00`` means the last day of that month."""
    if not value or len(value) != 6 or not value.isdigit():
        return None
    yy, mm, dd = int(value[:2]), int(value[2:4]), int(value[4:6])
    year = 2000 + yy if yy < CENTURY_PIVOT else 1900 + yy
    if not 1 <= mm <= 12:
        return None
    if dd == 0:
        dd = calendar.monthrange(year, mm)[1]
    try:
        return date(year, mm, dd)
    except ValueError:
        return None


def _to_int(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _decode_gs1(text):
    matches = GS1_ELEMENT.findall(text)
    if not matches:
        return None

    result = ScanResult(format="gs1", raw=text)
    for ai, value in matches:
        value = value.strip()
        if ai == "01":
            result.gtin = value
        elif ai == "10":
            result.lot = value
        elif ai == "21":
            result.serial = value
        elif ai in ("30", "37"):
            result.quantity = _to_int(value)
        elif ai == "17":
            result.expiration_date = parse_gs1_date(value)
        elif ai == "240":
            result.manufacturer = value
            result.sku = value
    return result


def _decode_hibc(text):
    if not text.startswith(("+", "=")):
        return None

    segments = text[1:].split("/")
    primary = segments[0]
    secondary = segments[1] if len(segments) > 1 else ""

    result = ScanResult(format="hibc", raw=text)
    if len(primary) > 4:
        result.sku = primary[3:]
    if secondary:
        result.lot = secondary[1:14].strip() or None
    return result


def _decode_delimited(text):
    for delimiter in DELIMITERS:
        if delimiter not in text:
            continue
        parts = [part.strip() for part in text.split(delimiter) if part.strip()]
        if len(parts) <= 1:
            continue

        result = ScanResult(format=f"delimited-{delimiter}", raw=text)
        for index, part in enumerate(parts):
            if len(part) == 14 and part.isdigit() and result.gtin is None:
                result.gtin = part
            elif part.isdigit() and index > 0 and result.quantity is None:
                result.quantity = int(part)
            elif index <= 1 and result.sku is None:
                result.sku = part
            elif result.lot is None:
                result.lot = part
            elif result.serial is None:
                result.serial = part
        return result
    return None


def decode_scan(raw):
    if not isinstance(raw, str) or not raw.strip():
        return ScanResult(format="unknown", raw=raw if isinstance(raw, str) else "")

    text = raw.strip()
    for decoder in (_decode_gs1, _decode_hibc, _decode_delimited):
        result = decoder(text)
        if result is not None:
            return result
    return ScanResult(format="raw", raw=text, lot=text)
