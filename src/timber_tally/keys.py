import re

from .exceptions import InvalidStockKey

_NUMBER = re.compile(r"(\d*\.?\d+)")
_DIGITS = re.compile(r"(\d+)")


def make_stock_key(treatment: str, size: str, length: str) -> str:
    """
    Build the composite key of one stock line, e.g. ``"treated-90x45mm-2.4m"``.

    The treatment and length parts must not contain ``-`` so that the key can
    be split back unambiguously. The size part may contain anything except a
    leading or trailing ``-`` (sizes such as ``"CCA Sawn"`` carry spaces).
    """
    parts = (treatment, size, length)
    if not all(parts):
        raise InvalidStockKey(
            f"timber_tally: treatment, size and length are all required, got {parts!r}"
        )
    if "-" in treatment or "-" in length:
        raise InvalidStockKey(
            f"timber_tally: treatment and length must not contain '-', got {parts!r}"
        )
    return f"{treatment}-{size}-{length}"


def parse_stock_key(key: str) -> tuple[str, str, str]:
    """
    Split a composite key back into ``(treatment, size, length)``.
    """
    treatment, sep, rest = key.partition("-")
    size, sep2, length = rest.rpartition("-")
    if not (sep and sep2 and treatment and size and length):
        raise InvalidStockKey(
            f"timber_tally: stock key must look like 'treatment-size-length', got {key!r}"
        )
    return treatment, size, length


def length_to_mm(raw: str) -> float:
    """
    Convert a length label into millimetres for ordering.

    Labels ending in ``mm`` are taken as millimetres, labels with ``m`` as
    metres. Bare whole numbers of 100 or more are millimetres, any other bare
    number is metres. Unparseable labels map to infinity so they sort last.
    """
    if not raw:
        return float("inf")

    s = re.sub(r"\s+", "", raw.lower())
    m = _NUMBER.search(s)
    if not m:
        return float("inf")

    num = float(m.group(1))
    if "mm" in s:
        return num
    if "m" in s:
        return round(num * 1000)
    if num.is_integer() and num >= 100:
        return num
    return round(num * 1000)


def _natural_key(label: str) -> list:
    # digit runs compare as numbers, text case-insensitively
    return [int(part) if part.isdecimal() else part.lower() for part in _DIGITS.split(label)]


def sort_lengths(lengths):
    """Return length labels shortest first, ties broken in natural order."""
    return sorted(lengths, key=lambda label: (length_to_mm(label), _natural_key(label)))
