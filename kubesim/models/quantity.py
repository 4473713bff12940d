"""CPU and memory quantity parsing.

CPU is carried as millicores and memory as MiB throughout the simulation.
"""

from __future__ import annotations

import re

_MEMORY_RE = re.compile(r"^\s*([0-9]+(?:\.[0-9]+)?)\s*(Ki|Mi|Gi|Ti|K|M|G)?\s*$")

_MEMORY_FACTORS = {
    None: 1.0 / (1024 * 1024),
    "Ki": 1.0 / 1024,
    "K": 1000.0 / (1024 * 1024),
    "Mi": 1.0,
    "M": 1_000_000.0 / (1024 * 1024),
    "Gi": 1024.0,
    "G": 1_000_000_000.0 / (1024 * 1024),
    "Ti": 1024.0 * 1024,
}


def parse_cpu(value: str | int | float | None) -> float:
    """Return *value* in millicores: ``"250m"`` -> 250, ``"2"`` -> 2000."""
    if value is None or value == "":
        return 0.0
    if isinstance(value, bool):
        raise ValueError(f"Invalid CPU quantity: {value!r}")
    if isinstance(value, int | float):
        return float(value)
    if not isinstance(value, str):
        raise ValueError(f"Invalid CPU quantity: {value!r}")
    text = value.strip()
    try:
        if text.endswith("m"):
            return float(text[:-1])
        return float(text) * 1000.0
    except ValueError:
        raise ValueError(f"Invalid CPU quantity: {value!r}") from None


def parse_memory(value: str | int | float | None) -> float:
    """Return *value* in MiB. Bare numbers in strings are bytes."""
    if value is None or value == "":
        return 0.0
    if isinstance(value, bool):
        raise ValueError(f"Invalid memory quantity: {value!r}")
    if isinstance(value, int | float):
        return float(value)
    if not isinstance(value, str):
        raise ValueError(f"Invalid memory quantity: {value!r}")
    match = _MEMORY_RE.match(value)
    if match is None:
        raise ValueError(f"Invalid memory quantity: {value!r}")
    amount, unit = match.groups()
    return float(amount) * _MEMORY_FACTORS[unit]


def format_cpu(millicores: float) -> str:
    return f"{millicores:g}m"


def format_memory(mebibytes: float) -> str:
    if mebibytes >= 1024 and mebibytes % 1024 == 0:
        return f"{int(mebibytes // 1024)}Gi"
    return f"{mebibytes:g}Mi"
