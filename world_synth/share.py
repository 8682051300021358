# world_synth/share.py

"""
================================================================================
SHARE / REPRODUCTION SURFACE
================================================================================
The tuple (seed, macro vector, sparse micro overrides, mapping version) fully
reconstructs a world. This module turns it into a compact query string and
back again, e.g.

    seed=12345&vars=50,50,50,50,50,50,50,50,50,50&v=v2&mv=12:40,15:80

Parsing never raises: malformed numbers fall back to 50, values are clamped,
a vars list that is not exactly 10 long falls back to the defaults, and an
unknown version tag is read as the legacy v1 mapping.
================================================================================
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Tuple
from urllib.parse import parse_qs, urlencode

from . import config as DEFAULTS
from .curves import normalize_var
from .schema import MACRO_VAR_COUNT, TOTAL_VAR_COUNT

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")

@dataclass(frozen=True)
class ShareSpec:
    seed: int = DEFAULTS.DEFAULT_SEED
    macro: Tuple[int, ...] = (50,) * MACRO_VAR_COUNT
    micro_overrides: Dict[int, int] = field(default_factory=dict)
    mapping_version: str = DEFAULTS.DEFAULT_MAPPING_VERSION

def _parse_int(text: str):
    """Leading-integer parse; None when the text has no leading digits."""
    match = _LEADING_INT.match(text or "")
    if not match:
        return None
    return int(match.group(1))

def _parse_var(text: str) -> int:
    value = _parse_int(text)
    return normalize_var(50 if value is None else value)

def _parse_overrides(text: str) -> Dict[int, int]:
    overrides = {}
    for pair in (text or "").split(","):
        if ":" not in pair:
            continue
        index_text, value_text = pair.split(":", 1)
        index = _parse_int(index_text)
        if index is None or not MACRO_VAR_COUNT <= index < TOTAL_VAR_COUNT:
            continue
        overrides[index] = _parse_var(value_text)
    return overrides

def format_share_query(spec: ShareSpec) -> str:
    """Builds the query string. Override pairs are emitted in index order."""
    params = {
        "seed": str(spec.seed),
        "vars": ",".join(str(normalize_var(v)) for v in spec.macro),
        "v": spec.mapping_version,
    }
    if spec.micro_overrides:
        params["mv"] = ",".join(
            f"{index}:{normalize_var(value)}"
            for index, value in sorted(spec.micro_overrides.items())
        )
    return urlencode(params, safe=",:")

def parse_share_query(query: str) -> ShareSpec:
    """
    Parses a share query. A leading '?' is accepted.

    Args:
        query (str): The query string.

    Returns:
        ShareSpec: Always a valid spec; bad fields take their defaults.
    """
    parsed = parse_qs(query.lstrip("?"), keep_blank_values=True)

    def first(key):
        values = parsed.get(key)
        return values[0] if values else None

    seed = _parse_int(first("seed"))
    if seed is None:
        seed = DEFAULTS.DEFAULT_SEED

    macro = (50,) * MACRO_VAR_COUNT
    vars_text = first("vars")
    if vars_text:
        parts = vars_text.split(",")
        if len(parts) == MACRO_VAR_COUNT:
            macro = tuple(_parse_var(part) for part in parts)

    version = first("v")
    if version not in DEFAULTS.MAPPING_VERSIONS:
        version = "v1"

    return ShareSpec(
        seed=seed,
        macro=macro,
        micro_overrides=_parse_overrides(first("mv")),
        mapping_version=version,
    )
