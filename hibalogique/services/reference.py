from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional

from hibalogique.core.logging_config import logger

REFERENCE_PREFIX = "Quote"
_REF_RE = re.compile(r"^\s*quote\s+(\d+)-(\d{2})\s*$", re.IGNORECASE)


@dataclass(frozen=True)
class ParsedReference:
    sequence: int
    year_suffix: str


def parse_reference(text: Optional[str]) -> Optional[ParsedReference]:
    """
    "Quote 0007-26" -> ParsedReference(7, "26").
    Anything else (legacy or hand-typed references) -> None.
    """
    if not text:
        return None
    m = _REF_RE.match(text)
    if not m:
        return None
    return ParsedReference(sequence=int(m.group(1)), year_suffix=m.group(2))


def year_suffix(today: Optional[date] = None) -> str:
    return f"{(today or date.today()).year % 100:02d}"


def format_reference(sequence: int, suffix: str) -> str:
    return f"{REFERENCE_PREFIX} {sequence:04d}-{suffix}"


def reference_key(text: Optional[str]) -> str:
    """Comparison key: trimmed + case-insensitive."""
    return (text or "").strip().casefold()


def next_reference(
    history_refs: Iterable[Optional[str]],
    current_ref: Optional[str] = None,
    today: Optional[date] = None,
) -> str:
    """
    Next free "Quote NNNN-YY" for the current year.

    Only references carrying the current year suffix count towards the
    sequence, so numbering restarts at 0001 every year.
    """
    suffix = year_suffix(today)
    refs = [r for r in history_refs if r]
    if current_ref:
        refs.append(current_ref)

    taken = {reference_key(r) for r in refs}

    highest = 0
    for r in refs:
        parsed = parse_reference(r)
        if parsed is not None and parsed.year_suffix == suffix:
            highest = max(highest, parsed.sequence)

    seq = highest + 1
    candidate = format_reference(seq, suffix)
    while reference_key(candidate) in taken:
        seq += 1
        candidate = format_reference(seq, suffix)

    logger.debug("reference_minted", reference=candidate, scanned=len(refs))
    return candidate
