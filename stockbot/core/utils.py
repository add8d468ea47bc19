from __future__ import annotations
import re
from typing import Any, Iterable, List, Optional

SYMBOL_RE = re.compile(r"^[A-Z0-9]{1,20}$")


def normalize_symbol(value: Any) -> Optional[str]:
    """Upper-case and validate a ticker token. Returns None if it is not one."""
    if value is None:
        return None
    sym = str(value).strip().upper()
    if not SYMBOL_RE.match(sym):
        return None
    return sym


def dedupe(items: Iterable[str]) -> List[str]:
    """Drop repeats, keep first-seen order."""
    seen = set()
    out: List[str] = []
    for s in items:
        if s not in seen:
            seen.add(s)
            out.append(s)
    return out
