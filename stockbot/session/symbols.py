from __future__ import annotations

import logging
import re
from typing import Any, Dict, FrozenSet, Iterable, Optional, Protocol

from stockbot.core.utils import normalize_symbol
from stockbot.db.schemas import ChatSession, SessionUpdate
from stockbot.session.store import SessionStore

logger = logging.getLogger(__name__)

CANDIDATE_RE = re.compile(r"\b[A-Z]{2,20}\b")

ANAPHORA_RE = re.compile(
    r"\b(it|that|them|they|this|those|the stock|the company|the previous one|the last one)\b",
    flags=re.IGNORECASE,
)

# Words that show up in almost every question. Anything else that looks like
# a ticker (OK, CEO, ...) still gets through; extraction is best-effort.
DEFAULT_STOPWORDS: FrozenSet[str] = frozenset(
    """
    A ABOUT ALL ALSO AM AN AND ANY ARE AS AT BE BEEN BUT BY CAN COULD DID DO DOES
    FOR FROM GET GIVE HAD HAS HAVE HE HER HERE HIS HOW IF IN INTO IS IT ITS JUST
    KNOW LIKE ME MORE MY NO NOT NOW OF ON ONE OR OTHER OUR OUT PLEASE SHE SHOW SO
    SOME TELL THAN THANK THANKS THAT THE THEIR THEM THEN THERE THESE THEY THIS
    THOSE TO TODAY UP US WANT WAS WE WERE WHAT WHATS WHEN WHERE WHICH WHO WHY
    WILL WITH WOULD YOU YOUR HI HELLO HEY
    PRICE PRICES STOCK STOCKS SHARE SHARES COMPANY COMPANIES SECTOR SYMBOL
    TICKER CURRENT LATEST PREVIOUS LAST VALUE DETAILS INFO
    """.split()
)


class SymbolExtractor(Protocol):
    def extract(self, text: str) -> Optional[str]: ...


class RegexSymbolExtractor:
    """
    First run of 2-20 letters (after upper-casing) that is not a stopword.
    """

    def __init__(self, stopwords: Iterable[str] = DEFAULT_STOPWORDS):
        self.stopwords = frozenset(w.upper() for w in stopwords)

    def extract(self, text: str) -> Optional[str]:
        if not text:
            return None
        for m in CANDIDATE_RE.finditer(text.upper()):
            token = m.group(0)
            if token not in self.stopwords:
                return token
        return None


class DictionarySymbolExtractor:
    """First token that is a known ticker."""

    def __init__(self, known_symbols: Iterable[str]):
        self.known = frozenset(s.upper() for s in known_symbols)

    def extract(self, text: str) -> Optional[str]:
        if not text:
            return None
        for m in re.finditer(r"\b[A-Z0-9]{1,20}\b", text.upper()):
            if m.group(0) in self.known:
                return m.group(0)
        return None


def contains_anaphora(text: str) -> bool:
    return bool(text) and ANAPHORA_RE.search(text) is not None


def tool_symbol(output: Dict[str, Any]) -> Optional[str]:
    """`toolUsed.args.symbol` of an agent output, if any."""
    tool_used = output.get("toolUsed") or {}
    args = tool_used.get("args") or {}
    return args.get("symbol") or None


class SymbolResolver:
    def __init__(self, store: SessionStore, extractor: Optional[SymbolExtractor] = None):
        self.store = store
        self.extractor = extractor or RegexSymbolExtractor()

    def resolve_symbol(self, session: ChatSession, text: str) -> Optional[str]:
        """
        Pure resolution: explicit mention wins, otherwise a pronoun carries
        the session's active symbol over. None if neither applies.
        """
        explicit = self.extractor.extract(text)
        if explicit:
            return explicit
        if contains_anaphora(text):
            return session.active_symbol
        return None

    def resolve(self, session: ChatSession, text: str) -> ChatSession:
        """
        Resolve and persist the active symbol for this turn. Returns the
        session as stored after the update.
        """
        symbol = self.resolve_symbol(session, text)
        if not symbol or symbol == session.active_symbol:
            return session
        updated = self.store.update_fields(session.id, SessionUpdate(active_symbol=symbol))
        logger.debug("active symbol -> %s", symbol, extra={"session_id": session.id})
        return updated or session

    def record_tool_symbol(self, session_id: str, output: Dict[str, Any]) -> Optional[ChatSession]:
        """
        The symbol the agent actually looked up becomes the active one and is
        appended to referenced_symbols. Returns None when no symbol was used.
        """
        raw = tool_symbol(output)
        if raw is None:
            return None
        sym = normalize_symbol(raw)
        if sym is None:
            logger.warning("ignoring invalid tool symbol %r", raw, extra={"session_id": session_id})
            return None
        return self.store.add_referenced_symbol(session_id, sym)
