from __future__ import annotations

import json
import re
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ValidationError, field_validator

from stockbot.app.errors import SymbolNotFoundError, ToolInvocationError

TOOL_SYMBOL_RE = re.compile(r"^[A-Z0-9]{1,10}$")


class PriceRecord(BaseModel):
    symbol: str
    name: str
    price: Optional[float] = None
    currency: Optional[str] = None
    asOf: Optional[str] = None
    sectorName: Optional[str] = None

    @field_validator("symbol", "name")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v

    @field_validator("asOf")
    @classmethod
    def _iso_date(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not re.match(r"^\d{4}-\d{2}-\d{2}$", v):
            raise ValueError("asOf must be YYYY-MM-DD")
        return v


def tool_symbol_arg(value: Any) -> str:
    sym = str(value or "").strip().upper()
    if not TOOL_SYMBOL_RE.match(sym):
        raise ToolInvocationError(f"Invalid symbol argument: {value!r}")
    return sym


class StockDataset:
    """
    Read-only ticker/price table keyed by symbol.
    """

    def __init__(self, records: List[PriceRecord]):
        self.records = records
        self._by_symbol: Dict[str, PriceRecord] = {r.symbol.upper(): r for r in records}

    @classmethod
    def load(cls, path: str) -> "StockDataset":
        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise ToolInvocationError(f"Failed to load {path}: {e}") from e

        records: List[PriceRecord] = []
        for idx, r in enumerate(raw):
            try:
                records.append(PriceRecord.model_validate(r))
            except ValidationError as e:
                raise ToolInvocationError(f"Invalid record at index {idx}: {e.errors()}") from e
        return cls(records)

    @property
    def symbols(self) -> List[str]:
        return list(self._by_symbol)

    @property
    def sectors(self) -> List[str]:
        return sorted({(r.sectorName or "").upper() for r in self.records if r.sectorName})

    def find(self, symbol: str) -> Optional[PriceRecord]:
        if not symbol:
            return None
        return self._by_symbol.get(symbol.upper())

    # ---------- tools ----------
    def get_price(self, symbol: str) -> Dict[str, Any]:
        sym = tool_symbol_arg(symbol)
        rec = self.find(sym)
        if rec is None:
            raise SymbolNotFoundError(f"Symbol '{sym}' not found")
        if rec.price is None:
            raise SymbolNotFoundError(f"Price data not available for '{sym}'")
        return {
            "symbol": rec.symbol,
            "price": rec.price,
            "currency": rec.currency or "PKR",
            "asOf": rec.asOf or date.today().isoformat(),
        }

    def get_company(self, symbol: str) -> Dict[str, Any]:
        sym = tool_symbol_arg(symbol)
        rec = self.find(sym)
        if rec is None:
            raise SymbolNotFoundError(f"Symbol '{sym}' not found")
        return {
            "symbol": rec.symbol,
            "name": rec.name,
            "sectorName": rec.sectorName or "Unknown",
        }

    def search_companies(self, query: Optional[str] = None, sector: Optional[str] = None) -> List[Dict[str, Any]]:
        q = query.lower() if query else None
        sec = sector.upper() if sector else None

        results = self.records
        if q:
            results = [r for r in results if q in r.name.lower()]
        if sec:
            results = [r for r in results if (r.sectorName or "").upper() == sec]

        return [
            {"symbol": r.symbol, "name": r.name, "sectorName": r.sectorName or "Unknown"}
            for r in results
        ]
