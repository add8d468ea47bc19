from __future__ import annotations

"""
HTTP surface (FastAPI): turn endpoint + session inspection.
"""
