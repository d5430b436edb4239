"""
ledgerkit.query
===============

- :mod:`ledgerkit.query.gma` : chunked, order-preserving multi-account reads
- :mod:`ledgerkit.query.gpa` : filtered program-account scans
"""

from __future__ import annotations

from .gma import AccountReader, GmaBuilder
from .gpa import AccountScanner, GpaBuilder, memcmp_filter

__all__ = ["AccountReader", "AccountScanner", "GmaBuilder", "GpaBuilder", "memcmp_filter"]
