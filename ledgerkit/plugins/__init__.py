"""Vertical modules installable with `LedgerClient.use()`."""

from __future__ import annotations

from .system import SystemClient, system_module

__all__ = ["SystemClient", "system_module"]
