"""
SDK configuration: RPC endpoint, commitment, batching limits and retry/timeouts.

- Loads sane defaults and supports overrides via environment variables (LEDGERKIT_*).
- Provides helpers for building HTTP headers and validating endpoints.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .version import __version__

_DEFAULT_RPC = "http://127.0.0.1:8899"

COMMITMENTS = ("processed", "confirmed", "finalized")

# Most public RPC providers cap getMultipleAccounts at 100 keys per call.
DEFAULT_CHUNK_SIZE = 100


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(name)
    return v if v is not None and v != "" else default


def _ensure_scheme(url: Optional[str], allowed: tuple[str, ...]) -> Optional[str]:
    if not url:
        return url
    lower = url.lower()
    if not any(lower.startswith(f"{sch}://") for sch in allowed):
        raise ValueError(f"URL must start with {allowed}, got: {url!r}")
    return url


def _parse_commitment(val: Optional[str]) -> Optional[str]:
    if val is None or val == "":
        return None
    s = str(val).strip().lower()
    if s not in COMMITMENTS:
        raise ValueError(f"commitment must be one of {COMMITMENTS}, got: {val!r}")
    return s


def _parse_optional_int(val: Optional[str]) -> Optional[int]:
    if val is None or val == "":
        return None
    n = int(val)
    return n if n > 0 else None


@dataclass
class SDKConfig:
    # Core
    rpc_url: str = field(default_factory=lambda: _DEFAULT_RPC)
    commitment: Optional[str] = None
    # Account batching
    chunk_size: int = DEFAULT_CHUNK_SIZE
    max_parallel: Optional[int] = None
    # HTTP behavior
    request_timeout: float = 30.0
    max_retries: int = 3
    backoff_base: float = 0.15
    # Headers / identity
    user_agent: str = field(default_factory=lambda: f"ledgerkit-py/{__version__}")

    def __post_init__(self) -> None:
        _ensure_scheme(self.rpc_url, ("http", "https"))
        self.commitment = _parse_commitment(self.commitment)
        if int(self.chunk_size) < 1:
            raise ValueError("chunk_size must be >= 1")
        if self.max_parallel is not None and int(self.max_parallel) < 1:
            raise ValueError("max_parallel must be >= 1 when set")

    @classmethod
    def from_env(cls, prefix: str = "LEDGERKIT_") -> "SDKConfig":
        """
        Create config from environment variables:

        LEDGERKIT_RPC_URL       (http/https)
        LEDGERKIT_COMMITMENT    (processed | confirmed | finalized)
        LEDGERKIT_CHUNK_SIZE    (int, keys per getMultipleAccounts call)
        LEDGERKIT_MAX_PARALLEL  (int, concurrent chunk reads; unset = unbounded)
        LEDGERKIT_TIMEOUT       (float seconds, HTTP)
        LEDGERKIT_MAX_RETRIES   (int)
        LEDGERKIT_BACKOFF       (float seconds, first retry delay)
        LEDGERKIT_USER_AGENT    (str)
        """
        return cls(
            rpc_url=_env(f"{prefix}RPC_URL", _DEFAULT_RPC) or _DEFAULT_RPC,
            commitment=_env(f"{prefix}COMMITMENT"),
            chunk_size=int(_env(f"{prefix}CHUNK_SIZE", str(DEFAULT_CHUNK_SIZE)) or DEFAULT_CHUNK_SIZE),
            max_parallel=_parse_optional_int(_env(f"{prefix}MAX_PARALLEL")),
            request_timeout=float(_env(f"{prefix}TIMEOUT", "30.0") or 30.0),
            max_retries=int(_env(f"{prefix}MAX_RETRIES", "3") or 3),
            backoff_base=float(_env(f"{prefix}BACKOFF", "0.15") or 0.15),
            user_agent=_env(f"{prefix}USER_AGENT", f"ledgerkit-py/{__version__}")
            or f"ledgerkit-py/{__version__}",
        )

    @classmethod
    def with_overrides(
        cls, base: Optional["SDKConfig"] = None, **overrides: Any
    ) -> "SDKConfig":
        """
        Build from an existing config plus keyword overrides.
        Unknown keys are ignored; `None` values leave the base value in place.
        """
        base = base or cls.from_env()
        data = base.to_dict()
        data.update({k: v for k, v in overrides.items() if k in data and v is not None})
        return cls(**data)

    def http_headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": self.user_agent,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rpc_url": self.rpc_url,
            "commitment": self.commitment,
            "chunk_size": int(self.chunk_size),
            "max_parallel": self.max_parallel,
            "request_timeout": float(self.request_timeout),
            "max_retries": int(self.max_retries),
            "backoff_base": float(self.backoff_base),
            "user_agent": self.user_agent,
        }


__all__ = ["SDKConfig", "COMMITMENTS", "DEFAULT_CHUNK_SIZE"]
