"""
ledgerkit.client
================

`LedgerClient` is the object handlers receive: it owns the JSON-RPC
transport, the ledger collaborator, the operation registry and the current
identity. Vertical modules are installed as plugins:

    async with LedgerClient("https://api.devnet.solana.com") as client:
        client.set_identity(KeypairIdentity(keypair)).use(system_module())
        result = await client.system().transfer_sol(to=recipient, lamports=1_000)

A plugin is any object with an `install(client)` method. Plugins register
their handlers on `client.operations()` and may attach a namespaced helper
with `client.attach(name, obj)`, making it reachable as `client.<name>()`.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol, Sequence

from .config import SDKConfig
from .operations import OperationRegistry
from .query.gma import GmaBuilder
from .query.gpa import GpaBuilder
from .rpc.http import AsyncRpcClient
from .rpc.ledger import LedgerRpc
from .types.core import Commitment, PublicKeyLike
from .types.operation import Operation, OperationOptions
from .types.signer import GuestIdentity, IdentitySigner

__all__ = ["LedgerClient", "Plugin"]

log = logging.getLogger(__name__)


class Plugin(Protocol):
    def install(self, client: "LedgerClient") -> Any: ...


class LedgerClient:
    def __init__(
        self,
        rpc_url: Optional[str] = None,
        *,
        http: Optional[AsyncRpcClient] = None,
        config: Optional[SDKConfig] = None,
        identity: Optional[IdentitySigner] = None,
    ) -> None:
        if config is None:
            config = SDKConfig.with_overrides(rpc_url=rpc_url)
        elif rpc_url is not None:
            config = SDKConfig.with_overrides(config, rpc_url=rpc_url)
        self.config = config
        if http is None:
            http = AsyncRpcClient(
                config.rpc_url,
                timeout=config.request_timeout,
                max_retries=config.max_retries,
                backoff_base=config.backoff_base,
                headers=config.http_headers(),
            )
        self._http = http
        self._rpc = LedgerRpc(self, http)
        self._operations = OperationRegistry(self)
        self._identity: IdentitySigner = identity or GuestIdentity()
        self._modules: dict = {}

    # ------------------------------------------------------------------ accessors

    def operations(self) -> OperationRegistry:
        return self._operations

    def rpc(self) -> LedgerRpc:
        return self._rpc

    def identity(self) -> IdentitySigner:
        return self._identity

    def set_identity(self, identity: IdentitySigner) -> "LedgerClient":
        self._identity = identity
        return self

    # ------------------------------------------------------------------ plugins

    def use(self, plugin: Plugin) -> "LedgerClient":
        plugin.install(self)
        log.debug("installed plugin %s", type(plugin).__name__)
        return self

    def attach(self, name: str, module: Any) -> "LedgerClient":
        self._modules[name] = module
        return self

    def __getattr__(self, name: str) -> Any:
        modules = self.__dict__.get("_modules", {})
        if name in modules:
            module = modules[name]
            return lambda: module
        raise AttributeError(f"{type(self).__name__!s} has no attribute {name!r}")

    # ------------------------------------------------------------------ shortcuts

    async def execute(self, operation: Operation[Any], options: Optional[OperationOptions] = None) -> Any:
        return await self._operations.execute(operation, options)

    def gma(
        self,
        public_keys: Sequence[PublicKeyLike] = (),
        *,
        chunk_size: Optional[int] = None,
        commitment: Optional[Commitment] = None,
        max_parallel: Optional[int] = None,
    ) -> GmaBuilder:
        return GmaBuilder(
            self._rpc,
            public_keys,
            chunk_size=chunk_size or self.config.chunk_size,
            commitment=commitment,
            max_parallel=max_parallel if max_parallel is not None else self.config.max_parallel,
        )

    def gpa(self, program_id: PublicKeyLike) -> GpaBuilder:
        return GpaBuilder(self._rpc, program_id)

    # ------------------------------------------------------------------ lifecycle

    async def aclose(self) -> None:
        await self._http.aclose()

    close = aclose

    async def __aenter__(self) -> "LedgerClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        await self.aclose()

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"<LedgerClient rpc={self.config.rpc_url!r}>"
