# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Write-side chain collaborators.

The watchtower only *prepares* calls: the contract/method/args, an optional
value and an optional fixed gas limit. The transaction layer owns nonces,
signing, broadcasting and confirmation.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from ..core.types import Wei


@dataclass(frozen=True)
class ContractCall:
    contract: str  # logical name or address understood by the transaction layer
    method: str
    args: tuple[Any, ...] = field(default_factory=tuple)
    value: Wei = 0
    gas_limit: int | None = None

    def describe(self) -> str:
        return f"{self.contract}.{self.method}"


@dataclass(frozen=True)
class GasEstimate:
    est_gas_limit: int
    safe_gas_limit: int
    sim_error: str = ""


@dataclass(frozen=True)
class FeeParams:
    max_fee_wei: Wei
    priority_fee_wei: Wei
    gas_limit: int


@dataclass(frozen=True)
class TxHandle:
    tx_hash: str
    nonce: int | None = None


@runtime_checkable
class TransactionLayer(Protocol):
    async def estimate(self, call: ContractCall) -> GasEstimate:
        """Simulate `call` and estimate gas; reverts are reported via `sim_error`."""
        ...

    async def send(self, call: ContractCall, fees: FeeParams) -> TxHandle: ...

    async def wait(self, handle: TxHandle) -> None:
        """Block until the transaction is included; raise if it failed."""
        ...


@runtime_checkable
class FeeOracle(Protocol):
    async def suggested_max_fee_wei(self) -> Wei:
        """Network-recommended max fee per gas (base fee plus headroom)."""
        ...
