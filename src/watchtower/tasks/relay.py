# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Cross-chain rate relay task.

Each configured L2 messenger exposes an `isRateStale()` flag. When any flag is
set, only the oracle member on duty for the current rotation window relays
the rate, so the member set does not flood the chain with duplicates and an
offline leader just hands the job to the next window. Targets are independent:
every stale target is attempted, and all failures are raised together.
"""

from dataclasses import dataclass

from ..api.errors import ChainReadError, RelaySubmissionError
from ..chain.clients import RateMessengerReader
from ..chain.state import NetworkState
from ..chain.transactions import ContractCall, FeeOracle
from ..core.config import RELAY_TARGETS, WatchtowerConfig
from ..core.log import get_logger, log_context
from ..core.types import Address, BlockNumber, Wei
from ..core.utils import gwei_to_wei
from ..runtime.rotation import is_my_turn, member_index
from .base import TransactionSubmitter

SUBMIT_METHOD = "submitRate"

# Arbitrum retryable ticket parameters
ARBITRUM_BUFFER_MULTIPLIER = 4
ARBITRUM_DATA_LENGTH = 36
ARBITRUM_L2_GAS_LIMIT = 40_000
ARBITRUM_L2_MAX_FEE_PER_GAS: Wei = gwei_to_wei(0.1)

# zkSync Era L1->L2 request parameters
ZKSYNC_L1_GAS_PER_PUBDATA_BYTE = 17
ZKSYNC_FAIR_L2_GAS_PRICE: Wei = gwei_to_wei(0.5)
ZKSYNC_L2_GAS_LIMIT = 750_000
ZKSYNC_GAS_PER_PUBDATA_BYTE = 800

_LABELS = {
    "optimism": "Optimism",
    "polygon": "Polygon",
    "arbitrum": "Arbitrum",
    "zksync_era": "zkSync Era",
    "base": "Base",
}


def arbitrum_call(messenger: Address, suggested_max_fee: Wei) -> ContractCall:
    """`submitRate` paying for the L2 execution plus a buffered retryable submission cost."""
    max_submission_cost = (1400 + 6 * ARBITRUM_DATA_LENGTH) * suggested_max_fee * ARBITRUM_BUFFER_MULTIPLIER
    value = ARBITRUM_L2_GAS_LIMIT * ARBITRUM_L2_MAX_FEE_PER_GAS + max_submission_cost
    return ContractCall(
        contract=messenger,
        method=SUBMIT_METHOD,
        args=(max_submission_cost, ARBITRUM_L2_GAS_LIMIT, ARBITRUM_L2_MAX_FEE_PER_GAS),
        value=value,
    )


def zksync_era_call(messenger: Address, max_fee: Wei) -> ContractCall:
    """`submitRate` paying for the L2 gas at the larger of the fair price and the pubdata-derived minimum."""
    pubdata_price = ZKSYNC_L1_GAS_PER_PUBDATA_BYTE * max_fee
    min_l2_gas_price = -(-pubdata_price // ZKSYNC_GAS_PER_PUBDATA_BYTE)  # ceil
    gas_price = max(ZKSYNC_FAIR_L2_GAS_PRICE, min_l2_gas_price)
    return ContractCall(
        contract=messenger,
        method=SUBMIT_METHOD,
        args=(ZKSYNC_L2_GAS_LIMIT, ZKSYNC_GAS_PER_PUBDATA_BYTE),
        value=ZKSYNC_L2_GAS_LIMIT * gas_price,
    )


@dataclass(frozen=True)
class RelayReport:
    block: BlockNumber
    stale: tuple[str, ...] = ()
    submitted: tuple[str, ...] = ()
    failed: tuple[str, ...] = ()
    skipped_reason: str | None = None

    @property
    def acted(self) -> bool:
        return bool(self.submitted)


@dataclass
class _Target:
    name: str
    messenger: Address
    stale: bool = False


class CrossChainRelayTask:
    name = "relay"

    def __init__(
        self,
        cfg: WatchtowerConfig,
        *,
        rates: RateMessengerReader,
        fees: FeeOracle,
        submitter: TransactionSubmitter,
    ) -> None:
        self.cfg = cfg
        self.rates = rates
        self.fees = fees
        self.submitter = submitter
        self.last_report: RelayReport | None = None
        self.log = get_logger("tasks.relay")

    def configured_targets(self) -> list[_Target]:
        """Targets with a messenger address, in relay order; the rest are skipped entirely."""
        return [
            _Target(name, addr) for name in RELAY_TARGETS if (addr := self.cfg.relay_address(name)) is not None
        ]

    async def run(self, state: NetworkState) -> RelayReport:
        """
        Relay every stale rate if this node is on duty for the current window.

        Raises:
            ExceptionGroup: of `RelaySubmissionError`, after every stale target was attempted.
                The per-target outcome is still available as `last_report`.
        """
        block = state.el_block_number
        self.last_report = None
        targets = self.configured_targets()
        if not targets:
            return self._record(RelayReport(block, skipped_reason="no messengers configured"))

        flags = await self.rates.are_rates_stale([t.messenger for t in targets], block=block)
        if len(flags) != len(targets):
            raise ChainReadError(f"expected {len(targets)} staleness flags, got {len(flags)}")
        for target, flag in zip(targets, flags):
            target.stale = bool(flag)
        stale = [t for t in targets if t.stale]
        if not stale:
            return self._record(RelayReport(block, skipped_reason="no stale rates"))
        names = tuple(t.name for t in stale)

        members = state.oracle_members
        index = member_index(members, self.cfg.node_address)
        if index is None:
            self.log.debug("Not an oracle member, leaving stale rates to the others", event="relay.not_member")
            return self._record(RelayReport(block, stale=names, skipped_reason="not an oracle member"))
        if not is_my_turn(index, block, self.cfg.blocks_per_turn, len(members)):
            self.log.debug(
                f"Stale rates on {', '.join(names)} but block {block} is another member's turn",
                event="relay.not_my_turn",
                stale=list(names),
            )
            return self._record(RelayReport(block, stale=names, skipped_reason="not this node's turn"))

        submitted: list[str] = []
        errors: list[RelaySubmissionError] = []
        for target in stale:
            with log_context(target=target.name, block=block):
                try:
                    await self._relay(target, block)
                except Exception as e:
                    self.log.error(
                        f"{_LABELS[target.name]} rate relay failed: {e}",
                        event="relay.failed",
                        exc_info=e,
                    )
                    errors.append(RelaySubmissionError(target.name, e))
                else:
                    submitted.append(target.name)

        report = self._record(
            RelayReport(block, stale=names, submitted=tuple(submitted), failed=tuple(e.target for e in errors))
        )
        if errors:
            raise ExceptionGroup(f"rate relay failed for {len(errors)} of {len(stale)} target(s)", errors)
        return report

    def _record(self, report: RelayReport) -> RelayReport:
        self.last_report = report
        return report

    async def _relay(self, target: _Target, block: BlockNumber) -> None:
        label = _LABELS[target.name]
        self.log.info(f"Submitting rate to {label}...", event="relay.submitting")
        call = await self.prepare_call(target.name, target.messenger)
        await self.submitter.submit(call, description=f"{label} price update")
        self.log.info(f"Successfully submitted {label} price for block {block}.", event="relay.submitted")

    async def prepare_call(self, target: str, messenger: Address) -> ContractCall:
        if target == "arbitrum":
            return arbitrum_call(messenger, await self.fees.suggested_max_fee_wei())
        if target == "zksync_era":
            return zksync_era_call(messenger, self.cfg.max_fee_wei)
        return ContractCall(contract=messenger, method=SUBMIT_METHOD)
