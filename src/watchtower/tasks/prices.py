# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Price observation task.

Reports the protocol token's time-weighted average price (TWAP) for the latest
reportable block, once that block's epoch is finalized. The TWAP is read from
a concentrated-liquidity pool's tick accumulator:

    tick  = (cumulative[now] - cumulative[now - window]) // window
    price = 1e36 // floor(1.0001 ** tick * 1e18)          (wei per token)

Duplicate handling uses two ledger flags: one for "this exact price at this
block" (done, nothing to do) and one for "anything at this block". A hit on
the second only means an earlier report carried a different value, so the
corrected price is submitted again.
"""

import decimal
from collections.abc import Callable
from decimal import Decimal
from enum import Enum
from typing import Optional

from ..api.errors import ChainReadError, ConfigurationError
from ..chain.clients import BeaconClient, ExecutionClient, StorageReader, TwapPool
from ..chain.state import NetworkState
from ..chain.transactions import ContractCall
from ..core.config import WatchtowerConfig
from ..core.log import get_logger, log_context
from ..core.types import WEI_PER_ETH, BlockNumber, Wei
from ..core.utils import wei_to_eth
from ..runtime.ledger import PRICES_SUBMITTED_TAG, SubmissionLedgerProbe
from ..runtime.single_flight import SingleFlightRunner
from .base import TransactionSubmitter

NETWORK_PRICES_CONTRACT = "rocketNetworkPrices"
SUBMIT_METHOD = "submitPrices"

_TICK_BASE = Decimal("1.0001")
_TWAP_CONTEXT = decimal.Context(prec=80, rounding=decimal.ROUND_FLOOR)


class PriceOutcome(str, Enum):
    DISABLED = "disabled"
    NO_OP = "no_op"
    WAITING_ON_FINALITY = "waiting_on_finality"
    ALREADY_RUNNING = "already_running"
    STARTED = "started"


def twap_tick(cumulatives: list[int], window_sec: int) -> int:
    """Average tick over the window from `observe([window, 0])` cumulatives."""
    if len(cumulatives) != 2:
        raise ChainReadError(f"expected 2 tick cumulatives, got {len(cumulatives)}")
    if window_sec <= 0:
        raise ConfigurationError(f"TWAP window must be positive, got {window_sec}")
    return (cumulatives[1] - cumulatives[0]) // window_sec


def price_from_tick(tick: int) -> Wei:
    """Token price in wei for an average pool tick (1 ETH per token at tick 0)."""
    ratio = _TWAP_CONTEXT.power(_TICK_BASE, Decimal(tick))
    scaled = _TWAP_CONTEXT.multiply(ratio, Decimal(WEI_PER_ETH))
    denominator = int(scaled.to_integral_value(rounding=decimal.ROUND_FLOOR))
    if denominator <= 0:
        raise ChainReadError(f"tick {tick} is out of range for a price")
    return (WEI_PER_ETH * WEI_PER_ETH) // denominator


class PriceObservationTask:
    name = "prices"

    def __init__(
        self,
        cfg: WatchtowerConfig,
        *,
        beacon: BeaconClient,
        execution: ExecutionClient,
        storage: StorageReader,
        twap_pool: TwapPool,
        submitter: TransactionSubmitter,
        on_error: Optional[Callable[[BaseException], None]] = None,
    ) -> None:
        self.cfg = cfg
        self.beacon = beacon
        self.execution = execution
        self.twap_pool = twap_pool
        self.submitter = submitter
        self.ledger = SubmissionLedgerProbe(storage)
        self.flight = SingleFlightRunner(self.name, prefix="[Price Report]", on_error=on_error)
        self.log = get_logger("tasks.prices")

    async def run(self, state: NetworkState) -> PriceOutcome:
        details = state.network_details
        if not details.submit_prices_enabled:
            return PriceOutcome.DISABLED

        self.log.info("Checking for price checkpoint...", event="prices.check")
        block = details.latest_reportable_prices_block
        if block <= details.prices_block:
            return PriceOutcome.NO_OP

        header = await self.execution.header_by_number(block)
        beacon_cfg = state.beacon_config
        slot = max(0, header.timestamp - beacon_cfg.genesis_time) // beacon_cfg.seconds_per_slot
        target_epoch = beacon_cfg.epoch_of(slot)
        finalized_epoch = (await self.beacon.get_beacon_head()).finalized_epoch
        if target_epoch > finalized_epoch:
            self.log.info(
                f"Prices must be reported for EL block {block}, waiting until epoch {target_epoch} "
                f"is finalized (currently {finalized_epoch})",
                event="prices.waiting_finality",
                block=block,
                target_epoch=target_epoch,
                finalized_epoch=finalized_epoch,
            )
            return PriceOutcome.WAITING_ON_FINALITY

        if not self.flight.try_start():
            self.log.info("Price report is already running in the background.", event="prices.already_running")
            return PriceOutcome.ALREADY_RUNNING

        self.flight.launch(lambda: self._report(block))
        return PriceOutcome.STARTED

    async def get_twap_price(self, block: BlockNumber) -> Wei:
        pool = self.cfg.twap_pool_address
        if not pool:
            raise ConfigurationError("TWAP pool contract is not configured for this network")
        window = self.cfg.twap_window_sec
        try:
            cumulatives = await self.twap_pool.observe(pool, [window, 0], block=block)
        except ChainReadError:
            raise
        except Exception as e:
            raise ChainReadError(f"could not get price at block {block}: {e}") from e
        return price_from_tick(twap_tick(list(cumulatives), window))

    async def _report(self, block: BlockNumber) -> None:
        with log_context(task=self.name, block=block):
            self.log.info(f"{self.flight.prefix} Starting price report in the background.", event="prices.started")
            if not self.cfg.node_address:
                raise ConfigurationError("node_address is required to submit prices")

            price = await self.get_twap_price(block)
            self.log.info(f"Price: {wei_to_eth(price):.6f} ETH", event="prices.computed", price_wei=price)

            address = self.cfg.node_address
            if await self.ledger.has_submitted(PRICES_SUBMITTED_TAG, address, block, price):
                self.log.info(
                    f"Price for block {block} was already submitted by this node.",
                    event="prices.already_submitted",
                )
                return
            if await self.ledger.has_submitted(PRICES_SUBMITTED_TAG, address, block):
                self.log.warning(
                    f"Have previously submitted out-of-date prices for block {block}, trying again...",
                    event="prices.resubmitting",
                )

            call = ContractCall(contract=NETWORK_PRICES_CONTRACT, method=SUBMIT_METHOD, args=(block, price))
            await self.submitter.submit(call, description=f"price for block {block}")
            self.log.info(f"{self.flight.prefix} Price report complete.", event="prices.submitted", price_wei=price)
