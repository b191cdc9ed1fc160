# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Shared submission plumbing for the oracle tasks.

Every on-chain write goes the same way: simulate, refuse on a simulated
revert, log the gas picture, apply the configured fee caps, send, and wait for
inclusion. Collaborator failures are re-raised as `SubmissionError` so task
runs can tell "the chain said no" apart from bugs.
"""

from ..api.errors import SimulationError, SubmissionError
from ..chain.transactions import ContractCall, FeeParams, TransactionLayer, TxHandle
from ..core.config import WatchtowerConfig
from ..core.log import get_logger
from ..core.types import Wei
from ..observability.metrics import WatchtowerMetrics


class TransactionSubmitter:
    def __init__(self, cfg: WatchtowerConfig, tx: TransactionLayer, *, metrics: WatchtowerMetrics | None = None) -> None:
        self.cfg = cfg
        self.tx = tx
        self.metrics = metrics
        self.log = get_logger("submit")

    async def submit(
        self,
        call: ContractCall,
        *,
        description: str,
        max_fee_wei: Wei | None = None,
    ) -> TxHandle:
        """
        Simulate, send and await `call`.

        `max_fee_wei` overrides the configured cap for this one transaction.
        A fixed `call.gas_limit` wins over the estimate.

        Raises:
            SimulationError: the transaction layer reported a revert.
            SubmissionError: estimating, sending or waiting failed.
        """
        try:
            estimate = await self.tx.estimate(call)
        except Exception as e:
            self._count(call, "failed")
            raise SubmissionError(f"error getting TX for {description}: {e}") from e
        if estimate.sim_error:
            self._count(call, "reverted")
            raise SimulationError(f"simulating TX for {description} failed: {estimate.sim_error}")

        fees = FeeParams(
            max_fee_wei=max_fee_wei if max_fee_wei is not None else self.cfg.max_fee_wei,
            priority_fee_wei=self.cfg.priority_fee_wei,
            gas_limit=call.gas_limit or estimate.safe_gas_limit,
        )
        self.log.info(
            f"Estimated gas {estimate.est_gas_limit}, safe gas limit {estimate.safe_gas_limit}; "
            f"using limit {fees.gas_limit} at max fee {fees.max_fee_wei} wei",
            event="submit.gas",
            call=call.describe(),
            est_gas=estimate.est_gas_limit,
            safe_gas=estimate.safe_gas_limit,
            gas_limit=fees.gas_limit,
            max_fee_wei=fees.max_fee_wei,
            priority_fee_wei=fees.priority_fee_wei,
        )

        try:
            handle = await self.tx.send(call, fees)
            self.log.info(
                f"Transaction for {description} sent: {handle.tx_hash}, waiting for it to be included...",
                event="submit.sent",
                call=call.describe(),
                tx_hash=handle.tx_hash,
            )
            await self.tx.wait(handle)
        except Exception as e:
            self._count(call, "failed")
            raise SubmissionError(f"error submitting {description}: {e}") from e

        self.log.info(f"Successfully submitted {description}.", event="submit.ok", tx_hash=handle.tx_hash)
        self._count(call, "ok")
        return handle

    def _count(self, call: ContractCall, result: str) -> None:
        if self.metrics is not None:
            self.metrics.submissions_total.labels(method=call.method, result=result).inc()
