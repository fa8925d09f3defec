"""Read-only projection of deployment cost."""

from __future__ import annotations

import logging

from ..exceptions import EstimationError
from ..types import GasEstimate
from ..utils import format_ether
from .connections import ChainConnection
from .factory import ContractFactory

logger = logging.getLogger(__name__)


class GasEstimator:
    """Combine current fee data with a simulated deploy."""

    def __init__(self, connection: ChainConnection) -> None:
        self._connection = connection

    async def estimate(self, factory: ContractFactory) -> GasEstimate:
        try:
            gas_price = await self._connection.gas_price()
            gas_estimate = await factory.estimate_gas()
        except Exception as exc:
            raise EstimationError(
                f"Failed to estimate deployment of {factory.artifact.contract_name}: {exc}",
                details={"error": str(exc)},
            ) from exc

        estimate = GasEstimate(
            gas_estimate=gas_estimate,
            gas_price=gas_price,
            projected_cost=gas_estimate * gas_price,
        )
        logger.info(
            "Estimated deployment gas=%s price=%s wei cost=%s ETH",
            estimate.gas_estimate,
            estimate.gas_price,
            format_ether(estimate.projected_cost),
        )
        return estimate
