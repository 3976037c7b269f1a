"""
Pool deployment.

Deploys and wires the full contract set on a ``Chain``:

1. Deposit endpoint at the configured address (unless one already exists)
2. Share ledger
3. Validator registry (optional)
4. Pool controller, bound to the ledger and registry; both bind the controller
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..config import PoolConfig
from ..contracts.base import Chain
from ..contracts.deposit_endpoint import BeaconDepositContract
from ..logger import get_logger
from ..tokens.shares import ShareLedger
from ..validator.registry import ValidatorRegistry
from .controller import PoolController

logger = get_logger(__name__)


@dataclass
class PoolDeployment:
    """Handles to every contract of one deployed pool."""
    chain: Chain
    ledger: ShareLedger
    controller: PoolController
    endpoint: BeaconDepositContract
    registry: Optional[ValidatorRegistry] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ledger": self.ledger.address,
            "controller": self.controller.address,
            "depositEndpoint": self.endpoint.address,
            "validatorRegistry": self.registry.address if self.registry else None,
        }


def deploy_pool(chain: Chain, owner: str, config: Optional[PoolConfig] = None) -> PoolDeployment:
    """
    Deploy a pool owned by *owner*.

    Args:
        chain: Host ledger to deploy on
        owner: Admin of every deployed contract
        config: Deployment parameters (defaults when omitted)

    Returns:
        PoolDeployment with all contract handles
    """
    config = config or PoolConfig()
    config.validate()

    with chain.atomic():
        if chain.is_contract(config.deposit_endpoint):
            endpoint = chain.get_contract(config.deposit_endpoint)
        else:
            endpoint = BeaconDepositContract(chain, owner, config.deposit_endpoint)

        ledger = ShareLedger(
            chain,
            owner,
            name=config.ledger.name,
            symbol=config.ledger.symbol,
            decimals=config.ledger.decimals,
            virtual_offset=config.ledger.virtual_offset,
        )
        controller = PoolController(
            chain,
            owner,
            min_deposit=config.min_deposit,
            withdrawal_delay=config.withdrawal_delay_blocks,
            deposit_endpoint=endpoint.address,
        )
        ledger.set_controller(owner, controller.address)
        controller.set_ledger(owner, ledger.address)

        registry = None
        if config.with_registry:
            registry = ValidatorRegistry(chain, owner)
            registry.set_controller(owner, controller.address)
            controller.set_validator_registry(owner, registry.address)

    deployment = PoolDeployment(chain, ledger, controller, endpoint, registry)
    logger.info(f"Pool deployed on {config.network_name}: {deployment.to_dict()}")
    return deployment
