"""
Shared fixtures for the QuantaPool test suite.
"""

import os
import sys

import pytest
from eth_utils import to_checksum_address

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from quantapool.config import PoolConfig
from quantapool.constants import WEI
from quantapool.contracts.base import Chain
from quantapool.pool.deploy import deploy_pool


ADMIN = to_checksum_address("0x" + "ad" * 20)


@pytest.fixture
def chain():
    """Fresh host ledger at block 0."""
    return Chain()


@pytest.fixture
def pool(chain):
    """Full deployment (ledger, controller, registry, endpoint) owned by ADMIN."""
    chain.set_balance(ADMIN, 1_000_000 * WEI)
    return deploy_pool(chain, ADMIN, PoolConfig())


@pytest.fixture
def simple_pool(chain):
    """Deployment without a validator registry."""
    chain.set_balance(ADMIN, 1_000_000 * WEI)
    return deploy_pool(chain, ADMIN, PoolConfig(with_registry=False))
