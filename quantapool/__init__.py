"""
QuantaPool Package

Accounting core of a pooled staking protocol: share ledger, pool controller
and validator registry, running on an in-process host ledger.

Core imports are lazily loaded. For direct module access, import from
submodules:

    from quantapool.contracts import Chain
    from quantapool.pool import deploy_pool
    from quantapool.exceptions import InsufficientReserveError
"""

__version__ = "0.1.0"


# Lazy imports to avoid loading everything at package import
def __getattr__(name):
    """Lazy module loading."""
    if name == 'Chain':
        from .contracts.base import Chain
        return Chain
    elif name == 'deploy_pool':
        from .pool.deploy import deploy_pool
        return deploy_pool
    elif name == 'PoolConfig':
        from .config import PoolConfig
        return PoolConfig
    elif name == 'QuantaPoolError':
        from .exceptions import QuantaPoolError
        return QuantaPoolError
    raise AttributeError(f"module 'quantapool' has no attribute {name!r}")

__all__ = ['Chain', 'deploy_pool', 'PoolConfig', 'QuantaPoolError']
