"""
QuantaPool Constants

This module consolidates the protocol constants and the environment
configuration used throughout the codebase. Constants are organized by
category for easy reference and maintenance.
"""
import ast

from dotenv import dotenv_values

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
# Load environment variables once at module import
_config = dotenv_values(".env")

LOGGER_DEFAULTS = {
    'LOG_LEVEL':                       'INFO',
    'LOG_FORMAT':                      '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    'LOG_DATE_FORMAT':                 '%Y-%m-%dT%H:%M:%S',
    'LOG_CONSOLE_HIGHLIGHTING':        'True',
    'LOG_FILE_OUTPUT':                 'False',
}

POOL_DEFAULTS = {
    'QUANTAPOOL_CONFIG_FILE':          'quantapool.toml',
    'QUANTAPOOL_NETWORK_NAME':         'zond-testnet',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
LOG_BACKUP_COUNT = 5


# WARNING: THE PROTOCOL VALUES BELOW MUST MATCH THE DEPLOYED CONTRACTS. CHANGE THEM ONLY
# FOR TESTING OR WHEN DEPLOYING A NEW POOL. A POOL WHOSE LOCAL CONSTANTS DIFFER FROM THE
# ON-CHAIN ONES WILL QUOTE WRONG SHARE PRICES AND WRONG CLAIM DELAYS.

# ==================================================================================
# UNITS
# ==================================================================================
WEI = 10 ** 18  # Base units per whole token
SHARE_DECIMALS = 18


# ==================================================================================
# POOL PARAMETERS
# ==================================================================================
VALIDATOR_STAKE = 40_000 * WEI  # Principal required per validator
MIN_DEPOSIT = 1 * WEI  # Default minimum deposit
WITHDRAWAL_DELAY_BLOCKS = 128  # Blocks between request and claim

# Added to both sides of every share/value conversion so the first depositor
# cannot be priced out by pre-funding the controller before any shares exist.
VIRTUAL_OFFSET = 1_000

# Unlimited allowance sentinel (never decremented by transfer_from)
MAX_ALLOWANCE = 2 ** 256 - 1

# Exchange rate views are scaled by this factor (value per 10**18 shares)
RATE_PRECISION = WEI


# ==================================================================================
# SHARE TOKEN METADATA
# ==================================================================================
SHARE_TOKEN_NAME = "Staked QRL"
SHARE_TOKEN_SYMBOL = "stQRL"


# ==================================================================================
# EXTERNAL DEPOSIT ENDPOINT
# ==================================================================================
# Byte widths of the fixed deposit call shape. Order and widths are non-negotiable.
PUBKEY_LENGTH = 2592  # Dilithium public key (validator credential)
WITHDRAWAL_CREDENTIALS_LENGTH = 32
SIGNATURE_LENGTH = 4595  # Dilithium signature
DEPOSIT_DATA_ROOT_LENGTH = 32

BEACON_DEPOSIT_ADDRESS = '0x4242424242424242424242424242424242424242'
DEPOSIT_CONTRACT_TREE_DEPTH = 32


# ==================================================================================
# ADDRESSES
# ==================================================================================
ZERO_ADDRESS = '0x' + '00' * 20


# ==================================================================================
# CONFIGURATION WRAPPERS
# ==================================================================================
class ConfigString(str):
    """
    String subclass that stores a default value.
    """
    def __new__(cls, value, default):
        obj = str.__new__(cls, value)
        obj._default = default
        return obj

    def default(self):
        return self._default

class ConfigBool(int):
    """
    Int subclass acting as a boolean that stores a default value.
    """
    def __new__(cls, value, default):
        obj = int.__new__(cls, bool(value))
        obj._default = default
        return obj

    def default(self):
        return self._default

    def __repr__(self):
        return str(bool(self))

    def __str__(self):
        return str(bool(self))

    def __eq__(self, other):
        return bool(self) == other

    def __hash__(self):
        return hash(bool(self))


# ==================================================================================
# DYNAMIC CONFIGURATION LOADING
# ==================================================================================
DEFAULTS = LOGGER_DEFAULTS | POOL_DEFAULTS
namespace = globals()

def parse_bool(v):
    """
    Convert "True"/"False" (any casing, with surrounding whitespace) into bool.
    Avoids exceptions by only calling ast.literal_eval for known literals.
    """
    if not isinstance(v, str):
        return v
    s = v.strip()
    if not s:
        return v
    if s.casefold() in {"true", "false"}:
        return ast.literal_eval(s.title())
    return v

for key, default_raw in DEFAULTS.items():
    # dotenv_values returns strings or None. None is treated as missing.
    raw = _config.get(key)
    value_raw = default_raw if raw is None else raw

    value = parse_bool(value_raw)
    default_val = parse_bool(default_raw)

    if isinstance(value, bool):
        namespace[key] = ConfigBool(value, default_val)
    else:
        namespace[key] = ConfigString(value_raw, default_val)
