"""
Scenario replay.

A scenario is a TOML document describing funded accounts and an ordered list
of steps to run against a fresh pool deployment:

    [balances]
    alice = "1000"            # whole tokens, or an integer in base units

    [[steps]]
    action = "deposit"
    account = "alice"
    amount = "100"

    [[steps]]
    action = "credit"         # side-channel reward to the controller
    amount = "50"

    [[steps]]
    action = "claim"
    account = "alice"
    expect_error = "InsufficientReserveError"

Accounts are labels; each label maps to a deterministic address. The label
``admin`` is the owner of the deployment.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    import tomli  # type: ignore[no-redef]

from eth_utils import keccak, to_checksum_address

from ..config import PoolConfig, parse_amount
from ..constants import (
    DEPOSIT_DATA_ROOT_LENGTH,
    PUBKEY_LENGTH,
    SIGNATURE_LENGTH,
    WITHDRAWAL_CREDENTIALS_LENGTH,
)
from ..contracts.base import Chain
from ..exceptions import ConfigurationError, QuantaPoolError
from ..logger import get_logger
from ..pool.deploy import PoolDeployment, deploy_pool

logger = get_logger(__name__)

ADMIN_LABEL = "admin"


def account_address(label: str) -> str:
    """Deterministic address for an account label."""
    return to_checksum_address(keccak(text=f"quantapool-account:{label}")[-20:])


def filler_bytes(seed: str, length: int) -> bytes:
    """Deterministic pseudo-random bytes of *length*, for simulated validator keys."""
    out = b""
    counter = 0
    while len(out) < length:
        out += keccak(text=f"{seed}:{counter}")
        counter += 1
    return out[:length]


@dataclass
class StepResult:
    index: int
    action: str
    account: Optional[str]
    result: Any = None
    error: Optional[str] = None
    expected: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None or self.expected

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "action": self.action,
            "account": self.account,
            "result": self.result if not isinstance(self.result, tuple) else list(self.result),
            "error": self.error,
            "expected": self.expected,
        }


@dataclass
class Scenario:
    balances: Dict[str, int] = field(default_factory=dict)
    steps: List[Dict[str, Any]] = field(default_factory=list)
    pool: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Scenario":
        steps = data.get("steps", [])
        for i, step in enumerate(steps):
            if "action" not in step:
                raise ConfigurationError(f"Step {i} has no action")
        return cls(
            balances={label: parse_amount(v) for label, v in data.get("balances", {}).items()},
            steps=list(steps),
            pool=data,
        )

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "Scenario":
        path = Path(path)
        with open(path, "rb") as f:
            try:
                raw = tomli.load(f)
            except tomli.TOMLDecodeError as e:
                raise ConfigurationError(f"Invalid scenario {path}: {e}") from e
        return cls.from_dict(raw)


class ScenarioRunner:
    """Deploys a pool and replays a scenario against it."""

    def __init__(self, scenario: Scenario, config: Optional[PoolConfig] = None):
        self.scenario = scenario
        self.chain = Chain()
        self.admin = account_address(ADMIN_LABEL)
        if config is None:
            config = PoolConfig.from_dict(scenario.pool)
        self.deployment: PoolDeployment = deploy_pool(self.chain, self.admin, config)
        self.results: List[StepResult] = []
        self._validator_seq = 0

        for label, amount in scenario.balances.items():
            self.chain.set_balance(account_address(label), amount)

        self._actions: Dict[str, Callable[[Dict[str, Any]], Any]] = {
            "deposit": self._deposit,
            "request_withdrawal": self._request_withdrawal,
            "claim": self._claim,
            "cancel": self._cancel,
            "transfer": self._transfer,
            "credit": self._credit,
            "debit": self._debit,
            "mine": self._mine,
            "sync": self._sync,
            "fund_reserve": self._fund_reserve,
            "fund_validator": self._fund_validator,
            "fund_validator_simple": self._fund_validator_simple,
            "mark_validator_exited": self._mark_validator_exited,
            "activate_validator": self._registry_call("activate"),
            "request_validator_exit": self._request_validator_exit,
            "slash_validator": self._registry_call("mark_slashed"),
            "pause": self._pause,
            "unpause": self._unpause,
        }

    @property
    def controller(self):
        return self.deployment.controller

    @property
    def ledger(self):
        return self.deployment.ledger

    # ── Actions ───────────────────────────────────────────────────────

    def _account(self, step: Dict[str, Any]) -> str:
        return account_address(step.get("account", ADMIN_LABEL))

    def _deposit(self, step):
        return self.controller.deposit(self._account(step), parse_amount(step["amount"]))

    def _request_withdrawal(self, step):
        return self.controller.request_withdrawal(self._account(step), parse_amount(step["shares"]))

    def _claim(self, step):
        return self.controller.claim_withdrawal(self._account(step))

    def _cancel(self, step):
        return self.controller.cancel_withdrawal(self._account(step), int(step["request_id"]))

    def _transfer(self, step):
        return self.ledger.transfer(
            self._account(step), account_address(step["to"]), parse_amount(step["shares"])
        )

    def _credit(self, step):
        return self.chain.credit(self.controller.address, parse_amount(step["amount"]))

    def _debit(self, step):
        return self.chain.debit(self.controller.address, parse_amount(step["amount"]))

    def _mine(self, step):
        return self.chain.mine(int(step.get("blocks", 1)))

    def _sync(self, step):
        return self.controller.sync_rewards(self._account(step))

    def _fund_reserve(self, step):
        return self.controller.fund_reserve(self.admin, parse_amount(step["amount"]))

    def _fund_validator(self, step):
        self._validator_seq += 1
        seed = step.get("seed", f"validator-{self._validator_seq}")
        return self.controller.fund_validator(
            self.admin,
            filler_bytes(f"{seed}:pubkey", PUBKEY_LENGTH),
            filler_bytes(f"{seed}:credentials", WITHDRAWAL_CREDENTIALS_LENGTH),
            filler_bytes(f"{seed}:signature", SIGNATURE_LENGTH),
            filler_bytes(f"{seed}:root", DEPOSIT_DATA_ROOT_LENGTH),
        )

    def _fund_validator_simple(self, step):
        return self.controller.fund_validator_simple(self.admin)

    def _request_validator_exit(self, step):
        return self.controller.request_validator_exit(self.admin, int(step["validator_id"]))

    def _mark_validator_exited(self, step):
        return self.controller.mark_validator_exited(self.admin, int(step["validator_id"]))

    def _registry_call(self, method: str) -> Callable[[Dict[str, Any]], Any]:
        """Registry transition addressed by the controller's validator id."""
        def call(step):
            registry = self.deployment.registry
            if registry is None:
                raise ConfigurationError("Scenario pool was deployed without a registry")
            allocation = self.controller.get_allocation(int(step["validator_id"]))
            if allocation.registry_id is None:
                raise ConfigurationError(
                    f"Validator {allocation.validator_id} is not registered (test-mode funding)"
                )
            return getattr(registry, method)(self.admin, allocation.registry_id)
        return call

    def _pause(self, step):
        return self.controller.pause(self.admin)

    def _unpause(self, step):
        return self.controller.unpause(self.admin)

    # ── Replay ────────────────────────────────────────────────────────

    def run_step(self, index: int, step: Dict[str, Any]) -> StepResult:
        action = step["action"]
        handler = self._actions.get(action)
        if handler is None:
            raise ConfigurationError(f"Unknown action {action!r} in step {index}")

        expect_error = step.get("expect_error")
        result = StepResult(index, action, step.get("account"))
        try:
            result.result = handler(step)
        except QuantaPoolError as e:
            result.error = type(e).__name__
            result.expected = expect_error == result.error
            if not result.expected:
                logger.error(f"Step {index} ({action}) failed: {e}")
        else:
            if expect_error:
                result.error = f"expected {expect_error}, call succeeded"
        return result

    def run(self, stop_on_error: bool = True) -> List[StepResult]:
        for index, step in enumerate(self.scenario.steps):
            result = self.run_step(index, step)
            self.results.append(result)
            if not result.ok and stop_on_error:
                break
        return self.results

    @property
    def succeeded(self) -> bool:
        return all(r.ok for r in self.results)

    def balances(self) -> Dict[str, Dict[str, int]]:
        """Native balance and shares for every scenario account."""
        labels = [ADMIN_LABEL] + [name for name in self.scenario.balances if name != ADMIN_LABEL]
        out = {}
        for label in labels:
            address = account_address(label)
            out[label] = {
                "native": self.chain.balance_of(address),
                "shares": self.ledger.shares_of(address),
                "value": self.ledger.value_of(address),
            }
        return out
