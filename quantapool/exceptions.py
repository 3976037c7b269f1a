"""
QuantaPool Exceptions

Every failure the pool can raise is a distinct class so callers branch on the
type, never on the message. The hierarchy follows the failure families:
authorization, lifecycle/state, validation, economic sufficiency, timing.
"""


class QuantaPoolError(Exception):
    """Base exception for QuantaPool."""
    pass


# =============================================================================
# AUTHORIZATION
# =============================================================================

class UnauthorizedError(QuantaPoolError):
    """Caller is not allowed to perform the operation."""
    def __init__(self, caller: str, role: str, message: str = None):
        self.caller = caller
        self.role = role
        super().__init__(message or f"{caller} is not the {role}")


class NotOwnerError(UnauthorizedError):
    """Caller is not the admin of the contract."""
    def __init__(self, caller: str):
        super().__init__(caller, "owner")


class NotControllerError(UnauthorizedError):
    """Caller is not the bound pool controller."""
    def __init__(self, caller: str):
        super().__init__(caller, "controller")


# =============================================================================
# LIFECYCLE / STATE
# =============================================================================

class StateError(QuantaPoolError):
    """Operation is not allowed in the current state."""
    pass


class ContractPausedError(StateError):
    """Contract is paused."""
    def __init__(self, contract: str):
        self.contract = contract
        super().__init__(f"{contract} is paused")


class AlreadyProcessedError(StateError):
    """Withdrawal request was already claimed or cancelled."""
    pass


class AlreadySetError(StateError):
    """A set-once field was already set."""
    def __init__(self, field_name: str):
        self.field_name = field_name
        super().__init__(f"{field_name} already set")


class NotConfiguredError(StateError):
    """A required collaborator address was never set."""
    def __init__(self, field_name: str):
        self.field_name = field_name
        super().__init__(f"{field_name} not configured")


class ReentrantCallError(StateError):
    """Contract was re-entered while a call on it was still running."""
    pass


class InvalidTransitionError(StateError):
    """Validator lifecycle transition is not allowed from the current status."""
    def __init__(self, validator_id: int, current, action: str):
        self.validator_id = validator_id
        self.current = current
        self.action = action
        super().__init__(
            f"Validator {validator_id} cannot {action} from status {current.name}"
        )


# =============================================================================
# VALIDATION
# =============================================================================

class ValidationError(QuantaPoolError):
    """Input is malformed."""
    pass


class ZeroAmountError(ValidationError):
    """Amount must be positive."""
    def __init__(self, what: str = "amount"):
        super().__init__(f"{what} must be positive")


class ZeroAddressError(ValidationError):
    """Zero address used as a target."""
    def __init__(self, what: str = "address"):
        super().__init__(f"{what} cannot be the zero address")


class InvalidAddressError(ValidationError):
    """Address is not a 20-byte hex address."""
    pass


class BelowMinimumError(ValidationError):
    """Amount is below the configured minimum."""
    def __init__(self, minimum: int, actual: int):
        self.minimum = minimum
        self.actual = actual
        super().__init__(f"Amount {actual} below minimum {minimum}")


class MalformedBytesError(ValidationError):
    """Byte parameter is not bytes or a valid hex string."""
    def __init__(self, what: str, detail: str):
        self.what = what
        super().__init__(f"{what} is malformed: {detail}")


class NegativeAmountError(ValidationError):
    """Amount cannot be negative."""
    def __init__(self, what: str, actual: int):
        self.what = what
        self.actual = actual
        super().__init__(f"{what} cannot be negative, got {actual}")


class InvalidLengthError(ValidationError):
    """Fixed-length byte parameter has the wrong length."""
    def __init__(self, what: str, expected: int, actual: int):
        self.what = what
        self.expected = expected
        self.actual = actual
        super().__init__(f"{what} must be {expected} bytes, got {actual}")


class ZeroSharesError(ValidationError):
    """Deposit is too small to mint a single share."""
    pass


class DuplicateCredentialError(ValidationError):
    """Validator credential is already registered."""
    pass


class RequestNotFoundError(ValidationError):
    """Withdrawal request index does not exist."""
    pass


class ValidatorNotFoundError(ValidationError):
    """Validator id does not exist."""
    pass


# =============================================================================
# ECONOMIC SUFFICIENCY
# =============================================================================

class InsufficientError(QuantaPoolError):
    """Not enough of some resource to complete the operation."""
    resource = "funds"

    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient {self.resource}: {available} available, {required} required"
        )


class InsufficientSharesError(InsufficientError):
    resource = "shares"


class InsufficientAllowanceError(InsufficientError):
    resource = "allowance"


class InsufficientBufferError(InsufficientError):
    resource = "buffered funds"


class InsufficientReserveError(InsufficientError):
    resource = "withdrawal reserve"


class InsufficientFundsError(InsufficientError):
    resource = "native balance"


class ExceedsRecoverableError(InsufficientError):
    resource = "recoverable excess"


# =============================================================================
# TIMING
# =============================================================================

class TimingError(QuantaPoolError):
    """Operation attempted too early."""
    pass


class NotYetClaimableError(TimingError):
    """Withdrawal delay has not elapsed."""
    def __init__(self, request_block: int, claimable_block: int, current_block: int):
        self.request_block = request_block
        self.claimable_block = claimable_block
        self.current_block = current_block
        super().__init__(
            f"Withdrawal requested at block {request_block} is claimable at block "
            f"{claimable_block} (current: {current_block})"
        )


# =============================================================================
# INTERACTION / CONFIGURATION
# =============================================================================

class TransferFailedError(QuantaPoolError):
    """Recipient rejected a value transfer."""
    pass


class ConfigurationError(QuantaPoolError):
    """Configuration error."""
    pass
