"""
Exception definitions for the LP position manager
"""

from enum import Enum
from typing import Optional


class ErrorCode(Enum):
    """
    Unified error codes for position management

    1xxx - RPC errors
    2xxx - Transaction errors
    3xxx - Slippage/Liquidity errors
    4xxx - Pool errors
    5xxx - Position errors
    6xxx - Signer errors
    7xxx - Operation errors
    8xxx - Authorization errors
    9xxx - Configuration errors
    """
    # RPC errors (recoverable)
    RPC_CONNECTION_FAILED = "1001"
    RPC_TIMEOUT = "1002"
    RPC_RATE_LIMITED = "1003"
    RPC_INVALID_RESPONSE = "1004"

    # Transaction errors
    TX_SIMULATION_FAILED = "2001"
    TX_SEND_FAILED = "2002"
    TX_CONFIRMATION_FAILED = "2003"
    TX_INSUFFICIENT_FUNDS = "2004"
    TX_REVERTED = "2005"
    TX_DEADLINE_EXPIRED = "2006"

    # Slippage/Liquidity errors
    SLIPPAGE_EXCEEDED = "3001"
    LIQUIDITY_INSUFFICIENT = "3003"

    # Pool errors
    POOL_NOT_FOUND = "4001"
    POOL_UNAVAILABLE = "4002"
    POOL_INVALID_STATE = "4003"
    METADATA_UNAVAILABLE = "4004"

    # Position errors
    POSITION_NOT_FOUND = "5001"
    POSITION_EMPTY = "5004"

    # Signer errors
    SIGNER_NOT_CONFIGURED = "6001"
    SIGNER_FAILED = "6002"

    # Operation errors
    INVALID_PARAMETER = "7003"
    OPERATION_IN_PROGRESS = "7004"
    CUSTODY_IMBALANCE = "7005"

    # Authorization errors
    UNAUTHORIZED = "8001"

    # Configuration errors
    CONFIG_INVALID = "9001"
    CONFIG_MISSING = "9002"
    ROUTER_UNAVAILABLE = "9003"


class LpManagerError(Exception):
    """
    Base exception for all position manager errors

    Attributes:
        message: Human-readable error message
        code: Error code for programmatic handling
        recoverable: Whether the caller might succeed by resubmitting
        original_error: The underlying exception if any
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        recoverable: bool = False,
        original_error: Optional[Exception] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.recoverable = recoverable
        self.original_error = original_error
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code.value}, message={self.message!r})"

    @property
    def should_retry(self) -> bool:
        """Indicate if the caller may resubmit the operation"""
        return self.recoverable


class RpcError(LpManagerError):
    """
    RPC-related errors - typically recoverable

    Raised when:
    - Connection to an RPC or HTTP endpoint fails
    - Request times out
    - Rate limit is hit
    - Invalid response received
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.RPC_CONNECTION_FAILED,
        original_error: Optional[Exception] = None,
        endpoint: Optional[str] = None,
    ):
        super().__init__(
            message,
            code,
            recoverable=True,
            original_error=original_error,
            details={"endpoint": endpoint} if endpoint else None,
        )
        self.endpoint = endpoint

    @classmethod
    def connection_failed(cls, endpoint: str, error: Exception = None) -> "RpcError":
        return cls(
            f"Failed to connect to RPC endpoint: {endpoint}",
            ErrorCode.RPC_CONNECTION_FAILED,
            original_error=error,
            endpoint=endpoint,
        )

    @classmethod
    def timeout(cls, endpoint: str, timeout_seconds: float) -> "RpcError":
        return cls(
            f"Request timed out after {timeout_seconds}s",
            ErrorCode.RPC_TIMEOUT,
            endpoint=endpoint,
        )

    @classmethod
    def rate_limited(cls, endpoint: str) -> "RpcError":
        return cls(
            "Rate limit exceeded",
            ErrorCode.RPC_RATE_LIMITED,
            endpoint=endpoint,
        )

    @classmethod
    def invalid_response(cls, endpoint: str, reason: str) -> "RpcError":
        return cls(
            f"Invalid response from {endpoint}: {reason}",
            ErrorCode.RPC_INVALID_RESPONSE,
            endpoint=endpoint,
        )


class SlippageExceeded(LpManagerError):
    """
    Venue minimum check failed - recoverable with adjusted minimums

    Raised when:
    - Amounts consumed by a mint fall below amount0Min/amount1Min
    - Amounts released by a decrease fall below the requested minimums
    - Exchange output falls below the minimum output
    """

    def __init__(
        self,
        message: str,
        expected: Optional[int] = None,
        actual: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message,
            ErrorCode.SLIPPAGE_EXCEEDED,
            recoverable=True,
            original_error=original_error,
            details={"expected": expected, "actual": actual},
        )
        self.expected = expected
        self.actual = actual

    @classmethod
    def below_minimum(cls, what: str, minimum: int, actual: int) -> "SlippageExceeded":
        return cls(
            f"Price slippage check failed for {what}: minimum {minimum}, got {actual}",
            expected=minimum,
            actual=actual,
        )


class DeadlineExpired(LpManagerError):
    """
    Deadline elapsed before the venue processed the call

    The caller must resubmit with a fresh deadline.
    """

    def __init__(
        self,
        message: str,
        deadline: Optional[int] = None,
        now: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message,
            ErrorCode.TX_DEADLINE_EXPIRED,
            recoverable=False,
            original_error=original_error,
            details={"deadline": deadline, "now": now},
        )
        self.deadline = deadline
        self.now = now

    @classmethod
    def elapsed(cls, deadline: int, now: int) -> "DeadlineExpired":
        return cls(
            f"Transaction too old: deadline {deadline} < block time {now}",
            deadline=deadline,
            now=now,
        )


class InsufficientLiquidity(LpManagerError):
    """
    Requested liquidity is zero or exceeds what the position holds
    """

    def __init__(
        self,
        message: str,
        requested: Optional[int] = None,
        available: Optional[int] = None,
    ):
        super().__init__(
            message,
            ErrorCode.LIQUIDITY_INSUFFICIENT,
            recoverable=False,
            details={"requested": requested, "available": available},
        )
        self.requested = requested
        self.available = available

    @classmethod
    def exceeds_position(cls, token_id: int, requested: int, available: int) -> "InsufficientLiquidity":
        return cls(
            f"Cannot remove {requested} liquidity from position {token_id} holding {available}",
            requested=requested,
            available=available,
        )


class PoolUnavailable(LpManagerError):
    """
    Pool not available - not recoverable

    Raised when:
    - Pool address not found on chain
    - Pool has no deployed state for the requested token pair and fee
    """

    def __init__(
        self,
        message: str,
        pool_address: Optional[str] = None,
        code: ErrorCode = ErrorCode.POOL_UNAVAILABLE,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message,
            code,
            recoverable=False,
            original_error=original_error,
            details={"pool_address": pool_address},
        )
        self.pool_address = pool_address

    @classmethod
    def not_found(cls, pool_address: str, error: Exception = None) -> "PoolUnavailable":
        return cls(
            f"Pool not found: {pool_address}",
            pool_address=pool_address,
            code=ErrorCode.POOL_NOT_FOUND,
            original_error=error,
        )

    @classmethod
    def invalid_state(cls, pool_address: str, reason: str) -> "PoolUnavailable":
        return cls(
            f"Pool has invalid state: {reason}",
            pool_address=pool_address,
            code=ErrorCode.POOL_INVALID_STATE,
        )


class MetadataUnavailable(LpManagerError):
    """
    Token metadata (name/symbol/decimals) could not be read
    """

    def __init__(
        self,
        message: str,
        token: Optional[str] = None,
        field_name: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message,
            ErrorCode.METADATA_UNAVAILABLE,
            recoverable=False,
            original_error=original_error,
            details={"token": token, "field": field_name},
        )
        self.token = token
        self.field_name = field_name

    @classmethod
    def unreadable(cls, token: str, field_name: str, error: Exception = None) -> "MetadataUnavailable":
        return cls(
            f"Token {token} metadata '{field_name}' unavailable",
            token=token,
            field_name=field_name,
            original_error=error,
        )


class InsufficientFunds(LpManagerError):
    """
    Balance or allowance too small for a token transfer
    """

    def __init__(
        self,
        message: str,
        token: Optional[str] = None,
        required: Optional[int] = None,
        available: Optional[int] = None,
    ):
        super().__init__(
            message,
            ErrorCode.TX_INSUFFICIENT_FUNDS,
            recoverable=False,
            details={"token": token, "required": required, "available": available},
        )
        self.token = token
        self.required = required
        self.available = available

    @classmethod
    def token_balance(cls, token: str, required: int, available: int) -> "InsufficientFunds":
        return cls(
            f"Insufficient {token} balance: need {required}, have {available}",
            token=token,
            required=required,
            available=available,
        )

    @classmethod
    def allowance(cls, token: str, required: int, available: int) -> "InsufficientFunds":
        return cls(
            f"Insufficient {token} allowance: need {required}, have {available}",
            token=token,
            required=required,
            available=available,
        )


class PositionNotFound(LpManagerError):
    """
    Position not found - not recoverable

    Raised when:
    - Certificate id doesn't exist
    - Certificate was already burned
    """

    def __init__(
        self,
        message: str,
        position_id: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message,
            ErrorCode.POSITION_NOT_FOUND,
            recoverable=False,
            original_error=original_error,
            details={"position_id": position_id},
        )
        self.position_id = position_id


class EmptyPosition(LpManagerError):
    """
    Position holds no liquidity and cannot be rebalanced
    """

    def __init__(self, message: str, position_id: Optional[str] = None):
        super().__init__(
            message,
            ErrorCode.POSITION_EMPTY,
            recoverable=False,
            details={"position_id": position_id},
        )
        self.position_id = position_id

    @classmethod
    def no_liquidity(cls, position_id: str) -> "EmptyPosition":
        return cls(f"Position {position_id} has zero liquidity", position_id=position_id)


class TransactionError(LpManagerError):
    """
    Transaction execution errors

    Raised when:
    - Transaction preview (eth_call) fails
    - Transaction send fails
    - Transaction reverts on chain
    - Custody balances do not return to their baseline
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.TX_SEND_FAILED,
        tx_hash: Optional[str] = None,
        recoverable: bool = False,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message,
            code,
            recoverable=recoverable,
            original_error=original_error,
            details={"tx_hash": tx_hash},
        )
        self.tx_hash = tx_hash

    @classmethod
    def simulation_failed(cls, error: str, original_error: Exception = None) -> "TransactionError":
        return cls(
            f"Transaction simulation failed: {error}",
            ErrorCode.TX_SIMULATION_FAILED,
            recoverable=False,
            original_error=original_error,
        )

    @classmethod
    def send_failed(cls, error: str) -> "TransactionError":
        # Network hiccups are worth a resubmit by the caller
        recoverable = "timeout" in error.lower() or "connection" in error.lower()
        return cls(
            f"Failed to send transaction: {error}",
            ErrorCode.TX_SEND_FAILED,
            recoverable=recoverable,
        )

    @classmethod
    def reverted(cls, tx_hash: str, description: str) -> "TransactionError":
        return cls(
            f"Transaction reverted: {description}",
            ErrorCode.TX_REVERTED,
            tx_hash=tx_hash,
        )

    @classmethod
    def confirmation_failed(cls, tx_hash: str, error: str) -> "TransactionError":
        return cls(
            f"Transaction confirmation failed: {error}",
            ErrorCode.TX_CONFIRMATION_FAILED,
            tx_hash=tx_hash,
            recoverable=True,
        )

    @classmethod
    def custody_imbalance(cls, token: str, baseline: int, actual: int) -> "TransactionError":
        return cls(
            f"Custody balance of {token} is {actual}, expected {baseline}",
            ErrorCode.CUSTODY_IMBALANCE,
        )


class SignerError(LpManagerError):
    """
    Signing-related errors
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.SIGNER_FAILED,
        recoverable: bool = False,
    ):
        super().__init__(message, code, recoverable=recoverable)

    @classmethod
    def not_configured(cls) -> "SignerError":
        return cls(
            "No signer configured. Provide a private key for the custody account.",
            ErrorCode.SIGNER_NOT_CONFIGURED,
        )

    @classmethod
    def failed(cls, reason: str) -> "SignerError":
        return cls(f"Signing failed: {reason}", ErrorCode.SIGNER_FAILED)


class OperationInProgress(LpManagerError):
    """
    Another mutating operation holds the manager guard
    """

    def __init__(self, message: str, operation: Optional[str] = None, active: Optional[str] = None):
        super().__init__(
            message,
            ErrorCode.OPERATION_IN_PROGRESS,
            recoverable=True,
            details={"operation": operation, "active": active},
        )
        self.operation = operation
        self.active = active

    @classmethod
    def rejected(cls, operation: str, active: Optional[str]) -> "OperationInProgress":
        return cls(
            f"Cannot start '{operation}' while '{active}' is in flight",
            operation=operation,
            active=active,
        )


class InvalidParameter(LpManagerError):
    """
    Caller supplied a malformed argument
    """

    def __init__(self, message: str, param: Optional[str] = None):
        super().__init__(
            message,
            ErrorCode.INVALID_PARAMETER,
            recoverable=False,
            details={"param": param},
        )
        self.param = param

    @classmethod
    def invalid(cls, param: str, reason: str) -> "InvalidParameter":
        return cls(f"Invalid parameter '{param}': {reason}", param=param)


class Unauthorized(LpManagerError):
    """
    Actor lacks the capability required for an operation

    Raised when:
    - A non-privileged actor calls an administrative operation
    - The caller is neither owner nor approved for a certificate
    """

    def __init__(self, message: str, actor: Optional[str] = None, original_error: Optional[Exception] = None):
        super().__init__(
            message,
            ErrorCode.UNAUTHORIZED,
            recoverable=False,
            original_error=original_error,
            details={"actor": actor},
        )
        self.actor = actor

    @classmethod
    def not_admin(cls, actor: str, operation: str) -> "Unauthorized":
        return cls(f"{actor} is not allowed to {operation}", actor=actor)

    @classmethod
    def not_approved(cls, actor: str, token_id: int) -> "Unauthorized":
        return cls(f"{actor} is not owner or approved for certificate {token_id}", actor=actor)


class ConfigurationError(LpManagerError):
    """
    Configuration-related errors

    Raised when:
    - A venue registry entry is unset
    - A configured address is zero or malformed
    - An unknown venue tag is requested
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.CONFIG_INVALID,
    ):
        super().__init__(message, code, recoverable=False)

    @classmethod
    def missing(cls, param: str) -> "ConfigurationError":
        return cls(f"Missing required configuration: {param}", ErrorCode.CONFIG_MISSING)

    @classmethod
    def invalid(cls, param: str, reason: str) -> "ConfigurationError":
        return cls(f"Invalid configuration '{param}': {reason}", ErrorCode.CONFIG_INVALID)


class RouterUnavailable(ConfigurationError):
    """
    No exchange router is configured for the venue handling a swap leg
    """

    def __init__(self, message: str, venue: Optional[str] = None):
        super().__init__(message, ErrorCode.ROUTER_UNAVAILABLE)
        self.venue = venue
        self.details = {"venue": venue}

    @classmethod
    def unset(cls, venue: str) -> "RouterUnavailable":
        return cls(f"No exchange router configured for venue '{venue}'", venue=venue)
