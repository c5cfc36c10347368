"""
Exception hierarchy for the Tokamak L2 toolkit.

Exception Categories:
- RetryableException: Transient failures that may succeed on retry (RPC, network)
- NonRetryableException: Permanent failures that won't benefit from retry (bad data)
- ConfigurationException: Startup/config errors that prevent operation

Domain exceptions are categorized:
- CryptoException -> NonRetryableException (arity, signature, point encoding)
- StateMachineException -> NonRetryableException (misuse of an object's lifecycle)
- StateIntegrityException -> NonRetryableException (inconsistent keys, roots, snapshots)
- UpstreamSourceException -> RetryableException (RPC failures while fetching state)
"""


class RetryableException(Exception):
    """
    Base class for exceptions that may succeed on retry.

    Use for transient failures like:
    - RPC timeouts
    - Rate limiting
    - Temporary network issues
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NonRetryableException(Exception):
    """
    Base class for exceptions that won't benefit from retry.

    Use for permanent failures like:
    - Invalid input data
    - Missing required data
    - Protocol invariant violations
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationException(NonRetryableException):
    """
    Exception for configuration/startup errors.

    Use when:
    - Required environment variables are missing
    - Invalid configuration values
    - Missing required resources
    """

    pass


class MissingCryptoBackend(ConfigurationException):
    """Raised when a transaction, block or state manager is built without a crypto backend."""

    pass


class UpstreamSourceException(RetryableException):
    """
    Exception for upstream (L1 RPC) read failures.

    Inherits from RetryableException because RPC failures are often
    transient; only the RPC source itself retries them.
    """

    pass


# =============================================================================
# CRYPTO
# =============================================================================


class CryptoException(NonRetryableException):
    """Base class for hash, curve and signature failures."""

    pass


class ArityError(CryptoException):
    """Wrong number of inputs given to a fixed-arity primitive."""

    pass


class InvalidPointEncoding(CryptoException):
    """Bytes that do not decode to a JubJub point."""

    pass


class SignatureInvalid(CryptoException):
    """Private key out of the scalar field, or a signature that fails verification."""

    pass


class PublicKeyMismatch(CryptoException):
    """The signing key does not derive the sender public key stored on the transaction."""

    pass


class RecoveredKeyMismatch(CryptoException):
    """The recovered public key differs from the one stored on the transaction."""

    pass


class InvalidTransaction(NonRetryableException):
    """Malformed transaction fields or wire encoding."""

    pass


# =============================================================================
# STATE MACHINE (programmer errors)
# =============================================================================


class StateMachineException(NonRetryableException):
    """Base class for calls made in the wrong lifecycle state."""

    pass


class NotSigned(StateMachineException):
    pass


class AlreadyInitialized(StateMachineException):
    pass


class NotInitialized(StateMachineException):
    pass


# =============================================================================
# DATA INTEGRITY
# =============================================================================


class StateIntegrityException(NonRetryableException):
    """
    Base class for inconsistent state data.

    Initialization and snapshot capture abort on these; partial state
    is never kept.
    """

    pass


class DuplicateKey(StateIntegrityException):
    pass


class RootMismatch(StateIntegrityException):
    pass


class SnapshotShapeMismatch(StateIntegrityException):
    pass


class ContractAddressMismatch(StateIntegrityException):
    pass


class UnregisteredAddress(StateIntegrityException):
    pass


class CapacityExceeded(StateIntegrityException):
    """More registered keys than a Merkle tree has leaves."""

    pass


class IndexOutOfRange(NonRetryableException):
    """Caller-supplied leaf or tree index outside the valid range."""

    pass
