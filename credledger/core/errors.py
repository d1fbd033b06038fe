# credledger/core/errors.py


class LedgerError(Exception):
    """Base class for every error raised by credledger."""


class HashDecodeError(LedgerError, ValueError):
    """Hex text does not decode to a value of the expected size."""


class BlockFinalizedError(LedgerError, RuntimeError):
    """A finalized block was mutated, re-finalized or appended twice."""


class KeyMismatchError(LedgerError, ValueError):
    """A signing key does not belong to the issuer it is used for."""


class NoOpenBlockError(LedgerError, RuntimeError):
    """An operation needs an open block but none exists."""


class StorageError(LedgerError, RuntimeError):
    """Persisted ledger state is missing or cannot be parsed."""


class ChainIntegrityError(StorageError):
    """Stored blocks do not link to their predecessors."""
