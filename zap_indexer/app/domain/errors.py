from __future__ import annotations


class ZapIndexerError(Exception):
    """Base class for all errors raised by the indexer."""


class ConfigurationError(ZapIndexerError):
    """Raised when distributor / contract configuration is invalid."""


# -----------------------------------------------------------------------------
# Event source
# -----------------------------------------------------------------------------
class SourceError(ZapIndexerError):
    """Base class for failures of the remote event source / chain RPC."""


class SourceUnavailable(SourceError):
    """Network, auth or upstream 5xx failure. Transient: retried with backoff."""


class SourceRateLimited(SourceError):
    """Upstream throttled the request. Transient: retried with backoff."""

    def __init__(self, message: str, *, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class SourceMalformed(SourceError):
    """Payload could not be parsed into the expected envelope."""


class SourceResultTooLarge(SourceError):
    """Upstream refused to serve the requested block window in one response."""


# -----------------------------------------------------------------------------
# Storage
# -----------------------------------------------------------------------------
class StorageUnavailable(ZapIndexerError):
    """The ledger database failed mid-operation. Transient: the cycle is retried next tick."""


# -----------------------------------------------------------------------------
# Normalization / ingestion
# -----------------------------------------------------------------------------
class NormalizationError(ZapIndexerError):
    """A raw event could not be mapped into a domain record."""


class GapDetected(ZapIndexerError):
    """
    The block sync checkpoint has a missing height.

    Indicates upstream data loss; the affected worker stops polling until an
    operator intervenes.
    """

    def __init__(self, *, contract_address: str, event_name: str, missing: int) -> None:
        super().__init__(
            f"{missing} block height(s) missing from block_syncs "
            f"for {contract_address}/{event_name}"
        )
        self.contract_address = contract_address
        self.event_name = event_name
        self.missing = missing


# -----------------------------------------------------------------------------
# Distribution
# -----------------------------------------------------------------------------
class EpochNotReady(ZapIndexerError):
    """Ledger data for the epoch window is not complete yet."""


class DistributionEnded(ZapIndexerError):
    """The requested epoch is past the configured number of epochs."""


class DistributionConflict(ZapIndexerError):
    """Stored leaves for an epoch differ from the ones just computed."""
