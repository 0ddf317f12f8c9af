from __future__ import annotations


class IndexerError(Exception):
    """Base class for indexer errors."""


class TransientChainError(IndexerError):
    """
    RPC failure that is expected to go away on its own
    (timeout, connection reset, provider error).

    The current tick is aborted and retried on the next schedule.
    """


class MalformedEventError(IndexerError):
    """A staged event cannot be interpreted (unknown type, bad payload)."""
