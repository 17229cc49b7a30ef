"""
Error types raised by the vote ingestion pipeline and the chain store.

Every error derives from VoteChainError and carries an optional context dict
that is rendered into str() for logs and HTTP diagnostics.
"""

from typing import Any, Dict, Optional


class VoteChainError(Exception):
    """Base class for all VoteChain errors"""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)

    def __str__(self):
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message


class ValidationError(VoteChainError):
    """Malformed vote, rejected before anything is persisted"""


class StoreError(VoteChainError):
    """The document store was unreachable or rejected an operation"""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, context)
        self.original_error = original_error


class BlockConflictError(StoreError):
    """Another writer already stored a block at the index we tried to claim"""


class ChainIntegrityError(VoteChainError):
    """Stored blocks do not form a valid hash chain"""


class PartialIngestion(VoteChainError):
    """
    The vote was persisted but its block was not.

    The vote is not rolled back. It stays in the votes collection as an
    orphan until an operator reconciles it (see GET /chain/orphans).
    """

    def __init__(self, message: str, vote: Dict[str, Any], cause: Exception):
        super().__init__(message, {"voter_id": vote.get("voter_id"), "cause": type(cause).__name__})
        self.vote = vote
        self.cause = cause
