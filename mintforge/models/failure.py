"""
Failure classification for collection provisioning.

Every failure the engine raises is a KnownError (or a RefusalError) carrying a
FailureKind, a message naming the offending address or cache key, and a
retryable flag so callers can tell transient network trouble from caller bugs.

INVARIANT: Errors are propagated, never logged-and-swallowed inside the library.

Failure kinds:
- Caller sequencing bugs: PRECURSOR_MISSING, ALREADY_EXISTS, INVALID_INPUT
- Remote state: ACCOUNT_NOT_FOUND, DESERIALIZE_FAILED, COLLECTION_MISMATCH
- Transport: REMOTE_QUERY_FAILED, SUBMISSION_FAILED
"""

from enum import Enum

from pydantic import BaseModel, Field


class FailureKind(str, Enum):
    """Classification of failure types."""

    # Caller / input failures
    PRECURSOR_MISSING = "precursor_missing"
    ALREADY_EXISTS = "already_exists"
    INVALID_INPUT = "invalid_input"

    # Remote state failures
    ACCOUNT_NOT_FOUND = "account_not_found"
    DESERIALIZE_FAILED = "deserialize_failed"
    COLLECTION_MISMATCH = "collection_mismatch"

    # Transport failures
    REMOTE_QUERY_FAILED = "remote_query_failed"
    SUBMISSION_FAILED = "submission_failed"


class SubmissionFailure(str, Enum):
    """Why a transaction submission failed."""

    # The RPC node could not be reached or answered garbage
    NETWORK = "network"
    # Preflight or on-chain execution rejected the batch
    REJECTED = "rejected"
    # Accepted by the node but never observed as confirmed
    UNCONFIRMED = "unconfirmed"


class FailureDetail(BaseModel):
    """Detailed information about a failure."""

    kind: FailureKind = Field(
        ...,
        description="Classification of the failure",
    )
    message: str = Field(
        ...,
        description="What went wrong, including the offending address or key",
    )
    detail: str | None = Field(
        default=None,
        description="Additional technical detail (optional)",
    )
    suggestion: str | None = Field(
        default=None,
        description="Suggested action for the operator",
    )
    retryable: bool = Field(
        default=False,
        description="Whether re-running the whole operation may succeed",
    )


class KnownError(Exception):
    """
    Base class for exceptions that represent known, explainable failures.

    Subclass this for errors where the system knows exactly what went wrong.
    """

    retryable: bool = False

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
    ):
        self.kind = kind
        self.message = message
        self.detail = detail
        self.suggestion = suggestion
        super().__init__(message)

    def to_detail(self) -> FailureDetail:
        """Convert to a FailureDetail."""
        return FailureDetail(
            kind=self.kind,
            message=self.message,
            detail=self.detail,
            suggestion=self.suggestion,
            retryable=self.retryable,
        )


class RefusalError(KnownError):
    """
    Exception for constraint-based refusals.

    Use when the system refuses to proceed because doing so would orphan or
    overwrite existing state.
    """


class InvalidInputError(KnownError):
    """Raised when a keypair, config or cache file cannot be read."""

    def __init__(
        self,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
    ):
        super().__init__(
            kind=FailureKind.INVALID_INPUT,
            message=message,
            detail=detail,
            suggestion=suggestion,
        )


class PrecursorMissingError(KnownError):
    """
    Raised when a cache item that must already exist is absent.

    This is a caller sequencing bug, not a transient condition. It is raised
    before any network call is made.
    """

    def __init__(self, key: str):
        self.key = key
        super().__init__(
            kind=FailureKind.PRECURSOR_MISSING,
            message=(
                f"Trying to create and set collection when collection item info "
                f"isn't in cache (missing item '{key}')"
            ),
            suggestion="Upload the collection assets before deploying.",
        )


class CollectionExistsError(RefusalError):
    """Raised when the cache already records an on-chain collection mint."""

    def __init__(self, key: str, collection_mint: str):
        self.key = key
        self.collection_mint = collection_mint
        super().__init__(
            kind=FailureKind.ALREADY_EXISTS,
            message=f"Collection item '{key}' is already on chain as {collection_mint}",
            suggestion="Clear the collection mint from the cache to create a new collection.",
        )


class RemoteQueryError(KnownError):
    """
    Raised when a read-only RPC query fails.

    Nothing has been persisted at this point, so the whole operation may be
    retried.
    """

    retryable = True

    def __init__(self, method: str, target: str | None = None, detail: str | None = None):
        self.method = method
        self.target = target
        message = f"RPC query {method} failed"
        if target:
            message = f"{message} for {target}"
        super().__init__(
            kind=FailureKind.REMOTE_QUERY_FAILED,
            message=message,
            detail=detail,
            suggestion="Check the RPC endpoint and retry.",
        )


class AccountNotFoundError(KnownError):
    """Raised when a derived address has no account on chain."""

    def __init__(self, account_type: str, address: str):
        self.account_type = account_type
        self.address = address
        super().__init__(
            kind=FailureKind.ACCOUNT_NOT_FOUND,
            message=f"Couldn't find {account_type} account: {address}",
        )


class DeserializeError(KnownError):
    """Raised when a derived address holds data that does not decode."""

    def __init__(self, account_type: str, address: str, detail: str | None = None):
        self.account_type = account_type
        self.address = address
        super().__init__(
            kind=FailureKind.DESERIALIZE_FAILED,
            message=f"Failed to deserialize {account_type} account: {address}",
            detail=detail,
        )


class CollectionMismatchError(KnownError):
    """Raised when on-chain collection records disagree with what was built."""

    def __init__(self, mint: str, detail: str):
        self.mint = mint
        super().__init__(
            kind=FailureKind.COLLECTION_MISMATCH,
            message=f"Collection records for mint {mint} are inconsistent",
            detail=detail,
        )


class SubmissionError(KnownError):
    """
    Raised when a transaction batch fails to land.

    The batch is atomic: it either applied completely or not at all. The
    reason distinguishes network trouble from a program-level rejection, whose
    RPC message and program logs are kept verbatim.
    """

    def __init__(
        self,
        reason: SubmissionFailure,
        message: str,
        signature: str | None = None,
        logs: list[str] | None = None,
    ):
        self.reason = reason
        self.signature = signature
        self.logs = logs or []
        detail = "\n".join(self.logs) if self.logs else None
        super().__init__(
            kind=FailureKind.SUBMISSION_FAILED,
            message=message,
            detail=detail,
            suggestion=_SUBMISSION_SUGGESTIONS[reason],
        )

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return self.reason != SubmissionFailure.REJECTED


_SUBMISSION_SUGGESTIONS: dict[SubmissionFailure, str] = {
    SubmissionFailure.NETWORK: "Check the RPC endpoint and retry.",
    SubmissionFailure.REJECTED: "Inspect the program logs; retrying will fail the same way.",
    SubmissionFailure.UNCONFIRMED: (
        "Check the signature on an explorer before retrying; the batch may still land."
    ),
}
