from mintforge.models.cache import COLLECTION_ITEM_KEY, Cache, CacheItem, CacheProgram
from mintforge.models.failure import (
    AccountNotFoundError,
    CollectionExistsError,
    CollectionMismatchError,
    DeserializeError,
    FailureDetail,
    FailureKind,
    InvalidInputError,
    KnownError,
    PrecursorMissingError,
    RefusalError,
    RemoteQueryError,
    SubmissionError,
    SubmissionFailure,
)
from mintforge.models.token_metadata import (
    Collection,
    CollectionDetails,
    Creator,
    DataV2,
    MasterEdition,
    Metadata,
)

__all__ = [
    "AccountNotFoundError",
    "COLLECTION_ITEM_KEY",
    "Cache",
    "CacheItem",
    "CacheProgram",
    "Collection",
    "CollectionDetails",
    "CollectionExistsError",
    "CollectionMismatchError",
    "Creator",
    "DataV2",
    "DeserializeError",
    "FailureDetail",
    "FailureKind",
    "InvalidInputError",
    "KnownError",
    "MasterEdition",
    "Metadata",
    "PrecursorMissingError",
    "RefusalError",
    "RemoteQueryError",
    "SubmissionError",
    "SubmissionFailure",
]
