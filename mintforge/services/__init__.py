from mintforge.services.collection import (
    CollectionBatch,
    CollectionRecords,
    ConfigData,
    DeployArgs,
    build_collection_batch,
    create_collection,
    verify_collection,
)
from mintforge.services.pdas import (
    derive_associated_token_address,
    derive_candy_machine_creator_address,
    derive_collection_address,
    derive_master_edition_address,
    derive_metadata_address,
    fetch_master_edition,
    fetch_metadata,
)
from mintforge.services.rpc import Ledger, LedgerClient

__all__ = [
    "CollectionBatch",
    "CollectionRecords",
    "ConfigData",
    "DeployArgs",
    "Ledger",
    "LedgerClient",
    "build_collection_batch",
    "create_collection",
    "derive_associated_token_address",
    "derive_candy_machine_creator_address",
    "derive_collection_address",
    "derive_master_edition_address",
    "derive_metadata_address",
    "fetch_master_edition",
    "fetch_metadata",
    "verify_collection",
]
