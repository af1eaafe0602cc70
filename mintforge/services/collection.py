"""
Collection mint provisioning.

Creates the collection NFT in one atomic transaction:

    priority fee -> create mint account -> initialize mint
    -> create associated token account -> mint 1 -> create metadata
    -> create master edition

Each program checks that the accounts of the previous steps exist, so the
order is fixed. The batch is assembled through a chain of stages; every stage
only offers the next step, so an out-of-order batch cannot be built.

INVARIANTS:
- The precursor and cache file checks run before any network call
- The cache is mutated and synced only after the batch is confirmed
- Failures propagate unchanged; nothing is retried here
"""

import logging
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict
from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from mintforge.config import ProgramIds, get_program_ids
from mintforge.models.cache import COLLECTION_ITEM_KEY, Cache
from mintforge.models.failure import (
    CollectionExistsError,
    CollectionMismatchError,
    InvalidInputError,
    PrecursorMissingError,
)
from mintforge.models.token_metadata import (
    CollectionDetails,
    Creator,
    DataV2,
    MasterEdition,
    Metadata,
)
from mintforge.services.instructions import (
    MINT_LAYOUT,
    build_create_associated_token_account_ix,
    build_create_master_edition_v3_ix,
    build_create_metadata_account_v3_ix,
    build_create_mint_account_ix,
    build_initialize_mint_ix,
    build_mint_to_ix,
    build_priority_fee_ix,
)
from mintforge.services.pdas import (
    derive_associated_token_address,
    derive_master_edition_address,
    derive_metadata_address,
    fetch_master_edition,
    fetch_metadata,
)
from mintforge.services.rpc import Ledger

logger = logging.getLogger(__name__)


class ConfigData(BaseModel):
    """Project configuration consulted during deploy."""

    model_config = ConfigDict(extra="ignore")

    symbol: str = ""


@dataclass
class DeployArgs:
    """Per-invocation deploy options."""

    # Micro-lamports per compute unit
    priority_fee: int = 0


# =============================================================================
# BATCH STAGES
# =============================================================================


@dataclass(frozen=True)
class _Stage:
    payer: Pubkey
    mint: Pubkey
    programs: ProgramIds
    instructions: tuple[Instruction, ...]

    def _next(self, cls, ix: Instruction, **extra):
        return cls(
            payer=self.payer,
            mint=self.mint,
            programs=self.programs,
            instructions=(*self.instructions, ix),
            **extra,
        )


@dataclass(frozen=True)
class PriorityFeeStage(_Stage):
    """Batch holding only the priority fee."""

    def create_mint_account(self, lamports: int) -> "MintAccountStage":
        ix = build_create_mint_account_ix(self.payer, self.mint, lamports, self.programs)
        return self._next(MintAccountStage, ix)


@dataclass(frozen=True)
class MintAccountStage(_Stage):
    def initialize_mint(self) -> "InitializedMintStage":
        # Non-fungible: 0 decimals, payer holds both authorities
        ix = build_initialize_mint_ix(self.mint, self.payer, self.payer, 0, self.programs)
        return self._next(InitializedMintStage, ix)


@dataclass(frozen=True)
class InitializedMintStage(_Stage):
    def create_holding_account(self) -> "HoldingAccountStage":
        holding = derive_associated_token_address(self.payer, self.mint, self.programs)
        ix = build_create_associated_token_account_ix(
            self.payer, self.payer, self.mint, holding, self.programs
        )
        return self._next(HoldingAccountStage, ix, holding=holding)


@dataclass(frozen=True)
class HoldingAccountStage(_Stage):
    holding: Pubkey

    def mint_one(self) -> "MintedStage":
        ix = build_mint_to_ix(self.mint, self.holding, self.payer, 1, self.programs)
        return self._next(MintedStage, ix)


@dataclass(frozen=True)
class MintedStage(_Stage):
    def create_metadata(self, data: DataV2) -> "MetadataStage":
        metadata = derive_metadata_address(self.mint, self.programs)
        ix = build_create_metadata_account_v3_ix(
            metadata=metadata,
            mint=self.mint,
            mint_authority=self.payer,
            payer=self.payer,
            update_authority=self.payer,
            data=data,
            is_mutable=True,
            collection_details=CollectionDetails(size=0),
            programs=self.programs,
        )
        return self._next(MetadataStage, ix, metadata=metadata)


@dataclass(frozen=True)
class MetadataStage(_Stage):
    metadata: Pubkey

    def create_master_edition(self) -> "CollectionBatch":
        edition = derive_master_edition_address(self.mint, self.programs)
        ix = build_create_master_edition_v3_ix(
            edition=edition,
            mint=self.mint,
            update_authority=self.payer,
            mint_authority=self.payer,
            payer=self.payer,
            metadata=self.metadata,
            max_supply=0,
            programs=self.programs,
        )
        return self._next(CollectionBatch, ix, metadata=self.metadata, edition=edition)


@dataclass(frozen=True)
class CollectionBatch(_Stage):
    """The complete, ordered collection batch."""

    metadata: Pubkey
    edition: Pubkey

    def compile(self, signers: list[Keypair], blockhash: Hash) -> VersionedTransaction:
        message = MessageV0.try_compile(self.payer, list(self.instructions), [], blockhash)
        return VersionedTransaction(message, signers)


def begin_collection_batch(
    payer: Pubkey, mint: Pubkey, priority_fee: int, programs: ProgramIds
) -> PriorityFeeStage:
    """Start a collection batch with its priority fee instruction."""
    return PriorityFeeStage(
        payer=payer,
        mint=mint,
        programs=programs,
        instructions=(build_priority_fee_ix(priority_fee, programs),),
    )


def collection_data(name: str, symbol: str, uri: str, creator: Pubkey) -> DataV2:
    """
    Metadata for a top-level collection.

    The payer is the only creator, verified, with the full share. No royalties
    and no parent collection.
    """
    return DataV2(
        name=name,
        symbol=symbol,
        uri=uri,
        seller_fee_basis_points=0,
        creators=[Creator(address=creator, verified=True, share=100)],
        collection=None,
        uses=None,
    )


def build_collection_batch(
    payer: Pubkey,
    mint: Pubkey,
    rent_lamports: int,
    data: DataV2,
    priority_fee: int,
    programs: ProgramIds,
) -> CollectionBatch:
    return (
        begin_collection_batch(payer, mint, priority_fee, programs)
        .create_mint_account(rent_lamports)
        .initialize_mint()
        .create_holding_account()
        .mint_one()
        .create_metadata(data)
        .create_master_edition()
    )


# =============================================================================
# PROVISIONING
# =============================================================================


def create_collection(
    ledger: Ledger,
    payer: Keypair,
    cache: Cache,
    config_data: ConfigData,
    args: DeployArgs,
    programs: ProgramIds | None = None,
) -> tuple[Signature, Pubkey]:
    """
    Create the collection NFT described by the cache's collection item.

    Args:
        ledger: Ledger to query and submit through
        payer: Fee payer, mint authority and update authority
        cache: Deploy cache holding item "-1"
        config_data: Project config (symbol)
        args: Deploy args (priority fee)
        programs: Program ids. Defaults to the configured ids.

    Returns:
        (transaction signature, collection mint address)

    Raises:
        PrecursorMissingError: If the cache has no collection item
        CollectionExistsError: If the cache already records the collection on chain
        InvalidInputError: If the cache is not bound to a file, or the name,
            symbol or uri exceed the metadata limits
        RemoteQueryError: If the rent or blockhash query fails
        SubmissionError: If the batch fails to land
    """
    programs = programs or get_program_ids()

    collection_item = cache.items.get(COLLECTION_ITEM_KEY)
    if collection_item is None:
        raise PrecursorMissingError(COLLECTION_ITEM_KEY)
    if collection_item.on_chain and cache.program.collection_mint:
        raise CollectionExistsError(COLLECTION_ITEM_KEY, cache.program.collection_mint)
    if cache.file_path is None:
        raise InvalidInputError(
            "Cache has no file to sync to",
            suggestion="Load the cache with Cache.load or bind it to a path before deploying.",
        )

    payer_pubkey = payer.pubkey()
    try:
        data = collection_data(
            name=collection_item.name,
            symbol=config_data.symbol,
            uri=collection_item.metadata_link,
            creator=payer_pubkey,
        )
    except ValueError as e:
        raise InvalidInputError(
            f"Invalid collection metadata for item '{COLLECTION_ITEM_KEY}'", detail=str(e)
        ) from e

    collection_mint = Keypair()
    mint_pubkey = collection_mint.pubkey()

    min_rent = ledger.get_minimum_balance_for_rent_exemption(MINT_LAYOUT)
    logger.info("Rent exemption for mint account: %d lamports", min_rent)

    batch = build_collection_batch(
        payer=payer_pubkey,
        mint=mint_pubkey,
        rent_lamports=min_rent,
        data=data,
        priority_fee=args.priority_fee,
        programs=programs,
    )
    logger.debug(
        "Collection mint %s, metadata %s, edition %s", mint_pubkey, batch.metadata, batch.edition
    )

    blockhash = ledger.get_latest_blockhash()
    transaction = batch.compile([payer, collection_mint], blockhash)
    signature = ledger.send_and_confirm_transaction(transaction)

    collection_item.on_chain = True
    cache.program.collection_mint = str(mint_pubkey)
    cache.sync_file()
    logger.info("Collection mint %s created (%s)", mint_pubkey, signature)

    return signature, mint_pubkey


@dataclass(frozen=True)
class CollectionRecords:
    """On-chain records of a provisioned collection."""

    metadata_address: Pubkey
    metadata: Metadata
    edition_address: Pubkey
    edition: MasterEdition


def verify_collection(
    ledger: Ledger,
    mint: Pubkey,
    payer: Pubkey,
    programs: ProgramIds | None = None,
) -> CollectionRecords:
    """
    Read back a collection's metadata and master edition and check them.

    Raises:
        AccountNotFoundError: If either account is missing
        DeserializeError: If either account is malformed
        CollectionMismatchError: If the records do not describe a collection
            owned by `payer`
    """
    metadata_address, metadata = fetch_metadata(ledger, mint, programs)
    edition_address, edition = fetch_master_edition(ledger, mint, programs)

    problems: list[str] = []
    if metadata.mint != mint:
        problems.append(f"metadata mint is {metadata.mint}")
    if metadata.update_authority != payer:
        problems.append(f"update authority is {metadata.update_authority}")
    if metadata.collection_details is None:
        problems.append("metadata has no collection details")
    if edition.max_supply != 0:
        problems.append(f"master edition max supply is {edition.max_supply}")

    if problems:
        raise CollectionMismatchError(str(mint), "; ".join(problems))

    return CollectionRecords(
        metadata_address=metadata_address,
        metadata=metadata,
        edition_address=edition_address,
        edition=edition,
    )
