"""
Program-derived address derivation.

Addresses here are never stored, only recomputed. Each derivation kind has
its own seed type so the prefixes are written exactly once; the on-chain
program recomputes the same seeds and rejects any account that differs.

Derivation is pure and local. Only the fetch_* helpers touch the network,
and only to read accounts that should already exist.
"""

import logging
from dataclasses import dataclass
from typing import ClassVar

from solders.pubkey import Pubkey

from mintforge.config import ProgramIds, get_program_ids
from mintforge.models.failure import AccountNotFoundError, DeserializeError
from mintforge.models.token_metadata import (
    MasterEdition,
    Metadata,
    decode_master_edition,
    decode_metadata,
)
from mintforge.services.rpc import Ledger

logger = logging.getLogger(__name__)

METADATA_PREFIX = b"metadata"
EDITION_SUFFIX = b"edition"
CANDY_MACHINE_PREFIX = b"candy_machine"
COLLECTION_PREFIX = b"collection"


@dataclass(frozen=True)
class MetadataSeeds:
    """Seeds of the metadata account for a mint."""

    mint: Pubkey

    def program_id(self, programs: ProgramIds) -> Pubkey:
        return programs.token_metadata

    def as_seeds(self, programs: ProgramIds) -> list[bytes]:
        return [METADATA_PREFIX, bytes(programs.token_metadata), bytes(self.mint)]


@dataclass(frozen=True)
class MasterEditionSeeds:
    """Seeds of the master edition account for a mint."""

    mint: Pubkey

    def program_id(self, programs: ProgramIds) -> Pubkey:
        return programs.token_metadata

    def as_seeds(self, programs: ProgramIds) -> list[bytes]:
        return [METADATA_PREFIX, bytes(programs.token_metadata), bytes(self.mint), EDITION_SUFFIX]


@dataclass(frozen=True)
class _CandyMachineSeeds:
    candy_machine: Pubkey

    prefix: ClassVar[bytes]

    def program_id(self, programs: ProgramIds) -> Pubkey:
        return programs.candy_machine

    def as_seeds(self, programs: ProgramIds) -> list[bytes]:
        return [self.prefix, bytes(self.candy_machine)]


@dataclass(frozen=True)
class CandyMachineCreatorSeeds(_CandyMachineSeeds):
    """Seeds of the candy machine's creator authority."""

    prefix: ClassVar[bytes] = CANDY_MACHINE_PREFIX


@dataclass(frozen=True)
class CollectionSeeds(_CandyMachineSeeds):
    """Seeds of the candy machine's collection authority."""

    prefix: ClassVar[bytes] = COLLECTION_PREFIX


@dataclass(frozen=True)
class AssociatedTokenSeeds:
    """Seeds of the associated token account for (owner, mint)."""

    owner: Pubkey
    mint: Pubkey

    def program_id(self, programs: ProgramIds) -> Pubkey:
        return programs.associated_token

    def as_seeds(self, programs: ProgramIds) -> list[bytes]:
        return [bytes(self.owner), bytes(programs.token), bytes(self.mint)]


Seeds = (
    MetadataSeeds
    | MasterEditionSeeds
    | CandyMachineCreatorSeeds
    | CollectionSeeds
    | AssociatedTokenSeeds
)


def find_program_address(seeds: Seeds, programs: ProgramIds | None = None) -> tuple[Pubkey, int]:
    """
    Derive the address and bump for a seed set.

    Args:
        seeds: Typed seeds for one derivation kind
        programs: Program ids to derive against. Defaults to the configured ids.

    Returns:
        (address, bump) where bump is the nonce that pushed the address off-curve
    """
    programs = programs or get_program_ids()
    return Pubkey.find_program_address(seeds.as_seeds(programs), seeds.program_id(programs))


def derive_metadata_address(mint: Pubkey, programs: ProgramIds | None = None) -> Pubkey:
    pda, _bump = find_program_address(MetadataSeeds(mint), programs)
    return pda


def derive_master_edition_address(mint: Pubkey, programs: ProgramIds | None = None) -> Pubkey:
    pda, _bump = find_program_address(MasterEditionSeeds(mint), programs)
    return pda


def derive_candy_machine_creator_address(
    candy_machine_id: Pubkey, programs: ProgramIds | None = None
) -> tuple[Pubkey, int]:
    return find_program_address(CandyMachineCreatorSeeds(candy_machine_id), programs)


def derive_collection_address(
    candy_machine_id: Pubkey, programs: ProgramIds | None = None
) -> tuple[Pubkey, int]:
    return find_program_address(CollectionSeeds(candy_machine_id), programs)


def derive_associated_token_address(
    owner: Pubkey, mint: Pubkey, programs: ProgramIds | None = None
) -> Pubkey:
    pda, _bump = find_program_address(AssociatedTokenSeeds(owner, mint), programs)
    return pda


def fetch_metadata(
    ledger: Ledger, mint: Pubkey, programs: ProgramIds | None = None
) -> tuple[Pubkey, Metadata]:
    """
    Fetch and decode the metadata account of `mint`.

    Args:
        ledger: Ledger to read from
        mint: Mint whose metadata to fetch
        programs: Program ids to derive against

    Returns:
        (metadata address, decoded Metadata)

    Raises:
        AccountNotFoundError: If no account exists at the derived address
        DeserializeError: If the account does not decode as metadata
        RemoteQueryError: If the lookup fails
    """
    address = derive_metadata_address(mint, programs)
    logger.debug("Fetching metadata %s for mint %s", address, mint)

    data = ledger.get_account_info(address)
    if data is None:
        raise AccountNotFoundError("metadata", str(address))

    try:
        return address, decode_metadata(data)
    except ValueError as e:
        raise DeserializeError("metadata", str(address), detail=str(e)) from e


def fetch_master_edition(
    ledger: Ledger, mint: Pubkey, programs: ProgramIds | None = None
) -> tuple[Pubkey, MasterEdition]:
    """
    Fetch and decode the master edition account of `mint`.

    Raises:
        AccountNotFoundError: If no account exists at the derived address
        DeserializeError: If the account is not a valid master edition
        RemoteQueryError: If the lookup fails
    """
    address = derive_master_edition_address(mint, programs)
    logger.debug("Fetching master edition %s for mint %s", address, mint)

    data = ledger.get_account_info(address)
    if data is None:
        raise AccountNotFoundError("master edition", str(address))

    try:
        return address, decode_master_edition(data)
    except ValueError as e:
        raise DeserializeError("master edition", str(address), detail=str(e)) from e
