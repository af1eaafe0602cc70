"""
Instruction builders for the programs a collection mint touches.

Each builder takes the program ids explicitly so tests can target mock
deployments. Account order and data layout follow each program's ABI.
"""

from solders.compute_budget import set_compute_unit_price
from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from solders.system_program import CreateAccountParams, create_account
from solders.sysvar import RENT

from mintforge.config import ProgramIds
from mintforge.models.token_metadata import (
    CREATE_MASTER_EDITION_V3,
    CREATE_METADATA_ACCOUNT_V3,
    CollectionDetails,
    CreateMasterEditionV3Layout,
    CreateMetadataAccountV3Layout,
    DataV2,
)

# Size of an SPL Token mint account
MINT_LAYOUT = 82

# SPL Token instruction tags
_INITIALIZE_MINT = 0
_MINT_TO = 7

# Associated token account instruction tags
_CREATE_ASSOCIATED_TOKEN_ACCOUNT = 0


def build_priority_fee_ix(micro_lamports: int, programs: ProgramIds) -> Instruction:
    """Set the compute unit price (priority fee) for the batch."""
    ix = set_compute_unit_price(micro_lamports)
    return Instruction(programs.compute_budget, ix.data, ix.accounts)


def build_create_mint_account_ix(
    payer: Pubkey, mint: Pubkey, lamports: int, programs: ProgramIds
) -> Instruction:
    """Allocate a rent-exempt account for a new mint, owned by the token program."""
    ix = create_account(
        CreateAccountParams(
            from_pubkey=payer,
            to_pubkey=mint,
            lamports=lamports,
            space=MINT_LAYOUT,
            owner=programs.token,
        )
    )
    return Instruction(programs.system, ix.data, ix.accounts)


def build_initialize_mint_ix(
    mint: Pubkey,
    mint_authority: Pubkey,
    freeze_authority: Pubkey | None,
    decimals: int,
    programs: ProgramIds,
) -> Instruction:
    """
    Initialize a mint.

    Data: tag, decimals, mint authority, then the freeze authority as a
    COption (one tag byte, 32 bytes of key).
    """
    data = bytes([_INITIALIZE_MINT, decimals]) + bytes(mint_authority)
    if freeze_authority is None:
        data += bytes(1) + bytes(32)
    else:
        data += bytes([1]) + bytes(freeze_authority)

    accounts = [
        AccountMeta(mint, is_signer=False, is_writable=True),
        AccountMeta(RENT, is_signer=False, is_writable=False),
    ]
    return Instruction(programs.token, data, accounts)


def build_create_associated_token_account_ix(
    payer: Pubkey, owner: Pubkey, mint: Pubkey, associated_account: Pubkey, programs: ProgramIds
) -> Instruction:
    """Create the associated token account for (owner, mint)."""
    accounts = [
        AccountMeta(payer, is_signer=True, is_writable=True),
        AccountMeta(associated_account, is_signer=False, is_writable=True),
        AccountMeta(owner, is_signer=False, is_writable=False),
        AccountMeta(mint, is_signer=False, is_writable=False),
        AccountMeta(programs.system, is_signer=False, is_writable=False),
        AccountMeta(programs.token, is_signer=False, is_writable=False),
    ]
    return Instruction(
        programs.associated_token, bytes([_CREATE_ASSOCIATED_TOKEN_ACCOUNT]), accounts
    )


def build_mint_to_ix(
    mint: Pubkey, destination: Pubkey, authority: Pubkey, amount: int, programs: ProgramIds
) -> Instruction:
    """Mint `amount` units into `destination`."""
    data = bytes([_MINT_TO]) + amount.to_bytes(8, "little")
    accounts = [
        AccountMeta(mint, is_signer=False, is_writable=True),
        AccountMeta(destination, is_signer=False, is_writable=True),
        AccountMeta(authority, is_signer=True, is_writable=False),
    ]
    return Instruction(programs.token, data, accounts)


def encode_create_metadata_account_v3(
    data: DataV2, is_mutable: bool, collection_details: CollectionDetails | None
) -> bytes:
    return CreateMetadataAccountV3Layout.build(
        {
            "discriminator": CREATE_METADATA_ACCOUNT_V3,
            "data": data.to_layout(),
            "is_mutable": is_mutable,
            "collection_details": (
                None if collection_details is None else collection_details.to_layout()
            ),
        }
    )


def build_create_metadata_account_v3_ix(
    metadata: Pubkey,
    mint: Pubkey,
    mint_authority: Pubkey,
    payer: Pubkey,
    update_authority: Pubkey,
    data: DataV2,
    is_mutable: bool,
    collection_details: CollectionDetails | None,
    programs: ProgramIds,
) -> Instruction:
    """Create the metadata account for `mint`; the update authority signs."""
    accounts = [
        AccountMeta(metadata, is_signer=False, is_writable=True),
        AccountMeta(mint, is_signer=False, is_writable=False),
        AccountMeta(mint_authority, is_signer=True, is_writable=False),
        AccountMeta(payer, is_signer=True, is_writable=True),
        AccountMeta(update_authority, is_signer=True, is_writable=False),
        AccountMeta(programs.system, is_signer=False, is_writable=False),
        AccountMeta(RENT, is_signer=False, is_writable=False),
    ]
    payload = encode_create_metadata_account_v3(data, is_mutable, collection_details)
    return Instruction(programs.token_metadata, payload, accounts)


def encode_create_master_edition_v3(max_supply: int | None) -> bytes:
    return CreateMasterEditionV3Layout.build(
        {"discriminator": CREATE_MASTER_EDITION_V3, "max_supply": max_supply}
    )


def build_create_master_edition_v3_ix(
    edition: Pubkey,
    mint: Pubkey,
    update_authority: Pubkey,
    mint_authority: Pubkey,
    payer: Pubkey,
    metadata: Pubkey,
    max_supply: int | None,
    programs: ProgramIds,
) -> Instruction:
    """Create the master edition for `mint`; takes over its mint authority."""
    accounts = [
        AccountMeta(edition, is_signer=False, is_writable=True),
        AccountMeta(mint, is_signer=False, is_writable=True),
        AccountMeta(update_authority, is_signer=True, is_writable=False),
        AccountMeta(mint_authority, is_signer=True, is_writable=False),
        AccountMeta(payer, is_signer=True, is_writable=True),
        AccountMeta(metadata, is_signer=False, is_writable=True),
        AccountMeta(programs.token, is_signer=False, is_writable=False),
        AccountMeta(programs.system, is_signer=False, is_writable=False),
        AccountMeta(RENT, is_signer=False, is_writable=False),
    ]
    return Instruction(
        programs.token_metadata, encode_create_master_edition_v3(max_supply), accounts
    )
