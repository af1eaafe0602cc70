"""
Token Metadata program types.

Typed records for the Token Metadata instructions this engine sends and the
accounts it reads back, with the borsh layouts that encode them.

On-chain metadata accounts are zero-padded to a fixed size and the name,
symbol and uri strings are padded with NUL bytes. Decoding strips both.
"""

from dataclasses import dataclass, replace
from enum import IntEnum

from borsh_construct import U8, U16, U64, Bool, CStruct, Enum, Option, String, Vec
from construct import ConstructError
from solders.pubkey import Pubkey

# Account sizes the program allocates
MAX_METADATA_LEN = 679
MAX_MASTER_EDITION_LEN = 282

MAX_NAME_LENGTH = 32
MAX_SYMBOL_LENGTH = 10
MAX_URI_LENGTH = 200
MAX_CREATOR_LIMIT = 5

# Instruction discriminators
CREATE_MASTER_EDITION_V3 = 17
CREATE_METADATA_ACCOUNT_V3 = 33


class Key(IntEnum):
    """Account type tag stored in the first byte of every program account."""

    UNINITIALIZED = 0
    EDITION_V1 = 1
    MASTER_EDITION_V1 = 2
    RESERVATION_LIST_V1 = 3
    METADATA_V1 = 4
    RESERVATION_LIST_V2 = 5
    MASTER_EDITION_V2 = 6
    EDITION_MARKER = 7


class TokenStandard(IntEnum):
    NON_FUNGIBLE = 0
    FUNGIBLE_ASSET = 1
    FUNGIBLE = 2
    NON_FUNGIBLE_EDITION = 3
    PROGRAMMABLE_NON_FUNGIBLE = 4
    PROGRAMMABLE_NON_FUNGIBLE_EDITION = 5


class UseMethod(IntEnum):
    BURN = 0
    MULTIPLE = 1
    SINGLE = 2


# =============================================================================
# LAYOUTS
# =============================================================================

PubkeyLayout = U8[32]

CreatorLayout = CStruct(
    "address" / PubkeyLayout,
    "verified" / Bool,
    "share" / U8,
)
CollectionLayout = CStruct(
    "verified" / Bool,
    "key" / PubkeyLayout,
)
UsesLayout = CStruct(
    "use_method" / U8,
    "remaining" / U64,
    "total" / U64,
)
CollectionDetailsLayout = Enum(
    "V1" / CStruct("size" / U64),
    "V2" / CStruct("padding" / U8[8]),
    enum_name="CollectionDetails",
)
DataV2Layout = CStruct(
    "name" / String,
    "symbol" / String,
    "uri" / String,
    "seller_fee_basis_points" / U16,
    "creators" / Option(Vec(CreatorLayout)),
    "collection" / Option(CollectionLayout),
    "uses" / Option(UsesLayout),
)
CreateMetadataAccountV3Layout = CStruct(
    "discriminator" / U8,
    "data" / DataV2Layout,
    "is_mutable" / Bool,
    "collection_details" / Option(CollectionDetailsLayout),
)
CreateMasterEditionV3Layout = CStruct(
    "discriminator" / U8,
    "max_supply" / Option(U64),
)

_DataLayout = CStruct(
    "name" / String,
    "symbol" / String,
    "uri" / String,
    "seller_fee_basis_points" / U16,
    "creators" / Option(Vec(CreatorLayout)),
)
_MetadataHeadFields = (
    "key" / U8,
    "update_authority" / PubkeyLayout,
    "mint" / PubkeyLayout,
    "data" / _DataLayout,
    "primary_sale_happened" / Bool,
    "is_mutable" / Bool,
)
_MetadataTailFields = (
    "edition_nonce" / Option(U8),
    "token_standard" / Option(U8),
    "collection" / Option(CollectionLayout),
    "uses" / Option(UsesLayout),
    "collection_details" / Option(CollectionDetailsLayout),
)
MetadataHeadLayout = CStruct(*_MetadataHeadFields)
MetadataLayout = CStruct(*_MetadataHeadFields, *_MetadataTailFields)
MasterEditionLayout = CStruct(
    "key" / U8,
    "supply" / U64,
    "max_supply" / Option(U64),
)


# =============================================================================
# RECORDS
# =============================================================================


@dataclass(frozen=True)
class Creator:
    address: Pubkey
    verified: bool
    share: int

    def to_layout(self) -> dict:
        return {"address": list(bytes(self.address)), "verified": self.verified, "share": self.share}


@dataclass(frozen=True)
class Collection:
    """Reference from a member mint to its parent collection mint."""

    verified: bool
    key: Pubkey

    def to_layout(self) -> dict:
        return {"verified": self.verified, "key": list(bytes(self.key))}


@dataclass(frozen=True)
class Uses:
    use_method: UseMethod
    remaining: int
    total: int

    def to_layout(self) -> dict:
        return {"use_method": int(self.use_method), "remaining": self.remaining, "total": self.total}


@dataclass(frozen=True)
class CollectionDetails:
    """
    Marks a mint as a sized collection parent.

    Size starts at 0 and grows as members are verified into the collection.
    V2 details carry no on-chain size; they decode with `size` None.
    """

    size: int | None

    def to_layout(self):
        if self.size is None:
            return CollectionDetailsLayout.enum.V2(padding=[0] * 8)
        return CollectionDetailsLayout.enum.V1(size=self.size)


@dataclass(frozen=True)
class DataV2:
    """Metadata payload written by CreateMetadataAccountV3."""

    name: str
    symbol: str
    uri: str
    seller_fee_basis_points: int
    creators: list[Creator] | None = None
    collection: Collection | None = None
    uses: Uses | None = None

    def __post_init__(self) -> None:
        if len(self.name.encode()) > MAX_NAME_LENGTH:
            raise ValueError(f"Name too long: {self.name!r} (max {MAX_NAME_LENGTH} bytes)")
        if len(self.symbol.encode()) > MAX_SYMBOL_LENGTH:
            raise ValueError(f"Symbol too long: {self.symbol!r} (max {MAX_SYMBOL_LENGTH} bytes)")
        if len(self.uri.encode()) > MAX_URI_LENGTH:
            raise ValueError(f"URI too long: {self.uri!r} (max {MAX_URI_LENGTH} bytes)")
        if not 0 <= self.seller_fee_basis_points <= 10_000:
            raise ValueError(f"Invalid seller fee basis points: {self.seller_fee_basis_points}")
        if self.creators is not None:
            if len(self.creators) > MAX_CREATOR_LIMIT:
                raise ValueError(f"Too many creators: {len(self.creators)} (max {MAX_CREATOR_LIMIT})")
            total_share = sum(c.share for c in self.creators)
            if total_share != 100:
                raise ValueError(f"Creator shares must sum to 100, got {total_share}")

    def to_layout(self) -> dict:
        return {
            "name": self.name,
            "symbol": self.symbol,
            "uri": self.uri,
            "seller_fee_basis_points": self.seller_fee_basis_points,
            "creators": None if self.creators is None else [c.to_layout() for c in self.creators],
            "collection": None if self.collection is None else self.collection.to_layout(),
            "uses": None if self.uses is None else self.uses.to_layout(),
        }


@dataclass(frozen=True)
class Metadata:
    """Decoded metadata account."""

    key: Key
    update_authority: Pubkey
    mint: Pubkey
    name: str
    symbol: str
    uri: str
    seller_fee_basis_points: int
    creators: list[Creator] | None
    primary_sale_happened: bool
    is_mutable: bool
    edition_nonce: int | None = None
    token_standard: TokenStandard | None = None
    collection: Collection | None = None
    uses: Uses | None = None
    collection_details: CollectionDetails | None = None


@dataclass(frozen=True)
class MasterEdition:
    """Decoded master edition account."""

    key: Key
    supply: int
    max_supply: int | None


# =============================================================================
# DECODING
# =============================================================================


def _pubkey(raw) -> Pubkey:
    return Pubkey.from_bytes(bytes(raw))


def _unpad(value: str) -> str:
    return value.rstrip("\x00")


def _creator(parsed) -> Creator:
    return Creator(address=_pubkey(parsed.address), verified=parsed.verified, share=parsed.share)


def _collection_details(parsed) -> CollectionDetails | None:
    if parsed is None:
        return None
    if isinstance(parsed, CollectionDetailsLayout.enum.V1):
        return CollectionDetails(size=parsed.size)
    return CollectionDetails(size=None)


def decode_metadata(data: bytes) -> Metadata:
    """
    Decode a metadata account.

    Older accounts end before the optional trailing fields; those decode with
    the trailing fields unset. Anything else that fails to decode is an error.

    Args:
        data: Raw account data

    Returns:
        The decoded Metadata

    Raises:
        ValueError: If the data is not a metadata account
    """
    if not data or data[0] != Key.METADATA_V1:
        raise ValueError(f"Unexpected account key: {data[0] if data else None}")

    try:
        parsed = MetadataLayout.parse(data)
    except ConstructError:
        try:
            parsed = MetadataHeadLayout.parse(data)
        except ConstructError as e:
            raise ValueError(f"Truncated metadata account: {e}") from e
        tail = None
    else:
        tail = parsed

    fields = parsed.data
    creators = None if fields.creators is None else [_creator(c) for c in fields.creators]

    metadata = Metadata(
        key=Key(parsed.key),
        update_authority=_pubkey(parsed.update_authority),
        mint=_pubkey(parsed.mint),
        name=_unpad(fields.name),
        symbol=_unpad(fields.symbol),
        uri=_unpad(fields.uri),
        seller_fee_basis_points=fields.seller_fee_basis_points,
        creators=creators,
        primary_sale_happened=parsed.primary_sale_happened,
        is_mutable=parsed.is_mutable,
    )
    if tail is None:
        return metadata

    token_standard = None
    if tail.token_standard is not None:
        token_standard = TokenStandard(tail.token_standard)
    collection = None
    if tail.collection is not None:
        collection = Collection(verified=tail.collection.verified, key=_pubkey(tail.collection.key))
    uses = None
    if tail.uses is not None:
        uses = Uses(
            use_method=UseMethod(tail.uses.use_method),
            remaining=tail.uses.remaining,
            total=tail.uses.total,
        )

    return replace(
        metadata,
        edition_nonce=tail.edition_nonce,
        token_standard=token_standard,
        collection=collection,
        uses=uses,
        collection_details=_collection_details(tail.collection_details),
    )


def decode_master_edition(data: bytes) -> MasterEdition:
    """
    Decode a master edition account.

    Raises:
        ValueError: If the data is not a master edition account
    """
    if not data or data[0] not in (Key.MASTER_EDITION_V1, Key.MASTER_EDITION_V2):
        raise ValueError(f"Unexpected account key: {data[0] if data else None}")

    try:
        parsed = MasterEditionLayout.parse(data)
    except ConstructError as e:
        raise ValueError(f"Truncated master edition account: {e}") from e

    return MasterEdition(key=Key(parsed.key), supply=parsed.supply, max_supply=parsed.max_supply)
