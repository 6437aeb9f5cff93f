"""On-chain Metaplex token-metadata account layouts and their JSON-friendly records."""

from dataclasses import asdict, dataclass, field
from enum import Enum as PyEnum
from typing import Any, Dict, List, Optional

from borsh_construct import Bool, CStruct, Enum, Option, String, U16, U64, U8, Vec
from solders.pubkey import Pubkey

from .errors import SerializationError, ValidationError


class Key(PyEnum):
    UNINITIALIZED = 0
    EDITION_V1 = 1
    MASTER_EDITION_V1 = 2
    RESERVATION_LIST_V1 = 3
    METADATA_V1 = 4
    RESERVATION_LIST_V2 = 5
    MASTER_EDITION_V2 = 6
    EDITION_MARKER = 7
    USE_AUTHORITY_RECORD = 8
    COLLECTION_AUTHORITY_RECORD = 9

    @property
    def label(self) -> str:
        return _KEY_LABELS.get(self, KEY_UNDEFINED)


KEY_UNDEFINED = "undefined"
KEY_MASTER_EDITION = "master_edition"
KEY_PRINTED_EDITION = "edition"

_KEY_LABELS = {
    Key.UNINITIALIZED: KEY_UNDEFINED,
    Key.EDITION_V1: KEY_PRINTED_EDITION,
    Key.MASTER_EDITION_V1: KEY_MASTER_EDITION,
    Key.RESERVATION_LIST_V1: "reservation_list",
    Key.METADATA_V1: "metadata",
    Key.RESERVATION_LIST_V2: "reservation_list",
    Key.MASTER_EDITION_V2: KEY_MASTER_EDITION,
    Key.EDITION_MARKER: "edition_marker",
    Key.USE_AUTHORITY_RECORD: "use_authority_record",
    Key.COLLECTION_AUTHORITY_RECORD: "collection_authority_record",
}


def key_label(raw: int) -> str:
    try:
        return Key(raw).label
    except ValueError:
        return KEY_UNDEFINED


class TokenStandard(str, PyEnum):
    NON_FUNGIBLE = "non_fungible"
    FUNGIBLE_ASSET = "fungible_asset"
    FUNGIBLE = "fungible"
    NON_FUNGIBLE_EDITION = "non_fungible_edition"

    @property
    def code(self) -> int:
        return _TOKEN_STANDARD_CODES[self]

    @classmethod
    def from_code(cls, code: Optional[int]) -> Optional["TokenStandard"]:
        for standard, value in _TOKEN_STANDARD_CODES.items():
            if value == code:
                return standard
        return None


TOKEN_STANDARD_UNDEFINED = "undefined"

_TOKEN_STANDARD_CODES = {
    TokenStandard.NON_FUNGIBLE: 0,
    TokenStandard.FUNGIBLE_ASSET: 1,
    TokenStandard.FUNGIBLE: 2,
    TokenStandard.NON_FUNGIBLE_EDITION: 3,
}


class UseMethod(str, PyEnum):
    BURN = "burn"
    MULTIPLE = "multiple"
    SINGLE = "single"

    @property
    def code(self) -> int:
        return _USE_METHOD_CODES[self]

    @classmethod
    def from_code(cls, code: int) -> Optional["UseMethod"]:
        for method, value in _USE_METHOD_CODES.items():
            if value == code:
                return method
        return None


USE_METHOD_UNKNOWN = "unknown"

_USE_METHOD_CODES = {UseMethod.BURN: 0, UseMethod.MULTIPLE: 1, UseMethod.SINGLE: 2}


def parse_use_method(value: Any) -> UseMethod:
    if isinstance(value, UseMethod):
        return value
    try:
        return UseMethod(value)
    except ValueError as exc:
        raise ValidationError("invalid use method", use_method=value) from exc


CreatorLayout = CStruct("address" / U8[32], "verified" / Bool, "share" / U8)
CollectionLayout = CStruct("verified" / Bool, "key" / U8[32])
UsesLayout = CStruct("use_method" / U8, "remaining" / U64, "total" / U64)
CollectionDetailsLayout = Enum("V1" / CStruct("size" / U64), enum_name="CollectionDetails")

DataLayout = CStruct(
    "name" / String,
    "symbol" / String,
    "uri" / String,
    "seller_fee_basis_points" / U16,
    "creators" / Option(Vec(CreatorLayout)),
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

_METADATA_PREFIX = (
    "key" / U8,
    "update_authority" / U8[32],
    "mint" / U8[32],
    "data" / DataLayout,
    "primary_sale_happened" / Bool,
    "is_mutable" / Bool,
)
MetadataLayout = CStruct(
    *_METADATA_PREFIX,
    "edition_nonce" / Option(U8),
    "token_standard" / Option(U8),
    "collection" / Option(CollectionLayout),
    "uses" / Option(UsesLayout),
    "collection_details" / Option(CollectionDetailsLayout),
)
# accounts written before token standards existed stop after is_mutable / edition_nonce
LegacyMetadataLayout = CStruct(*_METADATA_PREFIX, "edition_nonce" / Option(U8))
BaseMetadataLayout = CStruct(*_METADATA_PREFIX)

MasterEditionLayout = CStruct("key" / U8, "supply" / U64, "max_supply" / Option(U64))
EditionLayout = CStruct("key" / U8, "parent" / U8[32], "edition" / U64)


@dataclass
class Creator:
    address: str
    verified: bool = False
    share: int = 0


@dataclass
class Collection:
    verified: bool
    key: str
    size: Optional[int] = None


@dataclass
class Uses:
    use_method: str
    total: int
    remaining: int


@dataclass
class Edition:
    type: str = KEY_UNDEFINED
    supply: int = 0
    # None means unlimited prints
    max_supply: Optional[int] = None
    edition: int = 0
    parent: Optional[str] = None

    @property
    def is_master(self) -> bool:
        return self.type == KEY_MASTER_EDITION


@dataclass
class Metadata:
    update_authority: str
    mint: str
    name: str
    symbol: str
    metadata_uri: str
    seller_fee_basis_points: int
    primary_sale_happened: bool = False
    is_mutable: bool = True
    edition_nonce: Optional[int] = None
    token_standard: str = TOKEN_STANDARD_UNDEFINED
    collection: Optional[Collection] = None
    uses: Optional[Uses] = None
    edition: Optional[Edition] = None
    creators: List[Creator] = field(default_factory=list)
    data: Optional[Dict[str, Any]] = None

    def to_dict(self) -> dict:
        return asdict(self)


def _pubkey_str(raw) -> str:
    return str(Pubkey(bytes(raw)))


def _clean(value: str) -> str:
    return value.rstrip("\x00")


def _parse_metadata_container(data: bytes):
    last_exc: Optional[Exception] = None
    for layout in (MetadataLayout, LegacyMetadataLayout, BaseMetadataLayout):
        try:
            return layout.parse(data)
        except Exception as exc:  # noqa: BLE001
            last_exc = exc
    raise SerializationError("failed to deserialize metadata", size=len(data)) from last_exc


def deserialize_metadata(data: bytes) -> Metadata:
    parsed = _parse_metadata_container(data)
    if parsed.key != Key.METADATA_V1.value:
        raise SerializationError("account is not a metadata account", key=key_label(parsed.key))

    standard = TokenStandard.from_code(parsed.get("token_standard"))
    md = Metadata(
        update_authority=_pubkey_str(parsed.update_authority),
        mint=_pubkey_str(parsed.mint),
        name=_clean(parsed.data.name),
        symbol=_clean(parsed.data.symbol),
        metadata_uri=_clean(parsed.data.uri),
        seller_fee_basis_points=parsed.data.seller_fee_basis_points,
        primary_sale_happened=parsed.primary_sale_happened,
        is_mutable=parsed.is_mutable,
        edition_nonce=parsed.get("edition_nonce"),
        token_standard=standard.value if standard else TOKEN_STANDARD_UNDEFINED,
    )

    collection = parsed.get("collection")
    if collection is not None:
        md.collection = Collection(verified=collection.verified, key=_pubkey_str(collection.key))
        details = parsed.get("collection_details")
        if details is not None:
            md.collection.size = getattr(details, "size", None)

    uses = parsed.get("uses")
    if uses is not None:
        method = UseMethod.from_code(uses.use_method)
        md.uses = Uses(
            use_method=method.value if method else USE_METHOD_UNKNOWN,
            total=uses.total,
            remaining=uses.remaining,
        )

    for creator in parsed.data.creators or []:
        md.creators.append(
            Creator(address=_pubkey_str(creator.address), verified=creator.verified, share=creator.share)
        )
    return md


def deserialize_master_edition(data: bytes) -> Edition:
    try:
        parsed = MasterEditionLayout.parse(data)
    except Exception as exc:  # noqa: BLE001
        raise SerializationError("failed to deserialize master edition") from exc
    return Edition(
        type=key_label(parsed.key),
        supply=parsed.supply,
        max_supply=parsed.max_supply,
    )


def deserialize_edition(data: bytes) -> Edition:
    """Decode either a master edition or a printed edition account.

    Printed editions carry only their number and parent; supply figures are
    filled in by the caller from the parent master edition.
    """
    if not data:
        raise SerializationError("empty edition account")
    kind = key_label(data[0])
    if kind == KEY_MASTER_EDITION:
        return deserialize_master_edition(data)
    if kind == KEY_PRINTED_EDITION:
        try:
            parsed = EditionLayout.parse(data)
        except Exception as exc:  # noqa: BLE001
            raise SerializationError("failed to deserialize edition") from exc
        return Edition(type=kind, edition=parsed.edition, parent=_pubkey_str(parsed.parent))
    return Edition(type=kind)
