"""Off-chain token metadata: the JSON document a metadata URI points to."""

import logging
import mimetypes
from typing import Any, Dict, List, Optional, Union

import requests
from pydantic import BaseModel, ConfigDict

from .errors import MetadataFetchError, SerializationError, ValidationError

logger = logging.getLogger("solplay.metadata")

CATEGORY_IMAGE = "image"
CATEGORY_VIDEO = "video"
CATEGORY_AUDIO = "audio"
CATEGORY_VR = "vr"
CATEGORY_HTML = "html"

DISPLAY_STRING = "string"
DISPLAY_NUMBER = "number"
DISPLAY_BOOLEAN = "boolean"


class Attribute(BaseModel):
    trait_type: str
    value: Any
    display_type: Optional[str] = None
    max_value: Optional[int] = None
    trait_count: Optional[int] = None


class File(BaseModel):
    uri: str
    type: Optional[str] = None
    cdn: Optional[bool] = None


class CollectionInfo(BaseModel):
    name: str
    family: Optional[str] = None


class Metadata(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str = ""
    symbol: str = ""
    description: Optional[str] = None
    image: Optional[str] = None
    animation_url: Optional[str] = None
    external_url: Optional[str] = None
    attributes: Optional[List[Attribute]] = None
    properties: Optional[Dict[str, Any]] = None

    def to_json(self) -> str:
        return self.model_dump_json(exclude_none=True)


def metadata_from_json(data: Union[str, bytes]) -> Metadata:
    try:
        return Metadata.model_validate_json(data)
    except ValueError as exc:
        raise SerializationError("failed to decode metadata from json") from exc


def metadata_from_uri(
    uri: str, session: Optional[requests.Session] = None, timeout: float = 10.0
) -> Optional[Metadata]:
    if not uri:
        return None
    http = session or requests
    try:
        resp = http.get(uri, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise MetadataFetchError("failed to download metadata from uri", uri=uri) from exc
    logger.debug("metadata_fetched uri=%s bytes=%s", uri, len(resp.content))
    return metadata_from_json(resp.content)


def file_type_by_uri(uri: str) -> str:
    guessed, _ = mimetypes.guess_type(uri.split("?", 1)[0])
    return guessed or ""


def _display_type(value: Any) -> str:
    if isinstance(value, bool):
        return DISPLAY_BOOLEAN
    if isinstance(value, (int, float)):
        return DISPLAY_NUMBER
    return DISPLAY_STRING


class FungibleTokenMetadataBuilder:
    def __init__(self) -> None:
        self.name = ""
        self.symbol = ""
        self.description = ""
        self.image = ""
        self.external_url: Optional[str] = None

    def set_name(self, name: str) -> "FungibleTokenMetadataBuilder":
        self.name = name
        return self

    def set_symbol(self, symbol: str) -> "FungibleTokenMetadataBuilder":
        self.symbol = symbol
        return self

    def set_description(self, description: str) -> "FungibleTokenMetadataBuilder":
        self.description = description
        return self

    def set_image(self, image: str) -> "FungibleTokenMetadataBuilder":
        self.image = image
        return self

    def set_external_url(self, url: str) -> "FungibleTokenMetadataBuilder":
        self.external_url = url
        return self

    def _require(self) -> None:
        for name in ("name", "symbol", "description", "image"):
            if not getattr(self, name):
                raise ValidationError(f"{name} is required")

    def build(self) -> Metadata:
        self._require()
        return Metadata(
            name=self.name,
            symbol=self.symbol,
            description=self.description,
            image=self.image,
            external_url=self.external_url,
        )


class FungibleAssetMetadataBuilder(FungibleTokenMetadataBuilder):
    """Fungible assets (semi-fungible tokens) also carry attributes."""

    def __init__(self) -> None:
        super().__init__()
        self.attributes: List[Attribute] = []

    def set_attribute(self, key: str, value: Any) -> "FungibleAssetMetadataBuilder":
        self.attributes.append(Attribute(trait_type=key, value=str(value), display_type=_display_type(value)))
        return self

    def build(self) -> Metadata:
        md = super().build()
        if self.attributes:
            md.attributes = list(self.attributes)
        return md


class NFTMetadataBuilder(FungibleAssetMetadataBuilder):
    def __init__(self) -> None:
        super().__init__()
        self.animation_url: Optional[str] = None
        self.files: List[File] = []
        self.category: Optional[str] = None
        self.collection: Optional[CollectionInfo] = None
        self.custom_properties: Dict[str, Any] = {}

    def set_animation_url(self, url: str) -> "NFTMetadataBuilder":
        self.animation_url = url
        return self

    def set_attribute_struct(self, attribute: Attribute) -> "NFTMetadataBuilder":
        self.attributes.append(attribute)
        return self

    def set_file(self, uri: str, file_type: str = "", cdn: bool = False) -> "NFTMetadataBuilder":
        file_type = file_type or file_type_by_uri(uri) or "unknown"
        self.files.append(File(uri=uri, type=file_type, cdn=cdn or None))
        return self

    def set_category(self, category: str) -> "NFTMetadataBuilder":
        self.category = category
        return self

    def set_collection(self, name: str, family: Optional[str] = None) -> "NFTMetadataBuilder":
        self.collection = CollectionInfo(name=name, family=family)
        return self

    def set_custom_property(self, key: str, value: Any) -> "NFTMetadataBuilder":
        self.custom_properties[key] = value
        return self

    def build(self) -> Metadata:
        self._require()
        if not self.files:
            self.set_file(self.image)

        props: Dict[str, Any] = dict(self.custom_properties)
        if self.category:
            props["category"] = self.category
        if self.collection is not None:
            props["collection"] = self.collection.model_dump(exclude_none=True)
        props["files"] = [f.model_dump(exclude_none=True) for f in self.files]

        return Metadata(
            name=self.name,
            symbol=self.symbol,
            description=self.description,
            image=self.image,
            animation_url=self.animation_url,
            external_url=self.external_url,
            attributes=list(self.attributes) or None,
            properties=props,
        )
