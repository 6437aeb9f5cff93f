"""
Tests for off-chain metadata documents
"""

from unittest.mock import MagicMock

import pytest
import requests

from solplay.errors import MetadataFetchError, SerializationError, ValidationError
from solplay.metadata import (
    FungibleAssetMetadataBuilder,
    FungibleTokenMetadataBuilder,
    NFTMetadataBuilder,
    file_type_by_uri,
    metadata_from_json,
    metadata_from_uri,
)

IMAGE = "https://example.com/image.png"


class TestBuilders:
    """Metadata document builders."""

    def test_fungible_token(self):
        md = (
            FungibleTokenMetadataBuilder()
            .set_name("Example")
            .set_symbol("EXM")
            .set_description("Example token")
            .set_image(IMAGE)
            .build()
        )

        assert md.name == "Example"
        assert md.attributes is None
        assert "attributes" not in md.to_json()

    def test_required_fields(self):
        with pytest.raises(ValidationError, match="image"):
            FungibleTokenMetadataBuilder().set_name("a").set_symbol("b").set_description("c").build()

    def test_fungible_asset_attributes(self):
        """Attribute display types follow the value type."""
        md = (
            FungibleAssetMetadataBuilder()
            .set_name("Gem")
            .set_symbol("GEM")
            .set_description("A gem")
            .set_image(IMAGE)
            .set_attribute("power", 10)
            .set_attribute("shiny", True)
            .set_attribute("color", "red")
            .build()
        )

        assert [a.display_type for a in md.attributes] == ["number", "boolean", "string"]
        assert md.attributes[0].value == "10"

    def test_nft_defaults_file_from_image(self):
        md = (
            NFTMetadataBuilder()
            .set_name("Example NFT")
            .set_symbol("ENFT")
            .set_description("An NFT")
            .set_image(IMAGE)
            .set_category("image")
            .set_collection("Examples", family="Demo")
            .set_custom_property("creator", "me")
            .build()
        )

        assert md.properties["files"] == [{"uri": IMAGE, "type": "image/png"}]
        assert md.properties["category"] == "image"
        assert md.properties["collection"] == {"name": "Examples", "family": "Demo"}
        assert md.properties["creator"] == "me"

    def test_file_type_by_uri(self):
        assert file_type_by_uri("https://example.com/clip.mp4?x=1") == "video/mp4"
        assert file_type_by_uri("https://example.com/blob") == ""


class TestDecoding:
    def test_extra_fields_are_kept(self):
        md = metadata_from_json('{"name": "Example", "symbol": "EXM", "seller_fee_basis_points": 100}')

        assert md.name == "Example"
        assert md.model_extra["seller_fee_basis_points"] == 100

    def test_invalid_json(self):
        with pytest.raises(SerializationError):
            metadata_from_json("{oops")


class TestFetch:
    """Downloading metadata documents."""

    def test_empty_uri(self):
        assert metadata_from_uri("") is None

    def test_fetch(self):
        session = MagicMock()
        session.get.return_value.content = b'{"name": "Example", "image": "https://example.com/i.png"}'

        md = metadata_from_uri("https://example.com/token.json", session=session, timeout=3)

        session.get.assert_called_once_with("https://example.com/token.json", timeout=3)
        assert md.image == "https://example.com/i.png"

    def test_http_error(self):
        session = MagicMock()
        session.get.return_value.raise_for_status.side_effect = requests.HTTPError("404")

        with pytest.raises(MetadataFetchError) as exc_info:
            metadata_from_uri("https://example.com/missing.json", session=session)

        assert isinstance(exc_info.value.__cause__, requests.HTTPError)
