"""Tests for taleweaver.images."""

import pytest

from taleweaver import images


class TestDataUrls:
    def test_roundtrip(self, red_png: bytes) -> None:
        url = images.to_data_url(red_png, "image/png")
        assert url.startswith("data:image/png;base64,")
        assert images.from_data_url(url) == (red_png, "image/png")

    def test_invalid_payload(self) -> None:
        with pytest.raises(images.ImageDecodeError):
            images.from_data_url("data:image/png;base64,@@@")

    def test_not_a_data_url(self) -> None:
        with pytest.raises(images.ImageDecodeError):
            images.from_data_url("https://example.com/a.png")

    def test_extensions(self) -> None:
        assert images.extension_for("image/jpeg") == "jpg"
        assert images.extension_for("text/not an image") == "png"
        assert images.mime_for("s0_thumb_1a2b3c4d.webp") == "image/webp"

    @pytest.mark.parametrize("mime", ["image/avif", "image/heic", "image/x-custom", "image/svg+xml"])
    def test_uncommon_mime_survives_filename(self, mime: str) -> None:
        assert images.mime_for(f"s0_thumb_1a2b3c4d.{images.extension_for(mime)}") == mime

    def test_short_hash_stable(self) -> None:
        assert images.short_hash("abc") == images.short_hash("abc")
        assert len(images.short_hash("abc")) == 8
