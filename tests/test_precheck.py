"""Unit tests for the local image precheck."""

from unittest.mock import patch

import numpy as np
import pytest
from PIL import Image

from conftest import encode_png
from phyto_api.services.precheck import ImagePrecheck


class TestImagePrecheck:
    """Tests for ImagePrecheck.validate."""

    @pytest.fixture
    def precheck(self, settings):
        return ImagePrecheck(settings)

    def test_leaf_image_is_valid(self, precheck, leaf_image):
        """Test a sharp, well lit, green photo passes every check."""
        result = precheck.validate(leaf_image)

        assert result.is_valid is True
        assert result.has_plant_content is True
        assert result.quality == pytest.approx(1.0)
        assert result.issues == []
        assert result.width == 256
        assert result.height == 256

    def test_gray_10x10_is_rejected(self, precheck, gray_image):
        """Test a tiny uniform gray image is rejected with concrete issues."""
        result = precheck.validate(gray_image)

        assert result.is_valid is False
        assert result.has_plant_content is False
        # Only lighting passes
        assert result.quality == pytest.approx(0.3)
        joined = " ".join(result.issues).lower()
        assert "resolution" in joined
        assert "plant colors" in joined
        assert len(result.suggestions) >= 2

    def test_overexposed_image(self, precheck):
        """Test a white image reports overexposure and is rejected."""
        image = encode_png(np.full((256, 256, 3), 250, dtype=np.uint8))

        result = precheck.validate(image)

        assert result.is_valid is False
        assert any("overexposed" in issue for issue in result.issues)

    def test_dark_leaf_still_valid_with_issue(self, precheck):
        """Test a dim but green photo passes while still reporting the lighting."""
        rng = np.random.default_rng(7)
        rgb = np.zeros((300, 300, 3), dtype=np.uint8)
        rgb[..., 0] = rng.integers(0, 20, size=(300, 300))
        rgb[..., 1] = rng.integers(52, 60, size=(300, 300))
        rgb[..., 2] = rng.integers(0, 20, size=(300, 300))

        result = precheck.validate(encode_png(rgb))

        assert result.is_valid is True
        assert result.quality == pytest.approx(0.7)
        assert any("too dark" in issue for issue in result.issues)

    def test_brown_pixels_count_as_plant(self, precheck):
        """Test bark/soil tones count toward plant content."""
        rng = np.random.default_rng(3)
        rgb = np.zeros((256, 256, 3), dtype=np.uint8)
        rgb[..., 0] = rng.integers(130, 150, size=(256, 256))
        rgb[..., 1] = rng.integers(105, 120, size=(256, 256))
        rgb[..., 2] = rng.integers(40, 60, size=(256, 256))

        result = precheck.validate(encode_png(rgb))

        assert result.has_plant_content is True
        assert result.plant_color_ratio == pytest.approx(1.0)

    @pytest.mark.parametrize("data", [b"", b"definitely not an image"])
    def test_malformed_data_never_raises(self, precheck, data):
        """Test malformed input yields an invalid result instead of an exception."""
        result = precheck.validate(data)

        assert result.is_valid is False
        assert result.quality == 0.0
        assert result.issues == ["Image data could not be decoded"]

    def test_decompression_bomb_is_rejected(self, precheck, leaf_image):
        """Test images over Pillow's pixel limit yield an invalid result instead of an exception."""
        with patch.object(Image, "MAX_IMAGE_PIXELS", 1000):
            result = precheck.validate(leaf_image)

        assert result.is_valid is False
        assert result.quality == 0.0
        assert result.issues == ["Image dimensions too large to process"]
        assert result.suggestions
