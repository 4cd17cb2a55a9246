"""
Local image precheck.

Cheap, pure validation of the uploaded photo before any provider is called:
resolution, lighting and the share of plant-coloured pixels. Provider calls
are slow and rate-limited, so callers gate on ``is_valid``.
"""

import io
import logging

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from phyto_api.core.config import Settings, get_settings
from phyto_api.models.diagnosis import PrecheckResult

logger = logging.getLogger(__name__)


# Quality weights (sum to 1.0)
WEIGHT_LIGHTING = 0.3
WEIGHT_PLANT_COLORS = 0.4
WEIGHT_RESOLUTION = 0.3

MAX_SAMPLES_PER_AXIS = 128


class ImagePrecheck:
    """Validate image bytes from pixel statistics alone."""

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self.min_dimension = settings.precheck_min_dimension
        self.min_brightness = settings.precheck_min_brightness
        self.max_brightness = settings.precheck_max_brightness
        self.min_plant_ratio = settings.precheck_min_plant_ratio
        self.min_sharpness = settings.precheck_min_sharpness

    def validate(self, image_data: bytes) -> PrecheckResult:
        """
        Validate an image.

        Args:
            image_data: Raw image bytes (JPEG, PNG, WebP...)

        Returns:
            PrecheckResult. Malformed data yields ``is_valid=False`` with an
            explicit issue rather than an exception.
        """
        try:
            rgb = self._decode_image(image_data)
        except Image.DecompressionBombError as e:
            logger.warning(f"Precheck refused oversized image: {e}")
            return self._rejected(
                "Image dimensions too large to process",
                "Resize the photo to a few thousand pixels per side before uploading",
            )
        if rgb is None:
            return self._rejected(
                "Image data could not be decoded",
                "Upload a JPEG or PNG photo taken with your camera",
            )

        height, width = rgb.shape[:2]
        samples = self._sample_grid(rgb)

        brightness = self._average_brightness(samples)
        plant_ratio = self._plant_color_ratio(samples)
        sharpness = self._sharpness(rgb)

        resolution_ok = min(width, height) >= self.min_dimension
        lighting_ok = self.min_brightness <= brightness <= self.max_brightness
        plant_colors_present = plant_ratio > self.min_plant_ratio

        quality = (
            WEIGHT_LIGHTING * lighting_ok
            + WEIGHT_PLANT_COLORS * plant_colors_present
            + WEIGHT_RESOLUTION * resolution_ok
        )
        quality = round(min(1.0, max(0.0, quality)), 3)

        issues: list[str] = []
        suggestions: list[str] = []

        if not resolution_ok:
            issues.append(
                f"Image resolution too low ({width}x{height}, "
                f"minimum {self.min_dimension}px on the shorter side)"
            )
            suggestions.append("Move closer to the plant or use a higher camera resolution")

        if not lighting_ok:
            if brightness < self.min_brightness:
                issues.append(f"Image is too dark (average brightness {brightness:.0f})")
                suggestions.append("Photograph the plant in daylight or switch on a light")
            else:
                issues.append(f"Image is overexposed (average brightness {brightness:.0f})")
                suggestions.append("Avoid direct sunlight or flash glare on the leaves")

        if not plant_colors_present:
            issues.append(
                f"Few plant colors detected ({plant_ratio * 100:.1f}% green/brown pixels)"
            )
            suggestions.append("Frame the leaves, stem or flowers so they fill most of the photo")

        if sharpness is not None and sharpness < self.min_sharpness:
            issues.append("Image appears blurry")
            suggestions.append("Hold the camera steady and tap to focus on the affected area")

        result = PrecheckResult(
            is_valid=quality > 0.5,
            has_plant_content=plant_colors_present,
            quality=quality,
            issues=issues,
            suggestions=suggestions,
            width=width,
            height=height,
            brightness=round(brightness, 2),
            plant_color_ratio=round(plant_ratio, 4),
        )

        logger.debug(
            f"Precheck {width}x{height}: quality={quality:.2f}, "
            f"brightness={brightness:.0f}, plant_ratio={plant_ratio:.3f}"
        )
        return result

    @staticmethod
    def _rejected(issue: str, suggestion: str) -> PrecheckResult:
        return PrecheckResult(
            is_valid=False,
            has_plant_content=False,
            quality=0.0,
            issues=[issue],
            suggestions=[suggestion],
        )

    def _decode_image(self, image_data: bytes) -> np.ndarray | None:
        """
        Decode bytes into an RGB uint8 array, None if unreadable.

        Raises:
            Image.DecompressionBombError: If the pixel count exceeds Pillow's limit
        """
        if not image_data:
            return None
        try:
            with Image.open(io.BytesIO(image_data)) as image:
                image = image.convert("RGB")
                return np.asarray(image, dtype=np.uint8)
        except (UnidentifiedImageError, OSError, ValueError) as e:
            logger.info(f"Precheck could not decode image: {e}")
            return None

    def _sample_grid(self, rgb: np.ndarray) -> np.ndarray:
        """Regular pixel grid of at most MAX_SAMPLES_PER_AXIS per axis."""
        height, width = rgb.shape[:2]
        step_y = max(1, height // MAX_SAMPLES_PER_AXIS)
        step_x = max(1, width // MAX_SAMPLES_PER_AXIS)
        return rgb[::step_y, ::step_x].reshape(-1, 3).astype(np.int32)

    def _average_brightness(self, samples: np.ndarray) -> float:
        luma = 0.299 * samples[:, 0] + 0.587 * samples[:, 1] + 0.114 * samples[:, 2]
        return float(luma.mean()) if luma.size else 0.0

    def _plant_color_ratio(self, samples: np.ndarray) -> float:
        """Share of green (leaf) or brown (stem, bark, soil) pixels."""
        if not samples.size:
            return 0.0
        r, g, b = samples[:, 0], samples[:, 1], samples[:, 2]

        green = (g > r) & (g > b) & (g > 50)
        brown = (r > 100) & (g > 80) & (b < 100) & (np.abs(r - g) < 50)

        return float(np.count_nonzero(green | brown)) / samples.shape[0]

    def _sharpness(self, rgb: np.ndarray) -> float | None:
        """Variance of the Laplacian; low values mean a blurry photo."""
        try:
            gray = cv2.cvtColor(rgb, cv2.COLOR_RGB2GRAY)
            return float(cv2.Laplacian(gray, cv2.CV_64F).var())
        except cv2.error as e:
            logger.debug(f"Sharpness estimate failed: {e}")
            return None
