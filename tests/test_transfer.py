"""
Test color transfer strategies and the transfer engine.
"""
import numpy as np
import pytest

from jeweltone.services.colors.colorspace import (
    lab_distance, lab_to_srgb, luminance, rgb_to_hsv, srgb_to_lab,
)
from jeweltone.services.colors.palettes import Finish, get_anchor_arrays
from jeweltone.services.detection.classifier import DetectionResult, detect_finish
from jeweltone.services.transfer.engine import ColorTransferEngine, transform
from jeweltone.services.transfer.strategies import (
    SMOOTH_MIN_EDGE, HsvRemapStrategy, LabAnchorStrategy, get_strategy, position_jitter,
)

from synthetic import GOLD_SWATCH, ROSE_SWATCH, solid_image


def full_mask_detection(pixels, finish=Finish.YELLOW, reflection=0):
    """Detection result covering every pixel with a fixed reflection strength."""
    height, width = pixels.shape[:2]
    return DetectionResult(
        detected_color=finish,
        metal_mask=np.full((height, width), 255, dtype=np.uint8),
        reflection_map=np.full((height, width), reflection, dtype=np.uint8),
    )


class TestLabAnchorInterpolation:
    """Test anchor interpolation in Lab space."""

    def test_exact_anchor_match_uses_its_target(self):
        sources, targets = get_anchor_arrays(Finish.YELLOW, Finish.ROSE)
        lab = np.array([[76.0, 7.0, 40.0]])

        result = LabAnchorStrategy.interpolate(lab, sources, targets, np.array([0]))

        np.testing.assert_allclose(result[0], [70.0, 18.0, 22.0])

    def test_pixel_near_anchor_maps_near_its_target(self):
        """A pixel close to a source anchor lands close to that anchor's target."""
        sources, targets = get_anchor_arrays(Finish.YELLOW, Finish.ROSE)
        lab = np.array([[76.5, 7.2, 40.3]])

        result = LabAnchorStrategy.interpolate(lab, sources, targets, np.array([0]))

        assert lab_distance(result[0], [70.0, 18.0, 22.0]) <= 5.0

    def test_full_reflection_keeps_lightness(self):
        sources, targets = get_anchor_arrays(Finish.ROSE, Finish.YELLOW)
        lab = np.array([[72.0, 19.0, 16.0]])

        result = LabAnchorStrategy.interpolate(lab, sources, targets, np.array([255]))

        assert result[0, 0] == pytest.approx(72.0)
        assert result[0, 2] > lab[0, 2]

    def test_weights_stay_between_anchor_targets(self):
        sources, targets = get_anchor_arrays(Finish.YELLOW, Finish.ROSE)
        lab = srgb_to_lab(np.array([[212, 175, 55], [180, 140, 40], [240, 215, 120]]))

        result = LabAnchorStrategy.interpolate(lab, sources, targets, np.zeros(3))

        assert np.all(result >= targets.min(axis=0) - 1e-9)
        assert np.all(result <= targets.max(axis=0) + 1e-9)


class TestColorTransferEngine:
    """Test the engine over whole buffers."""

    def test_gold_swatch_to_rose(self, swatch_pixels):
        """Yellow to rose raises a*, lowers b* and keeps luminance in bounds."""
        detection = detect_finish(swatch_pixels)

        result = ColorTransferEngine("lab_anchor").transform(swatch_pixels, detection, Finish.ROSE)

        before = srgb_to_lab(swatch_pixels[0, 0])
        after = srgb_to_lab(result[0, 0])
        ratio = luminance(result[0, 0]) / luminance(swatch_pixels[0, 0])

        assert after[1] > before[1] + 10
        assert after[2] < before[2] - 20
        assert 0.7 <= ratio <= 1.3
        assert np.all(result == result[0, 0])

    def test_rose_swatch_to_yellow(self):
        pixels = solid_image(ROSE_SWATCH)
        detection = detect_finish(pixels)

        result = transform(pixels, detection, "yellow")

        before = srgb_to_lab(pixels[0, 0])
        after = srgb_to_lab(result[0, 0])
        assert after[2] > before[2]
        assert after[1] < before[1]

    def test_anchor_swatch_round_trip(self):
        """Yellow to rose and back lands within 5 of a swatch at the standard anchor."""
        pixels = solid_image(tuple(int(v) for v in lab_to_srgb([76.0, 7.0, 40.0])))
        engine = ColorTransferEngine("lab_anchor")

        detection = detect_finish(pixels)
        rose = engine.transform(pixels, detection, Finish.ROSE)
        rose_detection = detect_finish(rose)
        back = engine.transform(rose, rose_detection, Finish.YELLOW)

        assert detection.detected_color == Finish.YELLOW
        assert rose_detection.detected_color == Finish.ROSE
        assert lab_distance(srgb_to_lab(back[0, 0]), srgb_to_lab(pixels[0, 0])) <= 5.0

    @pytest.mark.parametrize("strategy", ["lab_anchor", "hsv"])
    def test_unmasked_pixels_are_unchanged(self, half_swatch_pixels, strategy):
        detection = detect_finish(half_swatch_pixels)

        result = ColorTransferEngine(strategy).transform(half_swatch_pixels, detection, Finish.ROSE)

        np.testing.assert_array_equal(result[8:], half_swatch_pixels[8:])
        assert not np.array_equal(result[:8], half_swatch_pixels[:8])

    def test_input_buffer_is_not_modified(self, swatch_pixels):
        original = swatch_pixels.copy()
        transform(swatch_pixels, detect_finish(swatch_pixels), Finish.ROSE)
        np.testing.assert_array_equal(swatch_pixels, original)

    @pytest.mark.parametrize("strategy", ["lab_anchor", "hsv"])
    def test_alpha_is_preserved(self, strategy):
        pixels = solid_image(GOLD_SWATCH, alpha=255)
        pixels[..., 3] = np.arange(16, dtype=np.uint8)[:, None] * 10
        detection = full_mask_detection(pixels)

        result = ColorTransferEngine(strategy).transform(pixels, detection, Finish.ROSE)

        np.testing.assert_array_equal(result[..., 3], pixels[..., 3])

    def test_same_finish_is_identity_for_lab_anchor(self, swatch_pixels):
        detection = full_mask_detection(swatch_pixels, Finish.YELLOW)
        result = ColorTransferEngine("lab_anchor").transform(swatch_pixels, detection, Finish.YELLOW)
        np.testing.assert_array_equal(result, swatch_pixels)

    def test_empty_mask_returns_copy(self, swatch_pixels):
        detection = DetectionResult(
            detected_color=Finish.YELLOW,
            metal_mask=np.zeros((16, 16), dtype=np.uint8),
            reflection_map=np.zeros((16, 16), dtype=np.uint8),
        )
        result = transform(swatch_pixels, detection, Finish.ROSE)

        np.testing.assert_array_equal(result, swatch_pixels)
        assert result is not swatch_pixels

    def test_mask_shape_mismatch(self, swatch_pixels):
        detection = full_mask_detection(solid_image(GOLD_SWATCH, size=(8, 8)))
        with pytest.raises(ValueError, match="dimensions must match"):
            transform(swatch_pixels, detection, Finish.ROSE)

    def test_unknown_strategy(self):
        with pytest.raises(ValueError, match="Unknown transfer strategy"):
            ColorTransferEngine("watercolor")

    def test_unknown_target(self, swatch_pixels):
        with pytest.raises(ValueError):
            transform(swatch_pixels, full_mask_detection(swatch_pixels), "silver")


class TestHsvRemapStrategy:
    """Test the direct HSV strategy."""

    def test_position_jitter_is_deterministic_and_bounded(self):
        positions = np.arange(10000)

        first = position_jitter(positions)
        second = position_jitter(positions)

        np.testing.assert_array_equal(first, second)
        assert first.min() >= -2.5
        assert first.max() < 2.5

    def test_deterministic(self, swatch_pixels):
        detection = full_mask_detection(swatch_pixels)
        engine = ColorTransferEngine(HsvRemapStrategy())

        first = engine.transform(swatch_pixels, detection, Finish.ROSE)
        second = engine.transform(swatch_pixels, detection, Finish.ROSE)

        np.testing.assert_array_equal(first, second)

    def test_gold_to_rose_hue(self, swatch_pixels):
        detection = full_mask_detection(swatch_pixels)
        result = ColorTransferEngine("hsv").transform(swatch_pixels, detection, Finish.ROSE)

        hue = rgb_to_hsv(result.reshape(-1, 3))[:, 0]
        ratio = luminance(result.reshape(-1, 3)) / luminance(swatch_pixels.reshape(-1, 3))

        assert np.all((hue <= 15.0) | (hue >= 345.0))
        assert np.all((ratio >= 0.7 - 0.02) & (ratio <= 1.3 + 0.02))

    def test_same_finish_blends_half_way(self, swatch_pixels):
        strategy = get_strategy("hsv")
        rgb = swatch_pixels.reshape(-1, 3)
        lab = srgb_to_lab(rgb)
        reflection = np.zeros(len(rgb), dtype=np.uint8)
        positions = np.arange(len(rgb))

        full = strategy.transfer(rgb, lab, Finish.ROSE, Finish.YELLOW, reflection, positions)
        half = strategy.transfer(rgb, lab, Finish.YELLOW, Finish.YELLOW, reflection, positions)

        expected = np.floor(rgb.astype(np.float64) * 0.5 + full.astype(np.float64) * 0.5 + 0.5)
        np.testing.assert_array_equal(half, expected.astype(np.uint8))


class TestLargeImageSmoothing:
    """Test the HSV strategy's smoothing pass on large images."""

    BRIGHT_GOLD = (230, 190, 70)

    def spot_image(self, width):
        pixels = solid_image(GOLD_SWATCH, size=(3, width))
        pixels[1, 500] = self.BRIGHT_GOLD
        return pixels

    def test_skipped_at_threshold(self):
        pixels = self.spot_image(SMOOTH_MIN_EDGE)
        mask = np.full(pixels.shape[:2], 255, dtype=np.uint8)

        np.testing.assert_array_equal(HsvRemapStrategy().refine(pixels, mask), pixels)

    def test_blends_with_neighborhood_mean(self):
        pixels = self.spot_image(SMOOTH_MIN_EDGE + 1)
        mask = np.full(pixels.shape[:2], 255, dtype=np.uint8)

        result = HsvRemapStrategy().refine(pixels, mask)

        # Red channel mean around the spot is (8 * 212 + 230) / 9 = 214
        assert result[1, 500, 0] == 225
        assert result[1, 499, 0] == 213
        assert result[1, 498, 0] == 212
        np.testing.assert_array_equal(result[0], pixels[0])
        np.testing.assert_array_equal(result[2], pixels[2])

    def test_respects_metal_mask(self):
        pixels = self.spot_image(SMOOTH_MIN_EDGE + 1)
        mask = np.full(pixels.shape[:2], 255, dtype=np.uint8)
        mask[1, 500] = 0

        result = HsvRemapStrategy().refine(pixels, mask)

        assert result[1, 500].tolist() == list(self.BRIGHT_GOLD)
        assert result[1, 499, 0] == 213

    def test_lab_anchor_has_no_smoothing(self):
        pixels = self.spot_image(SMOOTH_MIN_EDGE + 1)
        mask = np.full(pixels.shape[:2], 255, dtype=np.uint8)

        assert LabAnchorStrategy().refine(pixels, mask) is pixels

    @pytest.mark.parametrize("width,smoothed", [(SMOOTH_MIN_EDGE - 1, False), (SMOOTH_MIN_EDGE + 1, True)])
    def test_engine_applies_smoothing_to_large_images(self, width, smoothed):
        pixels = solid_image(GOLD_SWATCH, size=(4, width))
        pixels[:, ::2] = self.BRIGHT_GOLD
        detection = full_mask_detection(pixels)
        strategy = HsvRemapStrategy()

        rgb = pixels.reshape(-1, 3)
        raw = strategy.transfer(
            rgb, srgb_to_lab(rgb), Finish.YELLOW, Finish.ROSE,
            np.zeros(len(rgb), dtype=np.uint8), np.arange(len(rgb)),
        ).reshape(pixels.shape)

        result = ColorTransferEngine(strategy).transform(pixels, detection, Finish.ROSE)

        if smoothed:
            np.testing.assert_array_equal(result, strategy.refine(raw, detection.metal_mask))
            assert not np.array_equal(result, raw)
        else:
            np.testing.assert_array_equal(result, raw)
