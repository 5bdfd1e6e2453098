"""
Test metal finish classification.
"""
import numpy as np
import pytest

from jeweltone.errors import ContextUnavailable, NoMetalDetected
from jeweltone.services.colors.colorspace import srgb_to_lab
from jeweltone.services.colors.palettes import (
    Finish, ROSE_TO_YELLOW, YELLOW_TO_ROSE, get_anchor_arrays,
)
from jeweltone.services.detection.classifier import (
    assign_clusters, assign_pixels, classify_center, detect_finish, initial_centers,
    kmeans_lab, kmeans_step, stride_sample,
)

from synthetic import GOLD_SWATCH, MID_GRAY, ROSE_SWATCH, gray_image, solid_image


class TestClassifyCenter:
    """Test scoring of single cluster centers."""

    def test_gold_swatch_is_yellow(self):
        center = srgb_to_lab(GOLD_SWATCH)
        result = classify_center(center, member_count=10)

        assert result.finish == Finish.YELLOW
        assert result.is_metal
        assert result.yellow_distance < result.rose_distance
        assert result.confidence == pytest.approx(0.655, abs=0.02)
        assert result.member_count == 10

    def test_rose_swatch_is_rose(self):
        result = classify_center(srgb_to_lab(ROSE_SWATCH))

        assert result.finish == Finish.ROSE
        assert result.confidence > 0.5

    def test_neutral_gray_is_not_metal(self):
        """Mid-gray is within 30 of a rose reference but has no chroma."""
        result = classify_center(srgb_to_lab(MID_GRAY))

        assert result.rose_distance < 30
        assert result.finish is None
        assert not result.is_metal

    def test_far_center_is_not_metal(self):
        """Saturated blue is far from both reference sets."""
        result = classify_center(srgb_to_lab([20, 40, 220]))

        assert result.yellow_distance > 30
        assert result.rose_distance > 30
        assert result.finish is None

    def test_exact_reference_has_full_confidence(self):
        result = classify_center(np.array([76.0, 7.0, 40.0]))

        assert result.finish == Finish.YELLOW
        assert result.yellow_distance == 0.0
        assert result.confidence == pytest.approx(1.0)


class TestKMeans:
    """Test the deterministic k-means helpers."""

    def test_stride_sample_caps_size(self):
        points = np.arange(30).reshape(10, 3)

        assert len(stride_sample(points, 100)) == 10
        assert len(stride_sample(points, 4)) <= 4
        np.testing.assert_array_equal(stride_sample(points, 5), points[::2])

    def test_initial_centers_are_evenly_spaced(self):
        points = np.arange(36, dtype=np.float64).reshape(12, 3)
        centers = initial_centers(points, 3)

        np.testing.assert_array_equal(centers, points[[0, 4, 8]])

    def test_empty_cluster_keeps_previous_center(self):
        points = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]])
        centers = np.array([[0.0, 0.0, 0.0], [100.0, 100.0, 100.0]])

        new_centers, labels = kmeans_step(points, centers)

        np.testing.assert_array_equal(labels, [0, 0, 0])
        np.testing.assert_allclose(new_centers[0], [1 / 3, 1 / 3, 0.0])
        np.testing.assert_array_equal(new_centers[1], centers[1])

    def test_kmeans_separates_two_groups(self):
        low = np.zeros((20, 3))
        high = np.full((20, 3), 50.0)
        points = np.vstack([low, high])

        centers = kmeans_lab(points, k=2, iterations=10)

        assert sorted(centers[:, 0].tolist()) == [0.0, 50.0]

    def test_chunked_assignment_matches_whole_image(self):
        rng = np.random.default_rng(7)
        rgb = rng.integers(0, 256, size=(1000, 3), dtype=np.uint8)
        centers = srgb_to_lab(rgb[::167])

        labels = assign_pixels(rgb, centers, chunk_rows=64)

        assert labels.dtype == np.uint8
        np.testing.assert_array_equal(labels, assign_clusters(srgb_to_lab(rgb), centers))


class TestDetectFinish:
    """Test the full detection stage."""

    def test_solid_gold_swatch(self, swatch_pixels):
        """Every pixel of a uniform gold swatch is metal."""
        detection = detect_finish(swatch_pixels)

        assert detection.detected_color == Finish.YELLOW
        assert detection.mask_area_ratio == 1.0
        assert detection.metal_mask.dtype == np.uint8
        assert set(np.unique(detection.metal_mask)) == {255}
        # Luminance ~172.4 is in the 170-200 band
        assert set(np.unique(detection.reflection_map)) == {200}

    def test_rose_swatch(self):
        detection = detect_finish(solid_image(ROSE_SWATCH))
        assert detection.detected_color == Finish.ROSE

    def test_gray_image_has_no_metal(self):
        with pytest.raises(NoMetalDetected):
            detect_finish(gray_image())

    def test_half_swatch_mask(self, half_swatch_pixels):
        """Only the gold half is masked; gray pixels stay out."""
        detection = detect_finish(half_swatch_pixels)

        assert detection.detected_color == Finish.YELLOW
        assert detection.mask_area_ratio == pytest.approx(0.5)
        assert np.all(detection.metal_mask[:8] == 255)
        assert np.all(detection.metal_mask[8:] == 0)
        assert np.all(detection.reflection_map[8:] == 0)

    def test_detection_is_deterministic(self, half_swatch_pixels):
        first = detect_finish(half_swatch_pixels)
        second = detect_finish(half_swatch_pixels)

        assert first.detected_color == second.detected_color
        np.testing.assert_array_equal(first.metal_mask, second.metal_mask)
        np.testing.assert_array_equal(first.reflection_map, second.reflection_map)

    def test_outputs_are_read_only(self, swatch_pixels):
        detection = detect_finish(swatch_pixels)

        with pytest.raises(ValueError):
            detection.metal_mask[0, 0] = 0
        with pytest.raises(ValueError):
            detection.reflection_map[0, 0] = 0

    def test_alpha_channel_is_ignored(self):
        rgba = solid_image(GOLD_SWATCH, alpha=0)
        assert detect_finish(rgba).detected_color == Finish.YELLOW

    def test_invalid_buffer(self):
        with pytest.raises(ContextUnavailable):
            detect_finish(np.zeros((4, 4), dtype=np.uint8))


class TestPalettes:
    """Test the anchor tables."""

    def test_directions_are_reverses(self):
        for forward, backward in zip(YELLOW_TO_ROSE, ROSE_TO_YELLOW):
            assert forward.source == backward.target
            assert forward.target == backward.source

    def test_same_finish_has_no_anchors(self):
        with pytest.raises(ValueError):
            get_anchor_arrays(Finish.YELLOW, Finish.YELLOW)
        with pytest.raises(ValueError):
            get_anchor_arrays("rose", "rose")

    def test_opposite(self):
        assert Finish.YELLOW.opposite == Finish.ROSE
        assert Finish("rose").opposite == Finish.YELLOW

    def test_cluster_count_out_of_range(self, swatch_pixels):
        with pytest.raises(ValueError, match="Cluster count"):
            detect_finish(swatch_pixels, k=1)
