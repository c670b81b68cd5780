"""
Tests for the pixel kernels and mood grades.

These tests verify:
- Non-composite effects keep the input dimensions
- Inputs are never modified and results are deterministic
- Identity settings, boundary clamping and hand-computed values
"""

import numpy as np
import pytest

from imagestudio.services import effects
from imagestudio.services.catalog import (
    ChromaticAberrationParams,
    EffectId,
    GaussianBlurParams,
    IntensityParams,
    MotionBlurParams,
    NumericParam,
    PosterizeParams,
    RadialBlurParams,
    SolarizeParams,
    VignetteParams,
    list_effects,
)
from imagestudio.services.moods import MOOD_GRADES
from imagestudio.services.processor import apply_effect
from imagestudio.services.raster import RasterImage

NON_COMPOSITE = [d.id for d in list_effects() if d.family != "composite"]
NUMERIC_PARAMS = [
    (descriptor.id, name, param)
    for descriptor in list_effects()
    for name, param in descriptor.params.items()
    if isinstance(param, NumericParam)
]


def _row(values) -> RasterImage:
    """1-pixel-high image with grey levels ``values`` and full alpha."""
    pixels = np.zeros((1, len(values), 4), dtype=np.uint8)
    pixels[0, :, :3] = np.asarray(values, dtype=np.uint8)[:, None]
    pixels[0, :, 3] = 255
    return RasterImage(pixels)


class TestInvariants:
    @pytest.mark.parametrize("effect_id", NON_COMPOSITE, ids=lambda e: e.value)
    def test_dimensions_are_preserved(self, gradient_image, effect_id):
        result = apply_effect(gradient_image, effect_id)
        assert result.image.pixels.shape == gradient_image.pixels.shape

    @pytest.mark.parametrize("effect_id", list(EffectId), ids=lambda e: e.value)
    def test_input_is_not_modified(self, noisy_image, effect_id):
        before = noisy_image.pixels.copy()
        result = apply_effect(noisy_image, effect_id)
        assert np.array_equal(noisy_image.pixels, before)
        assert result.image.pixels is not noisy_image.pixels

    @pytest.mark.parametrize("effect_id", list(EffectId), ids=lambda e: e.value)
    def test_deterministic(self, gradient_image, effect_id):
        first = apply_effect(gradient_image, effect_id).image
        second = apply_effect(gradient_image, effect_id).image
        assert np.array_equal(first.pixels, second.pixels)

    @pytest.mark.parametrize("effect_id", NON_COMPOSITE, ids=lambda e: e.value)
    def test_alpha_is_untouched(self, gradient_image, effect_id):
        result = apply_effect(gradient_image, effect_id)
        assert np.array_equal(result.image.pixels[:, :, 3], gradient_image.pixels[:, :, 3])

    @pytest.mark.parametrize(
        "effect_id, name, param",
        NUMERIC_PARAMS,
        ids=[f"{effect_id.value}.{name}" for effect_id, name, _ in NUMERIC_PARAMS],
    )
    @pytest.mark.parametrize("side", ["below", "above"])
    def test_out_of_range_option_matches_boundary(self, noisy_image, effect_id, name, param, side):
        if side == "below":
            outside, boundary = param.min - 1000, param.min
        else:
            outside, boundary = param.max + 1000, param.max
        clamped = apply_effect(noisy_image, effect_id, {name: outside}).image
        at_boundary = apply_effect(noisy_image, effect_id, {name: boundary}).image
        assert np.array_equal(clamped.pixels, at_boundary.pixels)


class TestIdentitySettings:
    @pytest.mark.parametrize(
        "effect_id, options",
        [
            ("posterize", {"levels": 256}),
            ("solarize", {"threshold": 255}),
            ("sepia", {"intensity": 0}),
            ("invert", {"intensity": 0}),
            ("vignette", {"strength": 0}),
            ("motion-blur", {"intensity": 0}),
            ("gaussian-blur", {"intensity": 0}),
            ("chromatic-aberration", {"strength": 0}),
            ("radial-blur", {"intensity": 1}),
        ],
    )
    def test_identity(self, noisy_image, effect_id, options):
        result = apply_effect(noisy_image, effect_id, options).image
        assert np.array_equal(result.pixels, noisy_image.pixels)


class TestColorKernels:
    def test_black_through_sepia_stays_black(self, black_image):
        result = effects.sepia(black_image, IntensityParams(intensity=1.0))
        assert np.all(result.pixels[:, :, :3] == 0)
        assert np.all(result.pixels[:, :, 3] == 255)

    def test_white_through_sepia_saturates(self, white_image):
        result = effects.sepia(white_image, IntensityParams(intensity=1.0))
        # Red and green sums exceed 255; blue is 255 * 0.937.
        assert tuple(result.pixels[0, 0, :3]) == (255, 255, 239)

    def test_white_through_solarize_turns_black(self, white_image):
        result = effects.solarize(white_image, SolarizeParams(threshold=128))
        assert np.all(result.pixels[:, :, :3] == 0)

    def test_solarize_threshold_is_exclusive(self):
        result = effects.solarize(_row([128, 129]), SolarizeParams(threshold=128))
        assert result.pixels[0, :, 0].tolist() == [128, 126]

    def test_posterize_two_levels(self):
        result = effects.posterize(_row([0, 127, 128, 255]), PosterizeParams(levels=2))
        assert result.pixels[0, :, 0].tolist() == [0, 0, 255, 255]

    def test_invert_full(self):
        result = effects.invert(_row([0, 100, 255]), IntensityParams(intensity=1.0))
        assert result.pixels[0, :, 0].tolist() == [255, 155, 0]

    def test_invert_half_rounds_half_to_even(self):
        result = effects.invert(_row([0, 255]), IntensityParams(intensity=0.5))
        assert result.pixels[0, :, 0].tolist() == [128, 128]


class TestNeighborhoodKernels:
    def test_box_blur_excludes_out_of_bounds(self):
        result = effects.gaussian_blur(_row([0, 90, 180]), GaussianBlurParams(intensity=1))
        assert result.pixels[0, :, 0].tolist() == [45, 90, 135]

    def test_horizontal_motion_blur(self):
        result = effects.motion_blur(_row([0, 90, 180]), MotionBlurParams(intensity=1, direction=0))
        assert result.pixels[0, :, 0].tolist() == [45, 90, 135]

    def test_vertical_motion_blur_leaves_single_row(self):
        image = _row([0, 90, 180])
        result = effects.motion_blur(image, MotionBlurParams(intensity=5, direction=90))
        assert np.array_equal(result.pixels, image.pixels)

    def test_box_blur_flat_image_is_unchanged(self, white_image):
        result = effects.gaussian_blur(white_image, GaussianBlurParams(intensity=7))
        assert np.array_equal(result.pixels, white_image.pixels)

    def test_chromatic_aberration_shifts_red_and_blue(self):
        pixels = np.zeros((3, 3, 4), dtype=np.uint8)
        pixels[:, :, 3] = 255
        pixels[1, 1, :3] = (200, 100, 50)
        image = RasterImage(pixels)

        result = effects.chromatic_aberration(image, ChromaticAberrationParams(offset=1, strength=1.0))
        out = result.pixels
        # Red at (0, 0) reads (1, 1); blue at (2, 2) reads (1, 1).
        assert out[0, 0, 0] == 200
        assert out[2, 2, 2] == 50
        assert out[1, 1, 1] == 100
        assert out[1, 1, 0] == 0
        assert out[1, 1, 2] == 0

    def test_chromatic_aberration_offset_larger_than_image(self):
        image = _row([10, 20, 30])
        result = effects.chromatic_aberration(image, ChromaticAberrationParams(offset=5, strength=1.0))
        assert np.array_equal(result.pixels, image.pixels)

    def test_vignette_darkens_corners_only(self, white_image):
        result = effects.vignette(white_image, VignetteParams(strength=0.8, size=0.5))
        assert tuple(result.pixels[50, 50, :3]) == (255, 255, 255)
        assert tuple(result.pixels[0, 0, :3]) == (0, 0, 0)

    def test_vignette_zero_size(self, white_image):
        result = effects.vignette(white_image, VignetteParams(strength=1.0, size=0.0))
        assert tuple(result.pixels[50, 50, :3]) == (255, 255, 255)
        assert tuple(result.pixels[0, 0, :3]) == (0, 0, 0)

    def test_radial_blur_keeps_center(self, noisy_image):
        result = effects.radial_blur(noisy_image, RadialBlurParams(intensity=30, center_x=0.5, center_y=0.5))
        assert np.array_equal(result.pixels[15, 20], noisy_image.pixels[15, 20])
        assert not np.array_equal(result.pixels, noisy_image.pixels)

    def test_radial_blur_flat_image_is_unchanged(self, white_image):
        result = effects.radial_blur(white_image, RadialBlurParams(intensity=30, center_x=0.2, center_y=0.8))
        assert np.array_equal(result.pixels, white_image.pixels)


class TestMoods:
    def test_every_mood_has_a_grade(self):
        moods = {d.id for d in list_effects() if d.category == "mood"}
        assert set(MOOD_GRADES) == moods

    def test_moods_are_distinct(self, gradient_image):
        rendered = {
            mood.value: apply_effect(gradient_image, mood, {"intensity": 1.0}).image.pixels.tobytes()
            for mood in MOOD_GRADES
        }
        assert len(set(rendered.values())) == len(rendered)

    def test_noir_is_greyscale(self, gradient_image):
        result = apply_effect(gradient_image, "noir", {"intensity": 1.0}).image.pixels
        assert np.array_equal(result[:, :, 0], result[:, :, 1])
        assert np.array_equal(result[:, :, 1], result[:, :, 2])

    def test_lower_intensity_stays_closer_to_source(self, gradient_image):
        source = gradient_image.pixels[:, :, :3].astype(int)
        weak = apply_effect(gradient_image, "golden-hour", {"intensity": 0.1}).image.pixels[:, :, :3]
        strong = apply_effect(gradient_image, "golden-hour", {"intensity": 1.0}).image.pixels[:, :, :3]
        assert np.abs(weak - source).sum() < np.abs(strong - source).sum()
