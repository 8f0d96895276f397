"""Cusp finder, gamut intersection, mapping methods and the gamut mapper."""

import math

import numpy as np
import pytest
from numpy.testing import assert_allclose

from prism_convert import convert
from prism_errors import MissingSpaceError, MissingTransformError
from prism_gamut import (
    compute_max_saturation_oklc,
    find_cusp_oklch,
    find_gamut_intersection_oklch,
    gamut_map_oklch,
    get_gamut_lms_to_rgb,
    map_to_adaptive_cusp_l,
    map_to_adaptive_gray,
    map_to_cusp_l,
    map_to_gray,
    map_to_l,
)
from prism_kernels import is_rgb_in_gamut
from prism_matrices import exact_max_saturation
from prism_spaces import (
    OKLCH,
    XYZ,
    A98RGBGamut,
    ColorGamut,
    DisplayP3,
    DisplayP3Gamut,
    DisplayP3Linear,
    OKLab,
    ProPhotoRGB,
    Rec2020Gamut,
    sRGB,
    sRGBGamut,
    sRGBLinear,
)

MAPPINGS = [map_to_l, map_to_gray, map_to_cusp_l, map_to_adaptive_gray, map_to_adaptive_cusp_l]
GAMUTS = [sRGBGamut, DisplayP3Gamut, Rec2020Gamut, A98RGBGamut]


def _direction(hue):
    h = math.radians(hue)
    return math.cos(h), math.sin(h)


def _sweep_hues(gamut):
    """0.05° steps for sRGB; 0.5° plus a fine comb across the primaries elsewhere."""
    if gamut is sRGBGamut:
        return np.arange(0.0, 360.0, 0.05)
    hues = [np.arange(0.0, 360.0, 0.5)]
    for primary in np.eye(3):
        center = convert(primary, gamut.linear_space, OKLCH)[2]
        hues.append(center + np.arange(-0.5, 0.5001, 0.05))
    return np.concatenate(hues)


class TestCusp:
    @pytest.mark.parametrize("gamut", GAMUTS, ids=lambda g: g.id)
    @pytest.mark.parametrize("hue", [0.0, 29.0, 90.0, 142.0, 200.0, 264.0, 330.0])
    def test_cusp_touches_both_bounds(self, gamut, hue):
        """At the cusp the limiting channel is 0 and the brightest is 1."""
        a, b = _direction(hue)
        l, c = find_cusp_oklch(a, b, gamut)
        rgb = convert([l, c, hue], OKLCH, gamut.linear_space)
        assert max(rgb) == pytest.approx(1.0, abs=1e-5)
        assert min(rgb) == pytest.approx(0.0, abs=1e-5)

    def test_srgb_red_is_a_cusp(self):
        lab = convert([1.0, 0.0, 0.0], sRGB, OKLab)
        chroma = math.hypot(lab[1], lab[2])
        cusp = find_cusp_oklch(lab[1] / chroma, lab[2] / chroma, sRGBGamut)
        assert_allclose(cusp, [lab[0], chroma], atol=1e-5)

    def test_cusp_saturation_is_exact(self):
        a, b = _direction(75.0)
        lms_to_rgb = get_gamut_lms_to_rgb(sRGBGamut)
        l, c = find_cusp_oklch(a, b, sRGBGamut)
        assert c / l == pytest.approx(exact_max_saturation(a, b, lms_to_rgb), abs=1e-6)
        assert c / l == pytest.approx(
            compute_max_saturation_oklc(a, b, lms_to_rgb, sRGBGamut.coefficients))

    def test_out_buffer(self):
        out = np.zeros(2)
        assert find_cusp_oklch(1.0, 0.0, sRGBGamut, out) is out

    def test_wider_gamut_has_more_chroma(self):
        a, b = _direction(142.0)
        assert find_cusp_oklch(a, b, Rec2020Gamut)[1] > find_cusp_oklch(a, b, sRGBGamut)[1]


class TestIntersection:
    @pytest.mark.parametrize("lightness,chroma,hue", [
        (0.2, 0.3, 30.0),   # lower half
        (0.9, 0.3, 145.0),  # upper half
        (0.6, 0.4, 264.0),
    ])
    def test_intersection_lies_on_boundary(self, lightness, chroma, hue):
        a, b = _direction(hue)
        l0 = 0.5
        t = find_gamut_intersection_oklch(a, b, lightness, chroma, l0, sRGBGamut)
        assert 0.0 < t < 1.0
        point = [l0 * (1 - t) + lightness * t, chroma * t, hue]
        rgb = convert(point, OKLCH, sRGBLinear)
        assert is_rgb_in_gamut(rgb, 1e-5)
        assert min(rgb) < 1e-5 or max(rgb) > 1.0 - 1e-5

    def test_more_steps_do_not_move_converged_point(self):
        a, b = _direction(145.0)
        t2 = find_gamut_intersection_oklch(a, b, 0.98, 0.3, 0.6, sRGBGamut)
        t5 = find_gamut_intersection_oklch(a, b, 0.98, 0.3, 0.6, sRGBGamut, steps=5)
        assert t2 == pytest.approx(t5, abs=1e-7)


class TestMappingMethods:
    def test_simple_anchors(self):
        oklch, cusp = (0.7, 0.2, 40.0), (0.6, 0.25)
        assert map_to_l(oklch, cusp) == 0.7
        assert map_to_gray(oklch, cusp) == 0.5
        assert map_to_cusp_l(oklch, cusp) == 0.6

    @pytest.mark.parametrize("method", [map_to_adaptive_gray, map_to_adaptive_cusp_l])
    @pytest.mark.parametrize("lightness", [0.1, 0.45, 0.8])
    def test_adaptive_without_chroma_keeps_lightness(self, method, lightness):
        assert method((lightness, 0.0, 0.0), (0.6, 0.2)) == pytest.approx(lightness)

    def test_adaptive_gray_moves_toward_mid_gray(self):
        l0 = map_to_adaptive_gray((0.9, 0.3, 0.0), (0.6, 0.2))
        assert 0.5 < l0 < 0.9
        l0 = map_to_adaptive_gray((0.1, 0.3, 0.0), (0.6, 0.2))
        assert 0.1 < l0 < 0.5

    def test_adaptive_cusp_moves_toward_cusp(self):
        l0 = map_to_adaptive_cusp_l((0.9, 0.3, 0.0), (0.6, 0.2))
        assert 0.6 < l0 < 0.9
        stronger = map_to_adaptive_cusp_l((0.9, 0.3, 0.0), (0.6, 0.2), alpha=0.5)
        assert stronger < l0


class TestGamutMap:
    @pytest.mark.parametrize("gamut", GAMUTS, ids=lambda g: g.id)
    @pytest.mark.parametrize("method", MAPPINGS, ids=lambda m: m.__name__)
    def test_result_inside_gamut_and_idempotent(self, gamut, method, out_of_gamut_oklch):
        for oklch in out_of_gamut_oklch + [(0.6, 0.5, 145.0), (0.45, 0.6, 264.0)]:
            mapped = gamut_map_oklch(oklch, gamut, OKLCH, mapping=method)
            assert mapped[2] == oklch[2]
            assert mapped[1] <= oklch[1]
            rgb = convert(mapped, OKLCH, gamut.linear_space)
            assert is_rgb_in_gamut(rgb), (oklch, rgb)
            again = gamut_map_oklch(mapped, gamut, OKLCH, mapping=method)
            assert_allclose(again, mapped, rtol=0, atol=1e-12)

    @pytest.mark.parametrize("lightness", [0.45, 0.5])
    @pytest.mark.parametrize("method", MAPPINGS, ids=lambda m: m.__name__)
    def test_blue_corner_stays_inside(self, method, lightness):
        """Past the blue cusp the upper edge bulges beyond the zero-red ray."""
        for hue in np.arange(263.0, 265.0001, 0.02):
            mapped = gamut_map_oklch([lightness, 0.6, hue], sRGBGamut, OKLCH, mapping=method)
            rgb = convert(mapped, OKLCH, sRGBLinear)
            assert is_rgb_in_gamut(rgb), (hue, rgb)

    @pytest.mark.parametrize("lightness", [0.45, 0.5])
    @pytest.mark.parametrize("gamut", GAMUTS, ids=lambda g: g.id)
    def test_hue_sweep_stays_inside(self, gamut, lightness):
        failures = []
        for hue in _sweep_hues(gamut):
            for method in MAPPINGS:
                mapped = gamut_map_oklch([lightness, 0.6, hue], gamut, OKLCH, mapping=method)
                rgb = convert(mapped, OKLCH, gamut.linear_space)
                if not is_rgb_in_gamut(rgb):
                    failures.append((round(float(hue), 3), method.__name__, tuple(rgb)))
        assert not failures, failures[:10]

    def test_map_to_l_keeps_lightness(self, out_of_gamut_oklch):
        for oklch in out_of_gamut_oklch:
            mapped = gamut_map_oklch(oklch, sRGBGamut, OKLCH, mapping=map_to_l)
            assert mapped[0] == pytest.approx(oklch[0], abs=1e-12)

    def test_dark_saturated_red(self):
        mapped = gamut_map_oklch([0.15, 0.425, 30.0], sRGBGamut, OKLCH)
        assert mapped[2] == 30.0
        assert 0.0 < mapped[1] < 0.425
        assert is_rgb_in_gamut(convert(mapped, OKLCH, sRGBLinear))

    def test_default_target_is_clamped_srgb(self, out_of_gamut_oklch):
        for oklch in out_of_gamut_oklch:
            rgb = gamut_map_oklch(oklch)
            assert np.all(rgb >= 0.0) and np.all(rgb <= 1.0)

    def test_in_gamut_passes_through(self):
        oklch = [0.6, 0.05, 210.0]
        assert_allclose(gamut_map_oklch(oklch, sRGBGamut, OKLCH), oklch, rtol=0, atol=0)
        assert_allclose(gamut_map_oklch(oklch), convert(oklch, OKLCH, sRGB), atol=1e-12)
        assert_allclose(gamut_map_oklch(oklch, sRGBGamut, sRGBLinear),
                        convert(oklch, OKLCH, sRGBLinear), atol=1e-12)

    def test_wide_gamut_color_kept_in_p3(self):
        """A color inside P3 but outside sRGB is only changed by the sRGB mapper."""
        oklch = convert([0.0, 1.0, 0.0], DisplayP3Linear, OKLCH)
        oklch = np.array([oklch[0], oklch[1] * 0.95, oklch[2]])
        assert not is_rgb_in_gamut(convert(oklch, OKLCH, sRGBLinear))
        assert_allclose(gamut_map_oklch(oklch, DisplayP3Gamut, OKLCH), oklch, atol=0)
        assert gamut_map_oklch(oklch, sRGBGamut, OKLCH)[1] < oklch[1]

    @pytest.mark.parametrize("oklch,expected", [
        ([1.2, 0.1, 30.0], [1.0, 0.0, 30.0]),
        ([-0.1, 0.05, 100.0], [0.0, 0.0, 100.0]),
    ])
    def test_lightness_out_of_range_collapses(self, oklch, expected):
        assert_allclose(gamut_map_oklch(oklch, sRGBGamut, OKLCH), expected, atol=0)

    def test_xyz_target_not_clamped(self):
        xyz = gamut_map_oklch([0.9, 0.3, 100.0], sRGBGamut, XYZ)
        expected = convert(gamut_map_oklch([0.9, 0.3, 100.0], sRGBGamut, OKLCH), OKLCH, XYZ)
        assert_allclose(xyz, expected, atol=1e-12)

    def test_other_rgb_target_is_clamped(self):
        rgb = gamut_map_oklch([0.7, 0.35, 145.0], sRGBGamut, ProPhotoRGB)
        assert np.all(rgb >= 0.0) and np.all(rgb <= 1.0)

    def test_supplied_cusp_is_used(self):
        oklch = [0.7, 0.35, 145.0]
        cusp = find_cusp_oklch(*_direction(145.0), sRGBGamut)
        assert_allclose(gamut_map_oklch(oklch, sRGBGamut, OKLCH, cusp=cusp),
                        gamut_map_oklch(oklch, sRGBGamut, OKLCH), atol=0)

    def test_out_and_alpha(self):
        vec = np.array([0.7, 0.35, 145.0, 0.5])
        result = gamut_map_oklch(vec, sRGBGamut, OKLCH, out=vec)
        assert result is vec
        assert vec[3] == 0.5
        assert vec[1] < 0.35

    def test_missing_gamut(self):
        with pytest.raises(MissingSpaceError):
            gamut_map_oklch([0.5, 0.1, 30.0], None)

    def test_gamut_without_lms(self):
        bare = ColorGamut(id="bare", space=ProPhotoRGB, coefficients=sRGBGamut.coefficients)
        with pytest.raises(MissingTransformError):
            gamut_map_oklch([0.5, 0.4, 30.0], bare)

    def test_p3_target_space(self):
        rgb = gamut_map_oklch([0.7, 0.4, 145.0], DisplayP3Gamut)
        assert np.all(rgb >= 0.0) and np.all(rgb <= 1.0)
        back = convert(rgb, DisplayP3, OKLCH)
        assert back[2] == pytest.approx(145.0, abs=1e-6)
