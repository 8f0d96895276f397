"""Matrix derivation, Bradford adaptation and gamut coefficient fitting."""

import math
import warnings

import numpy as np
import pytest
from numpy.testing import assert_allclose

from prism_convert import convert
from prism_gamut import compute_max_saturation_oklc
from prism_matrices import (
    REF_WHITE_D50,
    REF_WHITE_D65,
    SRGB_PRIMARIES,
    SRGB_REFERENCE_POLYNOMIALS,
    XYZ_D50_TO_D65_M,
    XYZ_D65_TO_D50_M,
    XYZ_TO_LMS_M,
    GamutCoefficients,
    bradford_matrix,
    derive_rgb_matrices,
    exact_max_saturation,
    fit_gamut_coefficients,
    gamut_selectors,
    rgb_to_xyz_matrix,
)
from prism_spaces import (
    OKLCH,
    A98RGBGamut,
    DisplayP3Gamut,
    DisplayP3Linear,
    OKLab,
    Rec2020Gamut,
    sRGBGamut,
    sRGBLinear,
)


def _hues(count=72, offset=2.5):
    for deg in np.arange(count) * (360.0 / count) + offset:
        h = math.radians(deg)
        yield math.cos(h), math.sin(h)


def _primary_hues(gamut):
    """OKLCH hue of each primary of a gamut, in degrees."""
    return [convert(primary, gamut.linear_space, OKLCH)[2] for primary in np.eye(3)]


def _sweep_hues(gamut):
    """Every 0.25°, plus a 0.02° comb across each primary where channels swap."""
    hues = list(np.arange(0.0, 360.0, 0.25))
    for center in _primary_hues(gamut):
        hues.extend(center + np.arange(-0.3, 0.3001, 0.02))
    hues.extend([245.1, 264.0, 264.06])
    return hues


class TestDerivation:
    def test_srgb_to_xyz_first_row(self):
        """Matches the CSS Color 4 linear-sRGB -> XYZ matrix."""
        m = rgb_to_xyz_matrix(SRGB_PRIMARIES, REF_WHITE_D65)
        assert_allclose(m[0], [0.41239080, 0.35758434, 0.18048079], atol=1e-6)
        assert_allclose(m[1], [0.21263901, 0.71516868, 0.07219232], atol=1e-6)

    def test_rgb_white_maps_to_whitepoint(self):
        m = rgb_to_xyz_matrix(SRGB_PRIMARIES, REF_WHITE_D65)
        assert_allclose(m @ np.ones(3), REF_WHITE_D65, rtol=1e-12)

    def test_lms_matrices_fold_m1(self):
        m = derive_rgb_matrices(SRGB_PRIMARIES)
        assert_allclose(m.to_lms, XYZ_TO_LMS_M @ m.to_xyz, rtol=1e-12)
        assert_allclose(m.to_lms @ m.from_lms, np.eye(3), atol=1e-12)

    def test_d50_space_has_no_lms(self):
        m = derive_rgb_matrices(SRGB_PRIMARIES, REF_WHITE_D50, with_lms=False)
        assert m.to_lms is None and m.from_lms is None

    def test_d65_white_is_unit_lms(self):
        assert_allclose(XYZ_TO_LMS_M @ REF_WHITE_D65, np.ones(3), atol=1e-5)

    def test_matrices_are_read_only(self):
        with pytest.raises(ValueError):
            sRGBLinear.to_xyz_M[0, 0] = 1.0


class TestBradford:
    def test_maps_white_to_white(self):
        assert_allclose(XYZ_D65_TO_D50_M @ REF_WHITE_D65, REF_WHITE_D50, rtol=1e-12)
        assert_allclose(XYZ_D50_TO_D65_M @ REF_WHITE_D50, REF_WHITE_D65, rtol=1e-12)

    def test_known_coefficients(self):
        assert_allclose(XYZ_D65_TO_D50_M[0],
                        [1.0479298208405488, 0.022946793341019088, -0.05019222954313557],
                        atol=1e-6)

    def test_cached(self):
        assert bradford_matrix(REF_WHITE_D65, REF_WHITE_D50) is XYZ_D65_TO_D50_M

    def test_identity_for_same_white(self):
        assert_allclose(bradford_matrix(REF_WHITE_D65, REF_WHITE_D65), np.eye(3), atol=1e-12)


class TestGamutCoefficients:
    def test_shape_validation(self):
        with pytest.raises(ValueError):
            GamutCoefficients(np.zeros((2, 2)), np.zeros((3, 5)))

    def test_srgb_selectors_close_to_published(self):
        selectors = gamut_selectors(sRGBLinear.to_lms_M)
        assert_allclose(selectors[0], [-1.88170328, -0.80936493], atol=1e-2)
        assert_allclose(selectors[1], [1.81444104, -1.19445276], atol=1e-2)

    def test_fit_reproduces_published_srgb(self):
        """After refinement the fitted and published sRGB polynomials agree."""
        fitted = fit_gamut_coefficients(sRGBLinear.to_lms_M, sRGBLinear.from_lms_M, "srgb")
        reference = GamutCoefficients(fitted.selectors, SRGB_REFERENCE_POLYNOMIALS)
        for a, b in _hues():
            s_fit = compute_max_saturation_oklc(a, b, sRGBLinear.from_lms_M, fitted)
            s_ref = compute_max_saturation_oklc(a, b, sRGBLinear.from_lms_M, reference)
            assert abs(s_fit - s_ref) < 1e-6

    @pytest.mark.parametrize("gamut", [sRGBGamut, DisplayP3Gamut, Rec2020Gamut, A98RGBGamut],
                             ids=lambda g: g.id)
    def test_refined_saturation_matches_brentq(self, gamut):
        lms_to_rgb = gamut.linear_space.from_lms_M
        worst = []
        for hue in _sweep_hues(gamut):
            h = math.radians(hue)
            a, b = math.cos(h), math.sin(h)
            s = compute_max_saturation_oklc(a, b, lms_to_rgb, gamut.coefficients)
            error = abs(s - exact_max_saturation(a, b, lms_to_rgb))
            if error >= 1e-6:
                worst.append((round(float(hue), 3), error))
        assert not worst, worst

    @pytest.mark.parametrize("gamut", [sRGBGamut, DisplayP3Gamut, Rec2020Gamut, A98RGBGamut],
                             ids=lambda g: g.id)
    def test_primary_hue_limits_two_channels(self, gamut):
        """At a primary's own hue the other two channels reach zero together."""
        lms_to_rgb = gamut.linear_space.from_lms_M
        for channel, hue in enumerate(_primary_hues(gamut)):
            h = math.radians(hue)
            s = compute_max_saturation_oklc(math.cos(h), math.sin(h), lms_to_rgb,
                                            gamut.coefficients)
            rgb = convert([1.0, s * math.cos(h), s * math.sin(h)], OKLab, gamut.linear_space)
            others = [rgb[i] for i in range(3) if i != channel]
            assert_allclose(others, [0.0, 0.0], atol=1e-6)
            assert rgb[channel] > 0.0

    def test_zero_steps_is_polynomial_guess(self):
        """Hue (1, 0) is limited by green; with no refinement S is the raw polynomial."""
        s = compute_max_saturation_oklc(1.0, 0.0, sRGBLinear.from_lms_M,
                                        sRGBGamut.coefficients, steps=0)
        k = SRGB_REFERENCE_POLYNOMIALS[1]
        assert s == pytest.approx(k[0] + k[1] + k[3])

    def test_builtin_fit_is_quiet(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            fit_gamut_coefficients(DisplayP3Linear.to_lms_M, DisplayP3Linear.from_lms_M,
                                   "display-p3", warn=False)

    def test_fit_reports_large_deviation(self):
        with pytest.warns(UserWarning, match="display-p3"):
            fit_gamut_coefficients(DisplayP3Linear.to_lms_M, DisplayP3Linear.from_lms_M,
                                   "display-p3")
