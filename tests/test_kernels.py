"""Vector kernels: matrix transform, cube/cube-root and RGB bounds."""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from prism_kernels import (
    GAMUT_EPSILON,
    cbrt3,
    clamped_rgb,
    copy3,
    cube3,
    is_rgb_in_gamut,
    oklab_from,
    oklab_to,
    out_buffer,
    transform,
    vec3,
)
from prism_matrices import LMS_TO_OKLAB_M, OKLAB_TO_LMS_M, XYZ_TO_LMS_M, LMS_TO_XYZ_M

MATRIX = np.array([
    [2.0, 0.0, 1.0],
    [0.5, 1.0, 0.0],
    [0.0, -1.0, 3.0],
])


class TestTransform:
    def test_matches_matmul(self):
        vec = np.array([1.0, 2.0, 3.0])
        assert_allclose(transform(vec, MATRIX), MATRIX @ vec)

    def test_in_place_alias(self):
        """out may be the input itself."""
        vec = np.array([1.0, 2.0, 3.0])
        expected = MATRIX @ vec
        result = transform(vec, MATRIX, vec)
        assert result is vec
        assert_allclose(vec, expected)

    def test_accepts_sequences_and_ignores_alpha(self):
        result = transform([1.0, 2.0, 3.0, 0.5], MATRIX)
        assert result.shape == (3,)
        assert_allclose(result, MATRIX @ np.array([1.0, 2.0, 3.0]))

    def test_rejects_short_vector(self):
        with pytest.raises(ValueError):
            transform([1.0, 2.0], MATRIX)

    def test_rejects_non_square_matrix(self):
        with pytest.raises(ValueError):
            transform([1.0, 2.0, 3.0], np.ones((2, 3)))


class TestBuffers:
    def test_vec3_is_fresh(self):
        a, b = vec3(), vec3()
        a[0] = 1.0
        assert b[0] == 0.0
        assert a.dtype == np.float64

    def test_out_must_be_ndarray(self):
        with pytest.raises(TypeError):
            out_buffer([0.0, 0.0, 0.0])

    def test_out_too_small(self):
        with pytest.raises(ValueError):
            out_buffer(np.zeros(2))

    def test_copy3_leaves_extra_slots(self):
        dst = np.array([9.0, 9.0, 9.0, 0.25])
        copy3([1.0, 2.0, 3.0], dst)
        assert_allclose(dst, [1.0, 2.0, 3.0, 0.25])


class TestCubeRoot:
    def test_cbrt_is_sign_preserving(self):
        assert_allclose(cbrt3([-8.0, 27.0, 0.0]), [-2.0, 3.0, 0.0], atol=1e-12)

    def test_cube_inverts_cbrt(self):
        values = np.array([-0.3, 0.02, 1.7])
        assert_allclose(cube3(cbrt3(values)), values, rtol=1e-12)

    def test_input_untouched_without_out(self):
        values = np.array([8.0, 1.0, 64.0])
        cbrt3(values)
        assert_allclose(values, [8.0, 1.0, 64.0])


class TestOKLabKernels:
    def test_xyz_round_trip(self):
        xyz = np.array([0.2, 0.3, 0.4])
        lab = oklab_from(xyz, XYZ_TO_LMS_M)
        assert_allclose(oklab_to(lab, LMS_TO_XYZ_M), xyz, rtol=1e-12)

    def test_negative_lms_survives(self):
        """Out-of-gamut inputs produce negative LMS; the cube root stays real."""
        xyz = np.array([-0.05, 0.1, 0.4])
        lab = oklab_from(xyz, XYZ_TO_LMS_M)
        assert np.all(np.isfinite(lab))
        assert_allclose(oklab_to(lab, LMS_TO_XYZ_M), xyz, atol=1e-12)

    def test_fixed_matrices_are_inverse(self):
        assert_allclose(OKLAB_TO_LMS_M @ LMS_TO_OKLAB_M, np.eye(3), atol=1e-12)


class TestGamutBounds:
    def test_epsilon_tolerance(self):
        assert is_rgb_in_gamut([1.0 + GAMUT_EPSILON / 2, 0.0, -GAMUT_EPSILON / 2])
        assert not is_rgb_in_gamut([1.001, 0.5, 0.5])
        assert not is_rgb_in_gamut([0.5, -0.001, 0.5])

    def test_custom_epsilon(self):
        assert is_rgb_in_gamut([1.01, 0.5, 0.5], ep=0.02)
        assert not is_rgb_in_gamut([1.0 + 1e-9, 0.5, 0.5], ep=0.0)

    def test_clamped_rgb(self):
        assert_allclose(clamped_rgb([-0.2, 0.4, 1.3]), [0.0, 0.4, 1.0])
