"""Shared fixtures for the Prism test suite."""

import numpy as np
import pytest


@pytest.fixture
def rng():
    """Seeded generator so sampled colors are reproducible."""
    return np.random.default_rng(20260218)


@pytest.fixture
def srgb_samples():
    """Encoded sRGB colors spread over the cube, avoiding exact black."""
    return [
        (0.3, 0.5, 0.7),
        (0.9, 0.1, 0.2),
        (0.05, 0.8, 0.35),
        (0.5, 0.5, 0.5),
        (1.0, 1.0, 1.0),
        (0.02, 0.03, 0.9),
        (0.75, 0.6, 0.02),
    ]


@pytest.fixture
def out_of_gamut_oklch():
    """OKLCH colors outside sRGB, covering both halves of the gamut triangle."""
    return [
        (0.15, 0.425, 30.0),
        (0.5, 0.3, 30.0),
        (0.7, 0.35, 145.0),
        (0.9, 0.3, 100.0),
        (0.4, 0.4, 264.0),
        (0.85, 0.25, 200.0),
        (0.3, 0.2, 320.0),
        (0.96, 0.12, 60.0),
    ]
