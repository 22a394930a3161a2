"""
Tests for the SSA stages: embedding, SVD, diagonal averaging, assembly.
"""

import numpy as np
import pytest

from orssa.ssa import (
    SSA,
    assemble,
    baseline_top_r,
    decompose,
    diagonal_average,
    elementary_reconstructions,
    embed,
)


def sine(n=200, period=20.0, amplitude=1.0):
    t = np.arange(n)
    return amplitude * np.sin(2 * np.pi * t / period)


class TestEmbed:
    """Trajectory (Hankel) matrix construction."""

    def test_hankel_structure(self):
        x = np.arange(10, dtype=float)
        X = embed(x, 4)

        assert X.shape == (4, 7)
        for i in range(4):
            for j in range(7):
                assert X[i, j] == x[i + j]

    def test_extreme_window_lengths(self):
        x = np.arange(6, dtype=float)
        assert embed(x, 2).shape == (2, 5)
        assert embed(x, 5).shape == (5, 2)

    @pytest.mark.parametrize("L", [0, 1, 10, 11, 3.5])
    def test_invalid_window_rejected(self, L):
        with pytest.raises(ValueError):
            embed(np.arange(10, dtype=float), L)

    def test_short_series_rejected(self):
        with pytest.raises(ValueError):
            embed([1.0, 2.0, 3.0], 2)

    def test_non_finite_rejected(self):
        x = np.arange(10, dtype=float)
        x[3] = np.nan
        with pytest.raises(ValueError):
            embed(x, 4)

    def test_input_not_modified(self):
        x = np.arange(10, dtype=float)
        X = embed(x, 4)
        assert not X.flags.writeable
        np.testing.assert_array_equal(x, np.arange(10))


class TestDecompose:
    """Truncated SVD and numerical rank."""

    def test_pure_sine_has_rank_two(self):
        d = decompose(embed(sine(), 100))
        assert d.rank == 2
        assert d.U.shape == (100, 2)
        assert d.V.shape == (101, 2)

    def test_sine_plus_linear_trend_has_rank_four(self):
        t = np.arange(120)
        d = decompose(embed(sine(120) + 0.1 * t + 2.0, 40))
        assert d.rank == 4

    def test_zero_series_has_rank_zero(self):
        d = decompose(embed(np.zeros(50), 25))
        assert d.rank == 0
        assert d.singular_values.shape == (0,)

    def test_nonzero_constant_has_rank_one(self):
        d = decompose(embed(np.full(50, 3.0), 25))
        assert d.rank == 1

    def test_singular_values_descending(self):
        rng = np.random.default_rng(0)
        d = decompose(embed(rng.normal(size=80), 30))
        assert d.rank == 30
        assert np.all(np.diff(d.singular_values) <= 0)

    def test_triplets_rebuild_trajectory(self):
        rng = np.random.default_rng(1)
        X = embed(rng.normal(size=40), 12)
        d = decompose(X)
        rebuilt = sum(s * np.outer(u, v) for u, s, v in (d.triplet(i) for i in range(d.rank)))
        np.testing.assert_allclose(rebuilt, X, atol=1e-10)

    def test_alternative_svd_routine(self):
        X = embed(sine(120) + 0.05 * np.arange(120), 40)
        calls = []

        def numpy_svd(matrix, full_matrices):
            calls.append(matrix.shape)
            return np.linalg.svd(matrix, full_matrices=full_matrices)

        d = decompose(X, svd=numpy_svd)
        reference = decompose(X)
        assert calls == [(40, 81)]
        assert d.rank == reference.rank
        np.testing.assert_allclose(d.singular_values, reference.singular_values, rtol=1e-10)
        np.testing.assert_allclose(elementary_reconstructions(d).sum(axis=0),
                                   sine(120) + 0.05 * np.arange(120), atol=1e-9)

    def test_result_is_read_only(self):
        d = decompose(embed(sine(60), 20))
        with pytest.raises(ValueError):
            d.singular_values[0] = 0.0


class TestDiagonalAverage:
    """Hankelization as the inverse of embedding."""

    def test_matches_explicit_loop(self):
        rng = np.random.default_rng(2)
        M = rng.normal(size=(5, 8))
        expected = np.zeros(12)
        counts = np.zeros(12)
        for i in range(5):
            for j in range(8):
                expected[i + j] += M[i, j]
                counts[i + j] += 1
        np.testing.assert_allclose(diagonal_average(M), expected / counts)

    def test_inverts_embedding(self):
        x = np.random.default_rng(3).normal(size=30)
        for L in (2, 7, 15, 29):
            np.testing.assert_allclose(diagonal_average(embed(x, L)), x)


class TestElementaryReconstruction:
    """Elementary components and their sum."""

    @pytest.mark.parametrize("L", [5, 20, 40])
    def test_components_sum_to_series(self, L):
        x = np.random.default_rng(4).normal(size=60) + np.linspace(0, 3, 60)
        d = decompose(embed(x, L))
        components = elementary_reconstructions(d)

        assert components.shape == (d.rank, 60)
        np.testing.assert_allclose(components.sum(axis=0), x, rtol=1e-9, atol=1e-9)

    def test_rank_zero_gives_no_components(self):
        d = decompose(embed(np.zeros(50), 20))
        assert elementary_reconstructions(d).shape == (0, 50)


class TestAssemble:
    """Summing the kept components."""

    def test_all_ones_reproduces_series(self):
        x = sine(100) + np.random.default_rng(5).normal(scale=0.1, size=100)
        d = decompose(embed(x, 30))
        components = elementary_reconstructions(d)
        recon = assemble(components, np.ones(d.rank, dtype=bool))
        np.testing.assert_allclose(recon, x, atol=1e-9)

    def test_subset_is_partial_sum(self):
        components = np.arange(12, dtype=float).reshape(3, 4)
        recon = assemble(components, [True, False, True])
        np.testing.assert_array_equal(recon, components[0] + components[2])

    def test_length_mismatch_rejected(self):
        components = np.ones((3, 4))
        with pytest.raises(ValueError):
            assemble(components, [True, False])

    def test_empty_selection_is_zero(self):
        recon = assemble(np.zeros((0, 7)), np.zeros(0, dtype=bool))
        np.testing.assert_array_equal(recon, np.zeros(7))


class TestBaseline:
    """Classic top-r SSA truncation."""

    def test_top_r_uses_largest_singular_values(self):
        x = np.random.default_rng(6).normal(size=50)
        d = decompose(embed(x, 10))
        components = elementary_reconstructions(d)
        np.testing.assert_allclose(baseline_top_r(d, 3), components[:3].sum(axis=0))

    def test_r_clamped_to_rank(self):
        d = decompose(embed(sine(60), 20))
        full = baseline_top_r(d, 100)
        np.testing.assert_allclose(full, sine(60), atol=1e-9)
        np.testing.assert_array_equal(baseline_top_r(d, -1), np.zeros(60))


class TestSSAFacade:
    """The convenience class chaining the stages."""

    def test_stages_are_cached(self):
        ssa = SSA(sine(80), window_length=20)
        assert ssa.K == 61
        assert ssa.decompose() is ssa.decompose()
        assert ssa.rank == 2
        np.testing.assert_allclose(ssa.get_contributions().sum(), 1.0)
        np.testing.assert_allclose(ssa.reconstruct(), sine(80), atol=1e-9)

    def test_reconstruct_with_keep(self):
        ssa = SSA(sine(80), window_length=20)
        np.testing.assert_array_equal(ssa.reconstruct([False, False]), np.zeros(80))

    def test_svd_routine_passed_to_decomposition(self):
        calls = []

        def numpy_svd(matrix, full_matrices):
            calls.append(full_matrices)
            return np.linalg.svd(matrix, full_matrices=full_matrices)

        ssa = SSA(sine(80), window_length=20, svd=numpy_svd)
        assert ssa.rank == 2
        ssa.reconstruct()
        assert calls == [False]
