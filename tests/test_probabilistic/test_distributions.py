"""Tests for densities, the Normal-Inverse-Wishart prior and the CRP."""

import numpy as np
import pytest
from scipy.special import gammaln
from scipy.stats import multivariate_normal, multivariate_t

from npbayes.probabilistic.distributions import (
    MultivariateGaussian,
    MultivariateStudentT,
    NormalInverseWishart,
    crp_log_pmf,
    gaussian_mean_posterior,
)


def test_gaussian_log_pdf_single_and_batch(rng):
    """A single observation gives a float, a batch gives an array."""
    mean = np.array([1.0, 2.0])
    cov = np.array([[1.0, 0.5], [0.5, 2.0]])
    g = MultivariateGaussian(mean, cov)
    ref = multivariate_normal(mean, cov)

    x = np.array([0.5, 1.5])
    value = g.log_pdf(x)
    assert isinstance(value, float)
    assert value == pytest.approx(ref.logpdf(x))

    batch = rng.normal(size=(6, 2))
    assert np.allclose(g.log_pdf(batch), ref.logpdf(batch))
    assert np.allclose(g.pdf(batch), ref.pdf(batch))


def test_gaussian_one_dimensional():
    """Scalar observations work for a 1D Gaussian."""
    g = MultivariateGaussian([0.0], [[4.0]])
    assert g.log_pdf(0.0) == pytest.approx(-0.5 * np.log(2 * np.pi * 4.0))
    assert g.log_pdf(np.array([0.0, 2.0])).shape == (2,)


def test_gaussian_validation():
    """Mismatched shapes and indefinite covariances are rejected."""
    with pytest.raises(ValueError, match="incompatible"):
        MultivariateGaussian(np.zeros(2), np.eye(3))
    with pytest.raises(ValueError, match="positive definite"):
        MultivariateGaussian(np.zeros(2), -np.eye(2))


def test_gaussian_sample_moments(rng):
    """Sample mean and covariance match the parameters."""
    mean = np.array([3.0, -1.0])
    cov = np.array([[2.0, 0.6], [0.6, 1.0]])
    samples = MultivariateGaussian(mean, cov).sample(rng, 20000)

    assert samples.shape == (20000, 2)
    assert np.allclose(samples.mean(axis=0), mean, atol=0.05)
    assert np.allclose(np.cov(samples.T), cov, atol=0.08)


def test_student_t_matches_scipy(rng):
    """Student-t log density agrees with scipy."""
    loc = np.array([0.0, 1.0])
    scale = np.array([[1.5, -0.2], [-0.2, 0.8]])
    t = MultivariateStudentT(loc, scale, 3.0)
    x = rng.normal(size=(5, 2))
    assert np.allclose(t.log_pdf(x), multivariate_t(loc, scale, df=3.0).logpdf(x))

    with pytest.raises(ValueError, match="dof"):
        MultivariateStudentT(loc, scale, 0.0)


def test_niw_default_and_validation():
    """Default prior is zero mean, unit kappa, d + 2 dof and identity scale."""
    prior = NormalInverseWishart.default(3)
    assert np.array_equal(prior.mean, np.zeros(3))
    assert prior.kappa == 1.0
    assert prior.dof == 5.0
    assert np.array_equal(prior.scale, np.eye(3))

    with pytest.raises(ValueError, match="kappa"):
        NormalInverseWishart(np.zeros(2), 0.0, 4.0, np.eye(2))
    with pytest.raises(ValueError, match="dof"):
        NormalInverseWishart(np.zeros(2), 1.0, 0.5, np.eye(2))
    with pytest.raises(ValueError, match="scale"):
        NormalInverseWishart(np.zeros(2), 1.0, 4.0, np.eye(3))


def test_niw_update_matches_closed_form():
    """Conjugate update follows the standard NIW posterior formulas."""
    prior = NormalInverseWishart(np.array([1.0, 0.0]), 2.0, 4.0, np.eye(2))
    x = np.array([[0.0, 1.0], [2.0, 3.0], [4.0, -1.0]])
    post = prior.update(x)

    n = 3
    x_bar = x.mean(axis=0)
    scatter = (x - x_bar).T @ (x - x_bar)
    diff = (x_bar - prior.mean)[:, None]
    assert post.kappa == pytest.approx(5.0)
    assert post.dof == pytest.approx(7.0)
    assert np.allclose(post.mean, (2.0 * prior.mean + n * x_bar) / 5.0)
    assert np.allclose(post.scale, np.eye(2) + scatter + (2.0 * n / 5.0) * diff @ diff.T)


def test_niw_update_empty_is_identity():
    """Updating with no observations returns the prior unchanged."""
    prior = NormalInverseWishart.default(2)
    assert prior.update(np.empty((0, 2))) is prior


def test_niw_sample_is_valid_covariance(rng):
    """Sampled covariances are symmetric positive definite."""
    post = NormalInverseWishart.default(2).update(rng.normal(size=(50, 2)))
    for _ in range(10):
        mean, cov = post.sample(rng)
        assert mean.shape == (2,)
        assert cov.shape == (2, 2)
        assert np.allclose(cov, cov.T)
        assert np.all(np.linalg.eigvalsh(cov) > 0)


def test_niw_sample_concentrates_on_data(rng):
    """With many observations, sampled parameters approach the truth."""
    true_cov = np.array([[1.0, 0.3], [0.3, 0.5]])
    x = rng.multivariate_normal([5.0, -3.0], true_cov, size=5000)
    mean, cov = NormalInverseWishart.default(2).update(x).sample(rng)
    assert np.allclose(mean, [5.0, -3.0], atol=0.1)
    assert np.allclose(cov, true_cov, atol=0.1)


def test_niw_predictive_parameters():
    """Predictive is Student-t with dof nu - d + 1 and scaled covariance."""
    niw = NormalInverseWishart(np.array([1.0, 2.0]), 3.0, 6.0, 2.0 * np.eye(2))
    pred = niw.predictive()
    assert isinstance(pred, MultivariateStudentT)
    assert pred.dof == pytest.approx(5.0)
    assert np.allclose(pred.location, [1.0, 2.0])
    assert np.allclose(pred.scale, 2.0 * np.eye(2) * 4.0 / (3.0 * 5.0))


def test_crp_log_pmf_closed_form():
    """Matches K log(alpha) + sum log((n_k - 1)!) + log G(alpha) - log G(alpha + n)."""
    counts = [3, 1, 2]
    alpha = 0.7
    expected = (
        3 * np.log(alpha)
        + np.log(2.0) + np.log(1.0) + np.log(1.0)
        + gammaln(alpha) - gammaln(alpha + 6)
    )
    assert crp_log_pmf(counts, alpha, 6) == pytest.approx(expected)


def test_crp_log_pmf_partitions_sum_to_one():
    """Summed over all set partitions of three customers, probabilities total one."""
    alpha = 1.3
    # One partition of sizes {3}, three of {2, 1}, one of {1, 1, 1}
    total = (
        np.exp(crp_log_pmf([3], alpha, 3))
        + 3 * np.exp(crp_log_pmf([2, 1], alpha, 3))
        + np.exp(crp_log_pmf([1, 1, 1], alpha, 3))
    )
    assert total == pytest.approx(1.0)


def test_crp_log_pmf_edge_cases():
    """Empty or over-full tables have zero probability; bad inputs raise."""
    assert crp_log_pmf([0, 2], 1.0, 4) == -np.inf
    assert crp_log_pmf([5], 1.0, 4) == -np.inf
    assert crp_log_pmf([], 1.0, 4) == pytest.approx(0.0)
    with pytest.raises(ValueError, match="alpha"):
        crp_log_pmf([1], 0.0, 1)
    with pytest.raises(ValueError, match="integer"):
        crp_log_pmf([1.5], 1.0, 3)


def test_gaussian_mean_posterior_one_dimensional():
    """Known-variance posterior over a scalar mean matches the textbook update."""
    x = np.array([1.0, 2.0, 3.0])
    post = gaussian_mean_posterior(x, np.array([[1.0 / 4.0]]), np.array([0.0]), np.array([[1.0]]))
    # precision 1 + 3/4, mean (0 + 3/4 * 2) / (7/4)
    assert post.covariance[0, 0] == pytest.approx(4.0 / 7.0)
    assert post.mean[0] == pytest.approx(6.0 / 7.0)

    empty = gaussian_mean_posterior(np.empty((0, 1)), np.eye(1), np.array([2.0]), np.array([[0.5]]))
    assert empty.mean[0] == pytest.approx(2.0)
    assert empty.covariance[0, 0] == pytest.approx(2.0)
