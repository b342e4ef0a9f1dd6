"""
Co-accessibility Estimators

An estimator turns the metacell profiles of the peaks in one genomic window
into a symmetric peak x peak score matrix. The default regularises the
empirical covariance with the graphical lasso and reports the resulting
covariance as a correlation, as Cicero does.
"""

from dataclasses import dataclass
from typing import Protocol

import numpy as np
from sklearn.covariance import graphical_lasso


class CoaccessEstimator(Protocol):
    """Scores co-accessibility between the peaks of one window."""

    def __call__(self, profiles: np.ndarray) -> np.ndarray:
        """
        Parameters
        ----------
        profiles : np.ndarray
            (n_peaks, n_metacells) normalised accessibility.

        Returns
        -------
        np.ndarray
            (n_peaks, n_peaks) symmetric scores in [-1, 1].
        """
        ...


@dataclass
class GraphicalLassoEstimator:
    """
    Graphical-lasso co-accessibility.

    Attributes
    ----------
    alpha : float
        L1 penalty on the precision matrix.
    ridge : float
        Added to the covariance diagonal so constant peaks stay invertible.
    max_iter : int
        Maximum graphical lasso iterations.
    tol : float
        Convergence tolerance.
    """

    alpha: float = 0.1
    ridge: float = 1e-4
    max_iter: int = 100
    tol: float = 1e-4

    def __call__(self, profiles: np.ndarray) -> np.ndarray:
        profiles = np.asarray(profiles, dtype=float)
        n_peaks = profiles.shape[0]
        if n_peaks < 2:
            return np.ones((n_peaks, n_peaks))

        emp_cov = np.atleast_2d(np.cov(profiles, bias=True))
        emp_cov[np.diag_indices(n_peaks)] += self.ridge

        covariance, _ = graphical_lasso(
            emp_cov,
            alpha=self.alpha,
            max_iter=self.max_iter,
            tol=self.tol,
        )
        return covariance_to_correlation(covariance)


def covariance_to_correlation(covariance: np.ndarray) -> np.ndarray:
    """Scale a covariance matrix to unit diagonal."""
    sd = np.sqrt(np.diag(covariance))
    corr = covariance / np.outer(sd, sd)
    corr = (corr + corr.T) / 2
    return np.clip(corr, -1.0, 1.0)
