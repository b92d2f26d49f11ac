# Copyright (c) 2019 Wright State University
# Author: Daniel Foose <foose.3@wright.edu>
# License: MIT

import warnings
from collections import namedtuple

import numpy as np
from sklearn.exceptions import ConvergenceWarning
from sklearn.utils.validation import check_consistent_length

from .utils import norm, tss

NipalsComponent = namedtuple('NipalsComponent', ['t', 'p', 'w', 'q', 'u', 'betas', 'x_residual', 'y_residual'])
NipalsComponent.__doc__ = """One latent component extracted by NIPALS.

t : array [n_samples, 1], X scores
p : array [n_features, 1], normalized X loadings (None in PCA mode)
w : array [n_features, 1], X weights
q : array [n_targets, 1], normalized Y loadings (None in PCA mode)
u : array [n_samples, 1], Y scores (the X scores in PCA mode)
betas : float, inner regression coefficient u't / t't (None in PCA mode)
x_residual : array [n_samples, n_features], X deflated by the component
y_residual : array [n_samples, n_targets], Y deflated by the component (None in PCA mode)
"""


def nipals(X, Y=None, u=None, max_iter=1000, tol=1e-10):
    """Extract one latent component with the NIPALS power iteration.

    With a response Y this is the PLS step: the weights w, scores t and Y loadings q are updated until the
    squared change of t between two iterations is at most tol. Without Y it is PCA-NIPALS: the scores are fed
    back as the seed of the next iteration.

    Parameters
    ----------
    X : array-like, shape = [n_samples, n_features]
        Centered (and usually scaled) data.

    Y : array-like, shape = [n_samples, n_targets] or None
        Centered response. None runs PCA-NIPALS on X.

    u : array-like, shape = [n_samples, 1], optional
        Initial score vector. Defaults to the first column of Y (of X in PCA mode).

    max_iter : int, maximum number of iterations (default 1000)

    tol : float, convergence threshold on the squared change of the scores (default 1e-10)

    Returns
    -------
    NipalsComponent

    Raises
    ------
    ValueError
        If X and Y do not have the same number of rows.
    FloatingPointError
        If a norm the iteration divides by is zero (e.g. a zero seed vector).
    """
    X = np.asarray(X, dtype=np.float64)
    if Y is not None:
        Y = np.asarray(Y, dtype=np.float64)
        if Y.ndim == 1:
            Y = Y.reshape(-1, 1)
        check_consistent_length(X, Y)

    if u is None:
        u = X[:, [0]] if Y is None else Y[:, [0]]
    else:
        u = np.asarray(u, dtype=np.float64).reshape(-1, 1)
        check_consistent_length(X, u)

    diff = 1.0
    t_old = None
    q = None
    with np.errstate(divide='raise', invalid='raise'):
        for _ in range(max_iter):
            w = np.dot(X.T, u) / np.dot(u.T, u).item()
            w = w / norm(w)
            t = np.dot(X, w) / np.dot(w.T, w).item()
            if t_old is not None:
                diff = tss(t - t_old)
            t_old = t

            if Y is None:
                u = t
            else:
                q = np.dot(Y.T, t) / np.dot(t.T, t).item()
                q = q / norm(q)
                u = np.dot(Y, q) / np.dot(q.T, q).item()

            if diff <= tol:
                break
        else:
            warnings.warn(f'NIPALS did not converge in {max_iter} iterations', ConvergenceWarning)

        if Y is None:
            return NipalsComponent(t, None, w, None, u, None, X - np.dot(t, w.T), None)

        tt = np.dot(t.T, t).item()
        p = np.dot(X.T, t) / tt
        p = p / norm(p)
        betas = np.dot(u.T, t).item() / tt
        x_residual = X - np.dot(t, p.T)
        y_residual = Y - betas * np.dot(t, q.T)

    return NipalsComponent(t, p, w, q, u, betas, x_residual, y_residual)
