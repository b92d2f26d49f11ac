# Copyright (c) 2019 Wright State University
# Author: Daniel Foose <foose.3@wright.edu>
# License: MIT

import warnings
from collections import namedtuple

import numpy as np
from sklearn.exceptions import ConvergenceWarning
from sklearn.utils.validation import check_consistent_length

from .nipals import nipals
from .utils import norm, tss

OrthogonalComponent = namedtuple('OrthogonalComponent',
                                 ['filtered_x', 'w_ortho', 'p_ortho', 't_ortho', 'w_pred', 'p_pred', 't_pred', 'c'])
OrthogonalComponent.__doc__ = """One Y-orthogonal component and the matching predictive direction.

filtered_x : array [n_samples, n_features], X with the orthogonal component removed
w_ortho : array [n_features, 1], unit-norm weights orthogonal to Y
p_ortho : array [n_features, 1], orthogonal loadings
t_ortho : array [n_samples, 1], orthogonal scores
w_pred : array [n_features, 1], predictive weights
p_pred : array [n_features, 1], predictive loadings X't / t't, unprojected. w_ortho is derived from them by
    removing w (single-column Y) or the reference directions (multi-column Y); p_pred keeps them in both cases.
t_pred : array [n_samples, 1], predictive scores
c : array [n_targets, 1], Y loadings
"""


def _wh(X, Y):
    """Regress every column of X on every column of Y, one Y column at a time."""
    return np.dot(X.T, Y) / np.sum(np.square(Y), axis=0)


def _reference_directions(wh, tol):
    """PCA-NIPALS chain on wh until the extracted scores carry less than tol of its sum of squares.

    The last direction returned is the one that ended the chain.
    """
    ss_wh = tss(wh)
    directions = []
    data = wh
    while len(directions) <= min(wh.shape):
        if tss(data) == 0.0:
            directions.append(np.zeros((wh.shape[0], 1)))
            break
        pca = nipals(data)
        directions.append(pca.t)
        if tss(pca.t) / ss_wh <= tol:
            break
        data = pca.x_residual
    return directions


def opls_nipals(X, Y, max_iter=1000, tol=1e-10):
    """Compute one Y-orthogonal component of X and deflate X by it.

    Parameters
    ----------
    X : array-like, shape = [n_samples, n_features]
        Centered and scaled data, or the filtered X of a previous call.

    Y : array-like, shape = [n_samples, n_targets]
        Centered and scaled response. Several columns (e.g. a dummy coded class label) are handled by removing
        the principal directions of the per-column X weights from the predictive loading.

    max_iter : int, maximum number of iterations of the predictive fixed point (default 1000)

    tol : float
        Threshold on the relative change of the Y scores, also used to end the principal direction chain of
        multi-column responses (default 1e-10).

    Returns
    -------
    OrthogonalComponent

    References
    ----------
    Johan Trygg and Svante Wold. Orthogonal projections to latent structures (O-PLS).
    J. Chemometrics 2002; 16: 119-128. DOI: 10.1002/cem.695
    """
    X = np.asarray(X, dtype=np.float64)
    Y = np.asarray(Y, dtype=np.float64)
    if Y.ndim == 1:
        Y = Y.reshape(-1, 1)
    check_consistent_length(X, Y)

    with np.errstate(divide='raise', invalid='raise'):
        directions = _reference_directions(_wh(X, Y), tol) if Y.shape[1] > 1 else []

        u = Y[:, [0]]
        diff = 1.0
        for i in range(max_iter):
            w = np.dot(X.T, u) / np.dot(u.T, u).item()
            w = w / norm(w)
            t = np.dot(X, w) / np.dot(w.T, w).item()
            c = np.dot(Y.T, t) / np.dot(t.T, t).item()
            u_new = np.dot(Y, c) / np.dot(c.T, c).item()
            if i > 0:
                diff = tss(u_new - u) / tss(u_new)
            u = u_new
            if diff <= tol:
                break
        else:
            warnings.warn(f'OPLS-NIPALS did not converge in {max_iter} iterations', ConvergenceWarning)

        p = np.dot(X.T, t) / np.dot(t.T, t).item()
        if directions:
            w_ortho = p
            # the direction that ended the chain is numerically null
            for tw in directions[:-1]:
                w_ortho = w_ortho - np.dot(tw.T, w_ortho).item() / np.dot(tw.T, tw).item() * tw
        else:
            w_ortho = p - np.dot(w.T, p).item() / np.dot(w.T, w).item() * w
        w_ortho = w_ortho / norm(w_ortho)

        t_ortho = np.dot(X, w_ortho) / np.dot(w_ortho.T, w_ortho).item()
        p_ortho = np.dot(X.T, t_ortho) / np.dot(t_ortho.T, t_ortho).item()

    filtered_x = X - np.dot(t_ortho, p_ortho.T)
    return OrthogonalComponent(filtered_x, w_ortho, p_ortho, t_ortho, w, p, t, c)
