# Copyright (c) 2019 Wright State University
# Author: Daniel Foose <foose.3@wright.edu>
# License: MIT

import warnings

import numpy as np
from sklearn.base import BaseEstimator, RegressorMixin
from sklearn.exceptions import ConvergenceWarning
from sklearn.utils import check_array
from sklearn.utils.validation import check_consistent_length, check_is_fitted

from .utils import _center_scale, _center_scale_xy, _check_model_name, _to_array, _to_list, norm, tss


def _max_sum_of_squares_column(X):
    return int(np.argmax(np.sum(np.square(X), axis=0)))


class PLS(BaseEstimator, RegressorMixin):
    """Partial Least Squares regression (NIPALS with deflation of X and Y)

    Latent vectors are extracted one at a time until Y is fully explained or latent_vectors have been
    extracted. Each extraction is seeded with the columns of X and Y that have the largest sum of squares.

    Parameters
    ----------
    latent_vectors : int, maximum number of latent vectors. Defaults to min(n_samples - 1, n_features).

    tolerance : float, convergence threshold of the inner loop and of the norm of the Y residual (default 1e-5)

    scale : boolean, scale data? Data are always centered. (default True)

    max_iter : int, maximum number of iterations of the inner loop (default 500)

    Attributes
    ----------
    T_ : X scores, one column per latent vector

    P_ : X loadings

    U_ : Y scores

    Q_ : Y loadings

    W_ : X weights

    B_ : diagonal matrix of the inner regression coefficients

    PBQ_ : P B Q', the linear operator mapping scaled X to scaled Y

    R2X_ : float, fraction of the variance of X explained by the last latent vector

    E_ : X residual

    F_ : Y residual

    x_mean_ : mean of the X provided to fit()
    y_mean_ : mean of the Y provided to fit()
    x_std_ : std deviation of the X provided to fit()
    y_std_ : std deviation of the Y provided to fit()

    References
    ----------
    Herve Abdi. Partial least squares regression and projection on latent structure regression (PLS Regression).
    WIREs Computational Statistics 2010; 2: 97-106. DOI: 10.1002/wics.51
    """
    def __init__(self, latent_vectors=None, tolerance=1e-5, scale=True, max_iter=500):
        self.latent_vectors = latent_vectors
        self.tolerance = tolerance
        self.scale = scale
        self.max_iter = max_iter

    def fit(self, X, Y):
        """Fit model to data

        Parameters
        ----------
        X : array-like, shape = [n_samples, n_features]
            Training vectors, where n_samples is the number of samples and
            n_features is the number of predictors.

        Y : array-like, shape = [n_samples, n_targets]
            Target vectors, where n_samples is the number of samples and
            n_targets is the number of response variables.
        """
        X = check_array(X, dtype=np.float64, copy=True, ensure_min_samples=2)
        Y = check_array(Y, dtype=np.float64, copy=True, ensure_2d=False)
        if Y.ndim == 1:
            Y = Y.reshape(-1, 1)
        check_consistent_length(X, Y)

        X, Y, self.x_mean_, self.y_mean_, self.x_std_, self.y_std_ = _center_scale_xy(X, Y, scale=self.scale)

        n = self.latent_vectors or min(X.shape[0] - 1, X.shape[1])
        tolerance = self.tolerance
        ssq_x = tss(X)

        T = np.zeros((X.shape[0], n))
        P = np.zeros((X.shape[1], n))
        U = np.zeros((Y.shape[0], n))
        Q = np.zeros((Y.shape[1], n))
        W = np.zeros((X.shape[1], n))
        B = np.zeros((n, n))

        k = 0
        with np.errstate(divide='raise', invalid='raise'):
            while norm(Y) > tolerance and k < n:
                t1 = X[:, [_max_sum_of_squares_column(X)]]
                u = Y[:, [_max_sum_of_squares_column(Y)]]
                t = np.zeros_like(t1)

                for _ in range(self.max_iter):
                    w = np.dot(X.T, u)
                    w = w / norm(w)
                    t = t1
                    t1 = np.dot(X, w)
                    q = np.dot(Y.T, t1)
                    q = q / norm(q)
                    u = np.dot(Y, q)
                    if norm(t1 - t) <= tolerance:
                        break
                else:
                    warnings.warn(f'PLS latent vector {k} did not converge in {self.max_iter} iterations',
                                  ConvergenceWarning)

                t = t1
                p = np.dot(X.T, t) / np.dot(t.T, t).item()
                p_norm = norm(p)
                p = p / p_norm
                t = t * p_norm
                w = w * p_norm
                b = np.dot(u.T, t).item() / np.dot(t.T, t).item()

                X = X - np.dot(t, p.T)
                Y = Y - b * np.dot(t, q.T)

                T[:, k] = t.ravel()
                P[:, k] = p.ravel()
                U[:, k] = u.ravel()
                Q[:, k] = q.ravel()
                W[:, k] = w.ravel()
                B[k, k] = b
                k += 1

        if k == 0:
            raise ValueError('No latent vector could be extracted, Y has no variance')

        self.T_ = T[:, :k]
        self.P_ = P[:, :k]
        self.U_ = U[:, :k]
        self.Q_ = Q[:, :k]
        self.W_ = W[:, :k]
        self.B_ = B[:k, :k]
        self.E_ = X
        self.F_ = Y
        self.PBQ_ = np.dot(np.dot(self.P_, self.B_), self.Q_.T)
        self.R2X_ = np.dot(t.T, t).item() * np.dot(p.T, p).item() / ssq_x
        return self

    def predict(self, X):
        """Predict the response of new data.

        Parameters
        ----------
        X : array-like, shape = [n_samples, n_features]

        Returns
        -------
        Y_pred : array [n_samples, n_targets]
        """
        check_is_fitted(self, 'PBQ_')
        X = check_array(X, dtype=np.float64)
        return np.dot(_center_scale(X, self.x_mean_, self.x_std_), self.PBQ_) * self.y_std_ + self.y_mean_

    def get_explained_variance(self):
        """Fraction of the variance of the training X explained by the last latent vector."""
        check_is_fitted(self, 'R2X_')
        return self.R2X_

    def to_json(self):
        """Export the fitted model as a JSON-serializable dict."""
        check_is_fitted(self, 'PBQ_')
        return {
            'name': 'PLS',
            'latent_vectors': self.latent_vectors,
            'tolerance': self.tolerance,
            'scale': self.scale,
            'max_iter': self.max_iter,
            'R2X': self.R2X_,
            'x_mean': _to_list(self.x_mean_),
            'x_std': _to_list(self.x_std_),
            'y_mean': _to_list(self.y_mean_),
            'y_std': _to_list(self.y_std_),
            'PBQ': _to_list(self.PBQ_),
        }

    @classmethod
    def load(cls, model):
        """Rebuild a fitted PLS model from the output of to_json()."""
        _check_model_name(model, 'PLS')
        estimator = cls(latent_vectors=model.get('latent_vectors'),
                        tolerance=model['tolerance'],
                        scale=model['scale'],
                        max_iter=model.get('max_iter', 500))
        estimator.R2X_ = model['R2X']
        estimator.x_mean_ = _to_array(model['x_mean'])
        estimator.x_std_ = _to_array(model['x_std'])
        estimator.y_mean_ = _to_array(model['y_mean'])
        estimator.y_std_ = _to_array(model['y_std'])
        estimator.PBQ_ = _to_array(model['PBQ'])
        return estimator
