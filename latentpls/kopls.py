# Copyright (c) 2019 Wright State University
# Author: Daniel Foose <foose.3@wright.edu>
# License: MIT

import numpy as np
from scipy.linalg import inv, svd
from sklearn.base import BaseEstimator, RegressorMixin
from sklearn.utils import check_array
from sklearn.utils.validation import check_consistent_length, check_is_fitted

from .utils import _check_model_name, _to_array, _to_list


class KOPLS(BaseEstimator, RegressorMixin):
    """Kernel-based Orthogonal Projections to Latent Structures (K-OPLS)

    O-PLS carried out on the kernel (Gram) matrix of the training data instead of the data itself, so that a
    non-linear kernel gives a non-linear model. Predictive components come from the SVD of Y'KY, orthogonal
    components are removed one at a time by deflating the kernel matrix.

    Parameters
    ----------
    orthogonal_components : int, number of Y-orthogonal components.

    predictive_components : int, number of predictive components (at most the number of columns of Y).

    kernel : object with compute(A) and compute(A, B) methods returning Gram matrices, e.g. latentpls.Kernel

    Attributes
    ----------
    X_train_ : the training data, needed to compute the test/train kernel at prediction time

    y_loadings_ : array [n_targets, predictive_components], Y loadings (Cp)

    sigma_pow_ : array [predictive_components, predictive_components], Sp^(-1/2), zero where Sp is zero

    y_scores_ : array [n_samples, predictive_components], Y scores (Up)

    pred_scores_ : list of orthogonal_components + 1 arrays [n_samples, predictive_components],
        predictive scores after removing 0, 1, ... orthogonal components (Tp)

    regression_coefs_ : list of orthogonal_components + 1 arrays, regression of Up on Tp

    y_ortho_loadings_ : list of arrays [predictive_components, 1], orthogonal loading vectors (Co)

    y_ortho_eigen_ : list of float, first eigenvalue of each orthogonal step (So)

    y_ortho_scores_ : list of arrays [n_samples, 1], unit-norm orthogonal scores (To)

    y_ortho_norms_ : list of arrays [1, 1], norm of each orthogonal score before normalization

    kernel_x_ : dict, deflated kernel matrices keyed by (i, j); only the (0, i) and (i, i) entries exist

    References
    ----------
    Max Bylesjo, Mattias Rantalainen, Jeremy K. Nicholson, Elaine Holmes and Johan Trygg.
    K-OPLS package: Kernel-based orthogonal projections to latent structures for prediction and interpretation
    in feature space. BMC Bioinformatics 2008; 9: 106. DOI: 10.1186/1471-2105-9-106
    """
    def __init__(self, orthogonal_components, predictive_components, kernel):
        if predictive_components is None:
            raise ValueError('no predictive components found!')
        if orthogonal_components is None:
            raise ValueError('no orthogonal components found!')
        if kernel is None:
            raise ValueError('no kernel found!')
        self.orthogonal_components = orthogonal_components
        self.predictive_components = predictive_components
        self.kernel = kernel

    def fit(self, X, Y):
        """Fit model to data

        Parameters
        ----------
        X : array-like, shape = [n_samples, n_features]
            Training vectors.

        Y : array-like, shape = [n_samples, n_targets]
            Target vectors.
        """
        X = check_array(X, dtype=np.float64, copy=True, ensure_min_samples=2)
        Y = check_array(Y, dtype=np.float64, copy=True, ensure_2d=False)
        if Y.ndim == 1:
            Y = Y.reshape(-1, 1)
        check_consistent_length(X, Y)
        if not 0 < self.predictive_components <= Y.shape[1]:
            raise ValueError(f'predictive_components must be between 1 and the number of targets ({Y.shape[1]}), '
                             f'got {self.predictive_components}')

        n_ortho = self.orthogonal_components
        n_pred = self.predictive_components

        kernel_x = {(0, 0): self.kernel.compute(X)}
        identity = np.eye(X.shape[0])

        C, s, _ = svd(np.dot(np.dot(Y.T, kernel_x[0, 0]), Y))
        y_loadings = C[:, :n_pred]
        sigma = np.diag(s)[:n_pred, :n_pred]
        y_scores = np.dot(Y, y_loadings)

        # the zero off-diagonal entries map to +inf
        with np.errstate(divide='ignore'):
            sigma_pow = np.power(sigma, -0.5)
        sigma_pow[np.isposinf(sigma_pow)] = 0.0

        pred_scores = []
        regression_coefs = []
        ortho_loadings = []
        ortho_eigen = []
        ortho_scores = []
        ortho_norms = []

        with np.errstate(divide='raise', invalid='raise'):
            for i in range(n_ortho):
                tp = self._regress(kernel_x[0, i].T, y_scores, sigma_pow, pred_scores, regression_coefs)

                residual = kernel_x[i, i] - np.dot(tp, tp.T)
                co, so, _ = svd(np.dot(np.dot(tp.T, residual), tp))
                ortho_loadings.append(co[:, :1])
                ortho_eigen.append(so[0])

                to = np.dot(np.dot(residual, tp), ortho_loadings[i]) * ortho_eigen[i] ** -0.5
                ortho_norms.append(np.sqrt(np.dot(to.T, to)))
                ortho_scores.append(to / ortho_norms[i])

                ito = identity - np.dot(ortho_scores[i], ortho_scores[i].T)
                kernel_x[0, i + 1] = np.dot(kernel_x[0, i], ito)
                kernel_x[i + 1, i + 1] = np.dot(np.dot(ito, kernel_x[i, i]), ito)

            self._regress(kernel_x[0, n_ortho].T, y_scores, sigma_pow, pred_scores, regression_coefs)

        self.X_train_ = X
        self.y_loadings_ = y_loadings
        self.sigma_pow_ = sigma_pow
        self.y_scores_ = y_scores
        self.pred_scores_ = pred_scores
        self.regression_coefs_ = regression_coefs
        self.y_ortho_loadings_ = ortho_loadings
        self.y_ortho_eigen_ = ortho_eigen
        self.y_ortho_scores_ = ortho_scores
        self.y_ortho_norms_ = ortho_norms
        self.kernel_x_ = kernel_x
        return self

    @staticmethod
    def _regress(K, y_scores, sigma_pow, pred_scores, regression_coefs):
        tp = np.dot(np.dot(K, y_scores), sigma_pow)
        pred_scores.append(tp)
        regression_coefs.append(np.dot(np.dot(inv(np.dot(tp.T, tp)), tp.T), y_scores))
        return tp

    def predict(self, X, return_scores=False):
        """Predict the response of new data

        Parameters
        ----------
        X : array-like, shape = [n_samples, n_features]

        return_scores : bool
            Also return the predictive scores and the orthogonal score vectors of X.

        Returns
        -------
        y_pred : array [n_samples, n_targets]

        pred_scores : list of orthogonal_components + 1 arrays [n_samples, predictive_components]
            (only if return_scores)

        ortho_scores : list of orthogonal_components arrays [n_samples, 1] (only if return_scores)
        """
        check_is_fitted(self, ['X_train_', 'y_loadings_'])
        X = check_array(X, dtype=np.float64)

        kernel_x = {(0, 0): self.kernel.compute(X, self.X_train_)}
        pred_scores = []
        ortho_scores = []

        n_ortho = self.orthogonal_components
        with np.errstate(divide='raise', invalid='raise'):
            for i in range(n_ortho):
                tp = np.dot(np.dot(kernel_x[i, 0], self.y_scores_), self.sigma_pow_)
                pred_scores.append(tp)

                train_tp = self.pred_scores_[i]
                to = np.dot(np.dot(kernel_x[i, i] - np.dot(tp, train_tp.T), train_tp), self.y_ortho_loadings_[i])
                to = to * self.y_ortho_eigen_[i] ** -0.5 / self.y_ortho_norms_[i]
                ortho_scores.append(to)

                train_to = self.y_ortho_scores_[i]
                kernel_x[i + 1, 0] = kernel_x[i, 0] - np.dot(np.dot(to, train_to.T), self.kernel_x_[0, i].T)

                p1 = kernel_x[i, 0] - np.dot(np.dot(kernel_x[i, i], train_to), train_to.T)
                p2 = np.dot(np.dot(to, train_to.T), self.kernel_x_[i, i])
                p3 = np.dot(np.dot(p2, train_to), train_to.T)
                kernel_x[i + 1, i + 1] = p1 - p2 + p3

        tp = np.dot(np.dot(kernel_x[n_ortho, 0], self.y_scores_), self.sigma_pow_)
        pred_scores.append(tp)
        y_pred = np.dot(np.dot(tp, self.regression_coefs_[n_ortho]), self.y_loadings_.T)

        if return_scores:
            return y_pred, pred_scores, ortho_scores
        return y_pred

    def to_json(self):
        """Export the fitted model as a JSON-serializable dict. The kernel is not exported."""
        check_is_fitted(self, ['X_train_', 'y_loadings_'])
        return {
            'name': 'K-OPLS',
            'orthogonal_components': self.orthogonal_components,
            'predictive_components': self.predictive_components,
            'X_train': _to_list(self.X_train_),
            'y_loadings': _to_list(self.y_loadings_),
            'sigma_pow': _to_list(self.sigma_pow_),
            'y_scores': _to_list(self.y_scores_),
            'pred_scores': _to_list(self.pred_scores_),
            'regression_coefs': _to_list(self.regression_coefs_),
            'y_ortho_loadings': _to_list(self.y_ortho_loadings_),
            'y_ortho_eigen': _to_list(self.y_ortho_eigen_),
            'y_ortho_scores': _to_list(self.y_ortho_scores_),
            'y_ortho_norms': _to_list(self.y_ortho_norms_),
            'kernel_x': [[i, j, _to_list(K)] for (i, j), K in sorted(self.kernel_x_.items())],
        }

    @classmethod
    def load(cls, model, kernel):
        """Rebuild a fitted K-OPLS model from the output of to_json().

        Kernels are not serializable, the kernel the model was fitted with must be given again.
        """
        _check_model_name(model, 'K-OPLS')
        if kernel is None:
            raise ValueError('You must provide a kernel for the model!')

        estimator = cls(model['orthogonal_components'], model['predictive_components'], kernel)
        estimator.X_train_ = _to_array(model['X_train'])
        estimator.y_loadings_ = _to_array(model['y_loadings'])
        estimator.sigma_pow_ = _to_array(model['sigma_pow'])
        estimator.y_scores_ = _to_array(model['y_scores'])
        estimator.pred_scores_ = [_to_array(m) for m in model['pred_scores']]
        estimator.regression_coefs_ = [_to_array(m) for m in model['regression_coefs']]
        estimator.y_ortho_loadings_ = [_to_array(m) for m in model['y_ortho_loadings']]
        estimator.y_ortho_eigen_ = [float(e) for e in model['y_ortho_eigen']]
        estimator.y_ortho_scores_ = [_to_array(m) for m in model['y_ortho_scores']]
        estimator.y_ortho_norms_ = [_to_array(m) for m in model['y_ortho_norms']]
        estimator.kernel_x_ = {(i, j): _to_array(K) for i, j, K in model['kernel_x']}
        return estimator
