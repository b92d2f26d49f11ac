# Copyright (c) 2019 Wright State University
# Author: Daniel Foose <foose.3@wright.edu>
# License: MIT

import warnings
from enum import Enum
from sys import stderr

import numpy as np
from joblib import Parallel, delayed
from sklearn.base import BaseEstimator, TransformerMixin
from sklearn.metrics import confusion_matrix, roc_auc_score
from sklearn.preprocessing import LabelBinarizer
from sklearn.utils import check_array
from sklearn.utils.validation import check_consistent_length, check_is_fitted, column_or_1d

from .cross_validation import _check_folds
from .nipals import NipalsComponent, nipals
from .opls_nipals import OrthogonalComponent, opls_nipals
from .utils import _center_scale, _check_model_name, _column_stats, _to_array, _to_list, tss

# minimal gain of Q2y (regression) or AUC (discriminant analysis) for one more orthogonal component
_OVERFIT_THRESHOLD = 0.05


class Mode(Enum):
    REGRESSION = 'regression'
    DISCRIMINANT_ANALYSIS = 'discriminantAnalysis'

    @classmethod
    def from_labels(cls, y):
        if np.issubdtype(y.dtype, np.number):
            return cls.REGRESSION
        return cls.DISCRIMINANT_ANALYSIS


def discriminator_roc_auc(y_true, y_score):
    try:
        return roc_auc_score(y_true, y_score)
    except ValueError as e:
        warnings.warn(str(e), UserWarning)
        return float('nan')


def _fit_fold(X, Y, train, test, components, center, scale):
    """Fit one more orthogonal component on the training part of a fold and predict its test part.

    components holds the orthogonal components already fitted on this fold, the new one is fitted on the
    filtered X of the last of them. The test part is scaled with the statistics of the training part.

    Returns
    -------
    component, y_hat, t_pred, t_ortho
    """
    x_mean, x_std = _column_stats(X[train], center, scale)
    y_mean, y_std = _column_stats(Y[train], center, scale)
    Y_train = _center_scale(Y[train], y_mean, y_std)
    X_train = components[-1].filtered_x if components else _center_scale(X[train], x_mean, x_std)

    component = opls_nipals(X_train, Y_train)
    predictor = nipals(component.filtered_x, Y_train)

    E = _center_scale(X[test], x_mean, x_std)
    for fitted in components + [component]:
        t_ortho = np.dot(E, fitted.w_ortho)
        E = E - np.dot(t_ortho, fitted.p_ortho.T)
    t_pred = np.dot(E, predictor.w)
    y_hat = predictor.betas * np.dot(t_pred, predictor.q.T)
    return component, y_hat, t_pred, t_ortho


class OPLS(BaseEstimator, TransformerMixin):
    """Orthogonal Projection to Latent Structures (O-PLS) with cross-validated choice of the number of components

    Orthogonal components are added one at a time. For every number of components the model is cross-validated
    (Q2y, and the area under the ROC curve for discriminant analysis) and refitted on all the data (R2x, R2y).
    Components are added until one more component improves the cross-validated statistic by less than 0.05.

    Numeric labels give an O-PLS regression. Any other labels give an O-PLS discriminant analysis (OPLS-DA):
    two classes are coded as one column of -1/1, more classes as one -1/1 column per class (one versus rest).

    Parameters
    ----------
    center : boolean, center data? (default True)

    scale : boolean, scale data? (default True)

    folds : sequence of folds or cross-validator, optional
        Either (train_index, test_index) pairs, mappings with trainIndex/testIndex keys, or an object with a
        split(X, y) method such as sklearn.model_selection.KFold. If None, n_folds random folds are used.

    n_folds : int, number of random folds when folds is None (default 7)

    n_components : int, optional
        Fit exactly this many orthogonal components instead of stopping on the cross-validated statistic.

    random_state : int, RandomState instance or None, seed of the random folds

    n_jobs : int or None, optional (default=None)
        The number of CPUs to use to cross-validate the folds.
        ``None`` means 1 unless in a :obj:`joblib.parallel_backend` context.
        ``-1`` means using all processors.

    verbose : integer, optional
        The verbosity level.

    Attributes
    ----------
    mode_ : Mode, regression or discriminant analysis

    binarizer_ : LabelBinarizer coding the classes (discriminant analysis only)

    classes_ : array, class labels (discriminant analysis only)

    n_components_ : int, number of fitted orthogonal components

    overfitted_ : bool, whether fitting stopped because the last component did not improve the cross-validated
        statistic enough

    components_ : list of OrthogonalComponent, fitted on all the data, the i-th one on the filtered X of the
        (i-1)-th one

    predictors_ : list of NipalsComponent, the predictive component fitted on the filtered X of each entry of
        components_

    q_squared_ : list of float, cross-validated Q2y for 1, 2, ... orthogonal components

    auc_ : list of float, cross-validated area under the ROC curve (discriminant analysis only)

    r_squared_x_ : list of float, R2x of the predictive component for 1, 2, ... orthogonal components

    r_squared_y_ : list of float, R2y for 1, 2, ... orthogonal components

    t_cv_ : list of arrays [n_samples, 1], cross-validated predictive scores

    t_ortho_cv_ : list of arrays [n_samples, 1], cross-validated orthogonal scores of the last component

    y_hat_cv_ : list of arrays [n_samples, n_targets], cross-validated predictions (scaled)

    y_hat_ : array [n_samples, n_targets], fitted values of the final model (scaled)

    x_ortho_ : array [n_samples, n_features], orthogonal variation removed from the scaled X

    x_residual_ : array [n_samples, n_features], residual of X after the final predictive component

    y_residual_ : array [n_samples, n_targets], residual of Y after the final predictive component

    x_mean_ : mean of the X provided to fit()
    y_mean_ : mean of the Y provided to fit()
    x_std_ : std deviation of the X provided to fit()
    y_std_ : std deviation of the Y provided to fit()

    References
    ----------
    Johan Trygg and Svante Wold. Orthogonal projections to latent structures (O-PLS).
    J. Chemometrics 2002; 16: 119-128. DOI: 10.1002/cem.695
    """
    def __init__(self,
                 center=True,
                 scale=True,
                 folds=None,
                 n_folds=7,
                 n_components=None,
                 random_state=None,
                 n_jobs=None,
                 verbose=0):
        self.center = center
        self.scale = scale
        self.folds = folds
        self.n_folds = n_folds
        self.n_components = n_components
        self.random_state = random_state
        self.n_jobs = n_jobs
        self.verbose = verbose

    def _encode_target(self, y):
        if self.mode_ is Mode.REGRESSION:
            self.binarizer_ = None
            self.classes_ = None
            return y.astype(np.float64).reshape(-1, 1)
        self.binarizer_ = LabelBinarizer(neg_label=-1, pos_label=1).fit(y)
        self.classes_ = self.binarizer_.classes_
        if len(self.classes_) < 2:
            raise ValueError('Discriminant analysis needs at least two classes')
        return self.binarizer_.transform(y).astype(np.float64)

    def _auc(self, y, y_hat):
        if len(self.classes_) == 2:
            return discriminator_roc_auc(y == self.classes_[1], y_hat[:, 0])
        return np.mean([discriminator_roc_auc(y == label, y_hat[:, j]) for j, label in enumerate(self.classes_)])

    def fit(self, X, y):
        """Fit the model, choosing the number of orthogonal components by cross-validation.

        Parameters
        ----------
        X : array-like, shape = [n_samples, n_features]
            Training vectors, where n_samples is the number of samples and
            n_features is the number of predictors.

        y : array-like, shape = [n_samples]
            Numeric response (regression) or class labels (discriminant analysis).
        """
        def _log(txt):
            if self.verbose in range(1, 51):
                stderr.write(txt + '\n')
            if self.verbose > 50:
                print(txt)

        X = check_array(X, dtype=np.float64, copy=True, ensure_min_samples=2, ensure_min_features=2)
        y = column_or_1d(check_array(y, dtype=None, ensure_2d=False))
        check_consistent_length(X, y)

        max_components = X.shape[1] - 1
        if self.n_components is not None and not 1 <= self.n_components <= max_components:
            raise ValueError(f'n_components must be between 1 and {max_components}, got {self.n_components}')

        self.mode_ = Mode.from_labels(y)
        Y = self._encode_target(y)
        folds = _check_folds(self.folds, X, y, self.n_folds, self.random_state)
        _log(f'O-PLS {self.mode_.value} with {len(folds)} folds.')

        self.x_mean_, self.x_std_ = _column_stats(X, self.center, self.scale)
        self.y_mean_, self.y_std_ = _column_stats(Y, self.center, self.scale)
        X_scaled = _center_scale(X, self.x_mean_, self.x_std_)
        Y_scaled = _center_scale(Y, self.y_mean_, self.y_std_)
        tss_x = tss(X_scaled)
        tss_y = tss(Y_scaled)

        discrimination = self.mode_ is Mode.DISCRIMINANT_ANALYSIS
        fold_components = [[] for _ in folds]
        components = []
        predictors = []
        q_squared, auc, r_squared_x, r_squared_y = [], [], [], []
        t_cv, t_ortho_cv, y_hat_cv = [], [], []
        filtered_x = X_scaled
        parallel = Parallel(n_jobs=self.n_jobs, verbose=self.verbose)

        overfitted = False
        while True:
            nc = len(components)
            results = parallel(delayed(_fit_fold)(X, Y, train, test, fold_components[f], self.center, self.scale)
                               for f, (train, test) in enumerate(folds))

            y_hat = np.zeros_like(Y_scaled)
            t_pred = np.zeros((X.shape[0], 1))
            t_ortho = np.zeros((X.shape[0], 1))
            for f, ((_, test), (component, fold_y_hat, fold_t_pred, fold_t_ortho)) in enumerate(zip(folds, results)):
                fold_components[f].append(component)
                y_hat[test] = fold_y_hat
                t_pred[test] = fold_t_pred
                t_ortho[test] = fold_t_ortho
            t_cv.append(t_pred)
            t_ortho_cv.append(t_ortho)
            y_hat_cv.append(y_hat)

            q_squared.append(1 - tss(Y_scaled - y_hat) / tss_y)
            if discrimination:
                auc.append(self._auc(y, y_hat))

            # refit on all the data
            component = opls_nipals(filtered_x, Y_scaled)
            predictor = nipals(component.filtered_x, Y_scaled)
            filtered_x = component.filtered_x
            fitted = predictor.betas * np.dot(np.dot(filtered_x, predictor.w), predictor.q.T)
            r_squared_y.append(1 - tss(Y_scaled - fitted) / tss_y)
            r_squared_x.append(tss(np.dot(predictor.t, predictor.p.T)) / tss_x)
            components.append(component)
            predictors.append(predictor)

            values = auc if discrimination else q_squared
            _log(f'{nc + 1} orthogonal component(s): Q2y={q_squared[nc]:.4f} R2y={r_squared_y[nc]:.4f}'
                 + (f' AUC={auc[nc]:.4f}' if discrimination else ''))

            if self.n_components is not None:
                if nc + 1 == self.n_components:
                    break
            elif nc > 0 and values[nc] - values[nc - 1] < _OVERFIT_THRESHOLD:
                _log(f'Stopping: component {nc + 1} improved the cross-validated statistic by less than '
                     f'{_OVERFIT_THRESHOLD}.')
                overfitted = True
                break
            elif nc + 1 == max_components:
                _log(f'Stopping: no orthogonal direction left after {nc + 1} component(s).')
                break

        self.n_components_ = len(components)
        self.overfitted_ = overfitted
        self.components_ = components
        self.predictors_ = predictors
        self.q_squared_ = q_squared
        self.auc_ = auc if discrimination else None
        self.r_squared_x_ = r_squared_x
        self.r_squared_y_ = r_squared_y
        self.t_cv_ = t_cv
        self.t_ortho_cv_ = t_ortho_cv
        self.y_hat_cv_ = y_hat_cv
        self.y_hat_ = fitted
        self.x_ortho_ = X_scaled - filtered_x
        self.x_residual_ = predictors[-1].x_residual
        self.y_residual_ = predictors[-1].y_residual
        return self

    def _check_n_components(self, n_components):
        check_is_fitted(self, 'components_')
        if n_components is None:
            if self.mode_ is Mode.DISCRIMINANT_ANALYSIS and self.overfitted_:
                # the last component is the one that did not improve the AUC enough
                return max(self.n_components_ - 1, 1)
            return self.n_components_
        if not 1 <= n_components <= self.n_components_:
            raise ValueError(f'n_components must be between 1 and {self.n_components_}, got {n_components}')
        return n_components

    def _filter(self, X, n_components):
        E = _center_scale(check_array(X, dtype=np.float64), self.x_mean_, self.x_std_)
        t_ortho = None
        for component in self.components_[:n_components]:
            t_ortho = np.dot(E, component.w_ortho)
            E = E - np.dot(t_ortho, component.p_ortho.T)
        return E, t_ortho

    def transform(self, X, n_components=None):
        """Get the non-orthogonal part of X (which is considered in prediction).

        Parameters
        ----------
        X : array-like, shape = [n_samples, n_features]
            Training or test vectors, with the predictors the model was trained on.

        n_components : int, number of orthogonal components to remove (see predict)

        Returns
        -------
        X_res, the centered and scaled X with the orthogonal data filtered out
        """
        return self._filter(X, self._check_n_components(n_components))[0]

    def predict_scores(self, X, n_components=None):
        """Predictive scores, orthogonal scores and predictions (in scaled units) of new data.

        Returns
        -------
        dict with keys t_pred [n_samples, 1], t_ortho [n_samples, 1] and y_hat [n_samples, n_targets]
        """
        n_components = self._check_n_components(n_components)
        E, t_ortho = self._filter(X, n_components)
        predictor = self.predictors_[n_components - 1]
        t_pred = np.dot(E, predictor.w)
        y_hat = predictor.betas * np.dot(t_pred, predictor.q.T)
        return {'t_pred': t_pred, 't_ortho': t_ortho, 'y_hat': y_hat}

    def _labels(self, y_hat):
        y_pred = y_hat * self.y_std_ + self.y_mean_
        if self.mode_ is Mode.REGRESSION:
            return y_pred.ravel()
        return self.binarizer_.inverse_transform(y_pred)

    def predict(self, X, n_components=None):
        """Predict the response (regression) or the class (discriminant analysis) of new data.

        Parameters
        ----------
        X : array-like, shape = [n_samples, n_features]

        n_components : int, optional
            Number of orthogonal components to remove before the prediction. Defaults to all the fitted
            components, except for discriminant analysis stopped by a component that did not improve the AUC
            enough: that last component is left out.
        """
        return self._labels(self.predict_scores(X, n_components)['y_hat'])

    def evaluate(self, X, y, n_components=None):
        """Predict new data with known responses.

        Returns
        -------
        The dict of predict_scores() with, for regression, q_squared, and, for discriminant analysis,
        y_pred, confusion_matrix (rows are the true classes in the order of classes_) and auc.
        """
        results = self.predict_scores(X, n_components)
        y = column_or_1d(check_array(y, dtype=None, ensure_2d=False))
        check_consistent_length(results['y_hat'], y)
        if self.mode_ is Mode.REGRESSION:
            y_scaled = _center_scale(y.astype(np.float64).reshape(-1, 1), self.y_mean_, self.y_std_)
            results['q_squared'] = 1 - tss(y_scaled - results['y_hat']) / tss(y_scaled)
        else:
            results['y_pred'] = self._labels(results['y_hat'])
            results['confusion_matrix'] = confusion_matrix(y, results['y_pred'], labels=self.classes_)
            results['auc'] = self._auc(y, results['y_hat'])
        return results

    def score(self, X, y, sample_weight=None):
        """Q2y of the predictions (regression) or area under the ROC curve (discriminant analysis)."""
        results = self.evaluate(X, y)
        return results['q_squared'] if self.mode_ is Mode.REGRESSION else results['auc']

    def get_scores(self):
        """Cross-validated predictive and orthogonal scores, one array per number of components."""
        check_is_fitted(self, 't_cv_')
        return [t.ravel() for t in self.t_cv_], [t.ravel() for t in self.t_ortho_cv_]

    def to_json(self):
        """Export the fitted model as a JSON-serializable dict."""
        check_is_fitted(self, 'components_')
        return {
            'name': 'OPLS',
            'center': self.center,
            'scale': self.scale,
            'n_folds': self.n_folds,
            'n_components': self.n_components,
            'overfitted': self.overfitted_,
            'mode': self.mode_.value,
            'classes': _to_list(self.classes_),
            'x_mean': _to_list(self.x_mean_),
            'x_std': _to_list(self.x_std_),
            'y_mean': _to_list(self.y_mean_),
            'y_std': _to_list(self.y_std_),
            'components': [{key: _to_list(value) for key, value in c._asdict().items()} for c in self.components_],
            'predictors': [{key: _to_list(value) for key, value in p._asdict().items()} for p in self.predictors_],
            'q_squared': _to_list(self.q_squared_),
            'auc': _to_list(self.auc_),
            'r_squared_x': _to_list(self.r_squared_x_),
            'r_squared_y': _to_list(self.r_squared_y_),
            't_cv': _to_list(self.t_cv_),
            't_ortho_cv': _to_list(self.t_ortho_cv_),
            'y_hat_cv': _to_list(self.y_hat_cv_),
            'y_hat': _to_list(self.y_hat_),
            'x_ortho': _to_list(self.x_ortho_),
        }

    @classmethod
    def load(cls, model):
        """Rebuild a fitted O-PLS model from the output of to_json()."""
        _check_model_name(model, 'OPLS')
        estimator = cls(center=model['center'], scale=model['scale'], n_folds=model['n_folds'],
                        n_components=model['n_components'])
        estimator.mode_ = Mode(model['mode'])
        if estimator.mode_ is Mode.DISCRIMINANT_ANALYSIS:
            estimator.binarizer_ = LabelBinarizer(neg_label=-1, pos_label=1).fit(np.asarray(model['classes']))
            estimator.classes_ = estimator.binarizer_.classes_
        else:
            estimator.binarizer_ = None
            estimator.classes_ = None
        estimator.x_mean_ = _to_array(model['x_mean'])
        estimator.x_std_ = _to_array(model['x_std'])
        estimator.y_mean_ = _to_array(model['y_mean'])
        estimator.y_std_ = _to_array(model['y_std'])
        estimator.components_ = [OrthogonalComponent(**{key: _to_array(value) for key, value in c.items()})
                                 for c in model['components']]
        estimator.predictors_ = [NipalsComponent(**{key: value if key == 'betas' else _to_array(value)
                                                    for key, value in p.items()})
                                 for p in model['predictors']]
        estimator.n_components_ = len(estimator.components_)
        estimator.overfitted_ = model['overfitted']
        estimator.q_squared_ = model['q_squared']
        estimator.auc_ = model['auc']
        estimator.r_squared_x_ = model['r_squared_x']
        estimator.r_squared_y_ = model['r_squared_y']
        estimator.t_cv_ = [_to_array(t) for t in model['t_cv']]
        estimator.t_ortho_cv_ = [_to_array(t) for t in model['t_ortho_cv']]
        estimator.y_hat_cv_ = [_to_array(y) for y in model['y_hat_cv']]
        estimator.y_hat_ = _to_array(model['y_hat'])
        estimator.x_ortho_ = _to_array(model['x_ortho'])
        estimator.x_residual_ = estimator.predictors_[-1].x_residual
        estimator.y_residual_ = estimator.predictors_[-1].y_residual
        return estimator
