# Copyright (c) 2019 Wright State University
# Author: Daniel Foose <foose.3@wright.edu>
# License: MIT

import numpy as np
from sklearn.metrics.pairwise import pairwise_kernels
from sklearn.utils import check_array


class Kernel:
    """Kernel function used by K-OPLS.

    Parameters
    ----------
    kernel : string or callable
        Any metric accepted by sklearn.metrics.pairwise.pairwise_kernels ('linear', 'rbf', 'poly', ...) or
        'gaussian', the rbf kernel parametrized by its width sigma: exp(-|x - y|^2 / (2 sigma^2)).

    **params :
        Keyword arguments of the kernel (gamma, degree, coef0, ... or sigma for 'gaussian').

    Examples
    --------
    >>> kernel = Kernel('gaussian', sigma=25)
    >>> K = kernel.compute(X_train)
    >>> K_test = kernel.compute(X_test, X_train)
    """
    def __init__(self, kernel='linear', **params):
        self.kernel = kernel
        self.params = params

    def _metric(self):
        if self.kernel == 'gaussian':
            params = dict(self.params)
            sigma = params.pop('sigma', 1.0)
            params['gamma'] = 1.0 / (2.0 * sigma ** 2)
            return 'rbf', params
        return self.kernel, self.params

    def compute(self, A, B=None):
        """Gram matrix of A with itself, or the cross Gram matrix of A (rows) and B (columns)."""
        A = check_array(A, dtype=np.float64)
        if B is not None:
            B = check_array(B, dtype=np.float64)
        metric, params = self._metric()
        return pairwise_kernels(A, B, metric=metric, **params)

    def __repr__(self):
        params = ', '.join(f'{key}={value!r}' for key, value in self.params.items())
        return f'Kernel({self.kernel!r}{", " + params if params else ""})'
