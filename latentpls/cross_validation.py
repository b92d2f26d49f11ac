# Copyright (c) 2019 Wright State University
# Author: Daniel Foose <foose.3@wright.edu>
# License: MIT

import numbers
from collections.abc import Mapping

import numpy as np
from sklearn.utils import check_random_state


def get_folds(labels, k=5, random_state=None):
    """Random k-fold partition of the samples.

    Every fold but the last holds floor(n_samples / k) test samples, the last one also takes the remaining
    samples, so every sample is tested exactly once.

    Parameters
    ----------
    labels : int or array-like
        The number of samples, or anything with one entry per sample (e.g. the labels).

    k : int, number of folds (default 5)

    random_state : int, RandomState instance or None, optional (default=None)
        If int, random_state is the seed used by the random number generator;
        If RandomState instance, random_state is the random number generator;
        If None, the random number generator is the RandomState instance used
        by `np.random`.

    Returns
    -------
    folds : list of (train_index, test_index) tuples of sorted integer arrays
    """
    n_samples = labels if isinstance(labels, numbers.Integral) else len(labels)
    if not 2 <= k <= n_samples:
        raise ValueError(f'Cannot make {k} folds out of {n_samples} samples')

    order = check_random_state(random_state).permutation(n_samples)
    size = n_samples // k
    tests = [order[i * size:(i + 1) * size] for i in range(k - 1)] + [order[(k - 1) * size:]]
    return [(np.sort(np.concatenate(tests[:i] + tests[i + 1:])), np.sort(test)) for i, test in enumerate(tests)]


def _check_folds(folds, X, y, n_folds=7, random_state=None):
    """Turn the folds argument of an estimator into a list of (train_index, test_index) arrays.

    folds may be None (random folds from get_folds), a scikit-learn cross-validator, or a sequence of
    (train_index, test_index) pairs or of mappings with trainIndex/testIndex (or train_index/test_index) keys.
    """
    if folds is None:
        return get_folds(len(X), n_folds, random_state)
    if hasattr(folds, 'split'):
        folds = folds.split(X, y)

    checked = []
    for fold in folds:
        if isinstance(fold, Mapping):
            train = fold['trainIndex'] if 'trainIndex' in fold else fold['train_index']
            test = fold['testIndex'] if 'testIndex' in fold else fold['test_index']
        else:
            train, test = fold
        checked.append((np.asarray(train, dtype=int), np.asarray(test, dtype=int)))
    if not checked:
        raise ValueError('At least one fold is required')
    return checked
