# Copyright (c) 2019 Wright State University
# Author: Daniel Foose <foose.3@wright.edu>
# License: MIT

import numpy as np


def _center_scale_xy(X, Y, center=True, scale=True):
    """ Center X, Y and scale if the scale parameter==True

    Standard deviations use ddof=1. Columns without variance keep a standard deviation of 1.

    Returns
    -------
        X, Y, x_mean, y_mean, x_std, y_std
    """
    x_mean, x_std = _column_stats(X, center, scale)
    y_mean, y_std = _column_stats(Y, center, scale)
    return (_center_scale(X, x_mean, x_std), _center_scale(Y, y_mean, y_std),
            x_mean, y_mean, x_std, y_std)


def _column_stats(X, center=True, scale=True):
    """Column means and standard deviations used to center and scale X."""
    if center:
        mean = X.mean(axis=0)
    else:
        mean = np.zeros(X.shape[1])
    if scale:
        std = X.std(axis=0, ddof=1)
        std[std == 0.0] = 1.0
    else:
        std = np.ones(X.shape[1])
    return mean, std


def _center_scale(X, mean, std):
    return (X - mean) / std


def tss(X):
    """Total sum of squares of X."""
    return np.sum(np.square(X))


def norm(X):
    """Frobenius norm of X (the euclidean norm for vectors)."""
    return np.sqrt(tss(X))


def _check_model_name(model, name):
    if not isinstance(model.get('name'), str):
        raise TypeError('model must have a name property')
    if model['name'] != name:
        raise ValueError(f'invalid model: {model["name"]}')


def _to_list(value):
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return [_to_list(v) for v in value]
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    return value


def _to_array(value):
    return None if value is None else np.asarray(value, dtype=np.float64)
