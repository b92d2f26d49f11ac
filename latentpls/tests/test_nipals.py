import numpy as np
import pytest
from sklearn.exceptions import ConvergenceWarning


@pytest.fixture
def data():
    rng = np.random.RandomState(42)
    X = rng.normal(size=(40, 4)) * np.array([5.0, 2.0, 1.0, 0.5])
    X = X - X.mean(axis=0)
    y = np.dot(X, np.array([[0.5], [1.0], [0.0], [-2.0]])) + rng.normal(scale=0.1, size=(40, 1))
    return X, y - y.mean(axis=0)


def test_pca_mode_gives_first_principal_component(data):
    from latentpls import nipals
    X, _ = data
    component = nipals(X)
    U, s, _ = np.linalg.svd(X, full_matrices=False)
    assert np.allclose(np.abs(component.t.ravel()), np.abs(U[:, 0] * s[0]), atol=1e-4)
    assert component.p is None
    assert component.q is None
    assert component.betas is None
    assert component.y_residual is None
    assert np.allclose(component.x_residual, X - np.dot(component.t, component.w.T))


def test_pls_mode(data):
    from latentpls import nipals
    X, y = data
    component = nipals(X, y)
    assert component.w.shape == (4, 1)
    assert component.t.shape == (40, 1)
    assert np.linalg.norm(component.w) == pytest.approx(1.0)
    assert np.linalg.norm(component.p) == pytest.approx(1.0)
    # the scores lie in the column space of X
    assert np.allclose(component.t, np.dot(X, component.w), rtol=1e-12, atol=1e-12)
    # with a single response the weights are the normalized covariance of X and y
    expected = np.dot(X.T, y) / np.linalg.norm(np.dot(X.T, y))
    assert np.allclose(component.w, expected)
    assert np.abs(component.q) == pytest.approx(np.ones((1, 1)))
    tt = np.dot(component.t.T, component.t).item()
    assert component.betas == pytest.approx(np.dot(component.u.T, component.t).item() / tt)
    assert np.allclose(component.y_residual, y - component.betas * np.dot(component.t, component.q.T))
    assert np.allclose(component.x_residual, X - np.dot(component.t, component.p.T))


def test_one_dimensional_response(data):
    from latentpls import nipals
    X, y = data
    assert np.allclose(nipals(X, y.ravel()).t, nipals(X, y).t)


def test_initial_scores(data):
    from latentpls import nipals
    X, _ = data
    component = nipals(X, u=X[:, 1])
    assert np.allclose(np.abs(component.t), np.abs(nipals(X).t), atol=1e-4)


def test_not_converged(data):
    from latentpls import nipals
    X, y = data
    with pytest.warns(ConvergenceWarning):
        nipals(X, y, max_iter=1)


def test_inconsistent_length(data):
    from latentpls import nipals
    X, y = data
    with pytest.raises(ValueError):
        nipals(X, y[:-1])


def test_zero_seed():
    from latentpls import nipals
    with pytest.raises(FloatingPointError):
        nipals(np.zeros((5, 3)))
