import numpy as np
import pytest

from vinetree.radial_flow import RF_EPS, RadialFlow, inv_softplus, softplus


def numeric(f, v, eps=1e-6):
    out = np.zeros_like(v)
    for k in range(len(v)):
        vp = v.copy()
        vm = v.copy()
        vp[k] += eps
        vm[k] -= eps
        out[k] = (f(vp) - f(vm)) / (2 * eps)
    return out


X = np.array([0.5, -1.0, 1.2, 0.3, -0.7, 0.8])
G = np.array([0.2, -0.4, 1.0, 0.5, -0.3, 0.7])


def make_flow():
    rf = RadialFlow(3, 2)
    rf.a = 0.3
    rf.b = 0.8
    rf.ctr = np.array([0.1, -0.2])
    rf.update()
    return rf


def objective(rf, x, g):
    y, logdet = rf.forward(x)
    return float(np.dot(g, y)) + logdet


@pytest.mark.parametrize("y", [0.002, 0.5, 3.0])
def test_softplus_round_trip(y):
    assert softplus(inv_softplus(y)) == pytest.approx(y, rel=1e-10)


def test_initial_alpha_is_one():
    rf = RadialFlow(2, 2)
    assert rf.alpha == pytest.approx(1.0 + RF_EPS)
    assert rf.beta == pytest.approx(0.002 + RF_EPS)


def test_initial_flow_is_near_identity():
    rf = RadialFlow(3, 2)
    y, logdet = rf.forward(X)
    assert np.allclose(y, X, atol=0.01)
    assert abs(logdet) < 0.05


def test_input_gradient_matches_finite_difference():
    rf = make_flow()
    rf.rescale(1.7)
    gx = rf.backprop(X, G)
    expected = numeric(lambda v: objective(rf, v, G), X)
    assert np.allclose(gx, expected, rtol=1e-5, atol=1e-7)


def test_parameter_gradients_match_finite_difference():
    rf = make_flow()
    rf.backprop(X, G)
    a0, b0, c0 = rf.a, rf.b, rf.ctr.copy()

    def with_ab(v):
        rf.a, rf.b = v
        rf.update()
        return objective(rf, X, G)

    dab = numeric(with_ab, np.array([a0, b0]))
    rf.a, rf.b = a0, b0
    rf.update()

    def with_ctr(c):
        rf.ctr = c
        return objective(rf, X, G)

    dctr = numeric(with_ctr, c0.copy())
    rf.ctr = c0
    assert rf.a_grad == pytest.approx(dab[0], rel=1e-5, abs=1e-7)
    assert rf.b_grad == pytest.approx(dab[1], rel=1e-5, abs=1e-7)
    assert np.allclose(rf.ctr_grad, dctr, rtol=1e-5, atol=1e-7)


def test_bad_dimension_raises():
    rf = RadialFlow(3, 2)
    with pytest.raises(ValueError):
        rf.forward(np.zeros(4))