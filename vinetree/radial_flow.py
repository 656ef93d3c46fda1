"""Radial normalizing flow applied pointwise to a set of embedded points."""

from __future__ import annotations

import math

import numpy as np

RF_EPS = 1e-6
_MIN_RADIUS = 1e-18


def softplus(x):
    """``log(1 + exp(x))`` computed stably."""
    return float(np.logaddexp(0.0, x))


def inv_softplus(y):
    """Inverse of :func:`softplus` for positive ``y``."""
    return math.log(math.expm1(y))


def _sigmoid(x):
    return 1.0 / (1.0 + math.exp(-x))


class RadialFlow:
    """Radial flow ``y = x + beta h(r) (x - ctr)`` with ``h = 1/(alpha + r/r_med)``.

    ``alpha`` and ``beta`` are kept positive through the raw parameters ``a``
    and ``b``.  Vectors are laid out point by point.
    """

    def __init__(self, npoints, ndim):
        self.npoints = npoints
        self.ndim = ndim
        self.ctr = np.zeros(ndim)
        self.ctr_grad = np.zeros(ndim)
        # start close to the identity transformation
        self.a = math.log(math.e - 1)
        self.b = inv_softplus(0.002)
        self.r_med = 1.0
        self.a_grad = 0.0
        self.b_grad = 0.0
        self.center_update = True
        self.alpha = 0.0
        self.beta = 0.0
        self.update()

    def update(self):
        """Recompute ``alpha`` and ``beta`` from ``a`` and ``b``."""
        self.alpha = softplus(self.a) + RF_EPS
        self.beta = softplus(self.b) + RF_EPS

    def rescale(self, scale):
        """Set the radial scale, roughly the median distance from the center."""
        self.r_med = scale

    def _points(self, x):
        x = np.asarray(x, dtype=float)
        if x.shape != (self.npoints * self.ndim,):
            raise ValueError("bad dimension")
        return x.reshape(self.npoints, self.ndim)

    def _radial(self, X):
        diff = X - self.ctr
        r = np.maximum(np.sqrt(np.sum(diff * diff, axis=1)), _MIN_RADIUS)
        rhat = r / self.r_med
        h = 1.0 / (self.alpha + rhat)
        return diff, r, rhat, h

    def forward(self, x):
        """Return the transformed points and the summed log determinant."""
        X = self._points(x)
        diff, _, rhat, h = self._radial(X)
        bh = self.beta * h
        A = 1.0 + bh
        B = A - self.beta * h * h * rhat
        Y = X + bh[:, None] * diff
        logdet = np.sum((self.ndim - 1) * np.log(A) + np.log(B))
        return Y.reshape(-1), float(logdet)

    def backprop(self, x, grad):
        """Gradient with respect to ``x`` given the gradient at the output.

        The log determinant is included.  Parameter gradients are stored in
        ``ctr_grad``, ``a_grad`` and ``b_grad``.
        """
        X = self._points(x)
        G = self._points(grad)
        u, r, rhat, h = self._radial(X)
        beta = self.beta
        dm1 = self.ndim - 1
        u_dot_g = np.sum(u * G, axis=1)
        h2 = h * h
        h_prime = -h2 / self.r_med
        A = 1.0 + beta * h
        B = A + beta * h_prime * r

        dF_drhat = beta * (-dm1 * h2 / A + (-2.0 * h2 + 2.0 * rhat * h2 * h) / B)
        dF_dr = dF_drhat / self.r_med

        gx = (
            A[:, None] * G
            + (beta * h_prime / r * u_dot_g)[:, None] * u
            + (dF_dr / r)[:, None] * u
        )

        alpha_grad = np.sum(
            beta * -h2 * u_dot_g
            + beta * (-dm1 * h2 / A + (-h2 + 2.0 * rhat * h2 * h) / B)
        )
        beta_grad = np.sum(h * u_dot_g + dm1 * h / A + (h + h_prime * r) / B)

        self.ctr_grad = np.sum(
            -beta * h[:, None] * G
            + (beta * h2 / r * u_dot_g)[:, None] * u
            - (dF_dr / r)[:, None] * u,
            axis=0,
        )
        self.a_grad = float(alpha_grad) * _sigmoid(self.a)
        self.b_grad = float(beta_grad) * _sigmoid(self.b)
        return gx.reshape(-1)