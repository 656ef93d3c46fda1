"""Planar normalizing flow applied pointwise to a set of embedded points."""

from __future__ import annotations

import numpy as np

PF_EPS = 1e-9


class PlanarFlow:
    """Planar flow ``y = x + u tanh(w.x + b)`` shared by all points.

    Vectors are laid out point by point: ``npoints`` blocks of ``ndim``.
    """

    def __init__(self, npoints, ndim, rng=None):
        rng = np.random.default_rng() if rng is None else rng
        self.npoints = npoints
        self.ndim = ndim
        # small random start keeps the layer near identity but not dead
        self.u = rng.normal(0.0, 0.5, ndim)
        self.w = rng.normal(0.0, 0.5, ndim)
        self.b = 0.0
        self.u_grad = np.zeros(ndim)
        self.w_grad = np.zeros(ndim)
        self.b_grad = 0.0

    def _points(self, x):
        x = np.asarray(x, dtype=float)
        if x.shape != (self.npoints * self.ndim,):
            raise ValueError("bad dimension")
        return x.reshape(self.npoints, self.ndim)

    def forward(self, x):
        """Return the transformed points and the summed log determinant."""
        X = self._points(x)
        t = np.tanh(X @ self.w + self.b)
        dt = 1.0 - t * t
        Y = X + np.outer(t, self.u)
        det = 1.0 + dt * float(np.dot(self.u, self.w))
        det = np.where(det <= PF_EPS, PF_EPS, det)
        return Y.reshape(-1), float(np.sum(np.log(det)))

    def backprop(self, x, grad):
        """Gradient with respect to ``x`` given the gradient at the output.

        The log determinant is included.  Parameter gradients are stored in
        ``u_grad``, ``w_grad`` and ``b_grad``.
        """
        X = self._points(x)
        G = self._points(grad)
        t = np.tanh(X @ self.w + self.b)
        dt = 1.0 - t * t
        u_dot_w = float(np.dot(self.u, self.w))
        u_dot_g = G @ self.u
        denom = 1.0 + dt * u_dot_w
        denom = np.where(denom <= PF_EPS, PF_EPS, denom)
        coeff = (-2.0 * t * dt * u_dot_w) / denom
        path = u_dot_g * dt

        gx = G + np.outer(path + coeff, self.w)
        inv = np.sum(dt / denom)
        self.u_grad = t @ G + inv * self.w
        self.w_grad = (path + coeff) @ X + inv * self.u
        self.b_grad = float(np.sum(path + coeff))
        return gx.reshape(-1)