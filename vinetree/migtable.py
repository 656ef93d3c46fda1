"""Tables of cell migration states and their reversible rate model."""

from __future__ import annotations

import numpy as np

_MIN_PARAM_SD = 0.1
_EQUAL_EVAL_TOL = 1e-8


class MigTable:
    """Cells labelled with discrete states, plus a reversible rate matrix.

    The rate matrix has one free parameter per unordered pair of states.
    Parameter ``k`` belongs to the ``k``-th pair ``(i, j)`` with ``i < j``
    in row-major order, and sets ``Q[i, j] = r * pi[j]`` and
    ``Q[j, i] = r * pi[i]``, where ``pi`` are the background frequencies.
    """

    def __init__(self, cellnames, statenames, states, rng=None):
        self.cellnames = list(cellnames)
        self.statenames = list(statenames)
        self.states = [int(s) for s in states]
        if len(self.cellnames) != len(self.states):
            raise ValueError("number of cell names must match number of states")
        if len(set(self.statenames)) != len(self.statenames):
            raise ValueError("state names must be distinct")
        for state in self.states:
            if not 0 <= state < len(self.statenames):
                raise ValueError(f"state index {state} out of range")
        self.statehash = {name: i for i, name in enumerate(self.statenames)}
        self.rng = np.random.default_rng() if rng is None else rng
        self.primary_state = None
        self.update_states()

    @property
    def nstates(self):
        return len(self.statenames)

    @property
    def ncells(self):
        return len(self.cellnames)

    @property
    def nparams(self):
        return self.nstates * (self.nstates - 1) // 2

    @classmethod
    def read(cls, stream, rng=None):
        """Read a table of ``cell,state`` lines; lines starting ``#`` are skipped."""
        cellnames = []
        statenames = []
        statehash = {}
        states = []
        for lineno, raw in enumerate(stream, 1):
            line = raw.rstrip("\r\n")
            if line.startswith("#"):
                continue
            cols = line.split(",")
            if len(cols) != 2:
                raise ValueError(
                    f"line {lineno}: each line must have two columns (comma-delimited)"
                )
            cellname, statename = cols[0], cols[1].strip()
            stateno = statehash.get(statename)
            if stateno is None:
                stateno = len(statenames)
                statehash[statename] = stateno
                statenames.append(statename)
            cellnames.append(cellname)
            states.append(stateno)
        return cls(cellnames, statenames, states, rng)

    def set_primary_state(self, label):
        """Force the root to start in the state named ``label``."""
        if label not in self.statehash:
            raise KeyError(f"unknown state '{label}'")
        self.primary_state = self.statehash[label]
        return self.primary_state

    def update_states(self):
        """Reset parameters, frequencies and rate matrix for the current states."""
        if self.nstates == 0:
            raise ValueError("migration table has no states")
        n = self.nstates
        self.gtr_params = self.rng.normal(1.0, _MIN_PARAM_SD, self.nparams)
        self.deriv_gtr = np.zeros(self.nparams)
        self.backgd_freqs = np.full(n, 1.0 / n)
        self.rate_matrix = np.zeros((n, n))
        self.param_positions = []
        self.evals = None
        self.evecs = None
        self.evecs_inv = None
        self.set_rev_matrix(self.gtr_params)

    def check_against(self, cellnames):
        """Check that the cells are exactly those of another table."""
        cellnames = list(cellnames)
        if len(cellnames) != self.ncells:
            raise ValueError(
                "migration table and mutation table have different numbers of cells"
            )
        known = set(cellnames)
        for name in self.cellnames:
            if name not in known:
                raise ValueError(
                    f"cell '{name}' in migration table not found in mutation table"
                )

    def _diagonalize(self):
        try:
            evals, evecs = np.linalg.eig(self.rate_matrix)
            evecs = np.real(evecs)
            evecs_inv = np.linalg.inv(evecs)
        except np.linalg.LinAlgError:
            self.evals = self.evecs = self.evecs_inv = None
            return
        self.evals = np.real(evals)
        self.evecs = evecs
        self.evecs_inv = evecs_inv

    def _require_eigen(self):
        if self.evals is None:
            self._diagonalize()
        if self.evals is None:
            raise ValueError("rate matrix could not be diagonalized")

    def set_rev_matrix(self, params):
        """Build the reversible rate matrix from the free parameters."""
        params = np.array(params, dtype=float)
        if params.shape != (self.nparams,):
            raise ValueError("wrong number of rate parameters")
        if self.backgd_freqs is None:
            raise ValueError("background frequencies are not set")
        self.gtr_params = params
        n = self.nstates
        pi = self.backgd_freqs
        Q = np.zeros((n, n))
        positions = []
        k = 0
        for i in range(n):
            for j in range(i + 1, n):
                Q[i, j] = params[k] * pi[j]
                Q[j, i] = params[k] * pi[i]
                positions.append(((i, j), (j, i)))
                k += 1
        np.fill_diagonal(Q, 0.0)
        np.fill_diagonal(Q, -Q.sum(axis=1))
        self.rate_matrix = Q
        self.param_positions = positions
        self._diagonalize()

    def scale_rate_matrix(self):
        """Scale the rate matrix to one expected transition per unit time."""
        Q = self.rate_matrix
        offdiag = Q.sum(axis=1) - np.diag(Q)
        scale = float(np.dot(self.backgd_freqs, offdiag))
        if scale == 0:
            raise ValueError("rate matrix has no transitions to scale")
        self.rate_matrix = Q / scale
        self._diagonalize()

    def transition_matrix(self, t):
        """Transition probabilities ``exp(Q t)`` over a branch of length ``t``."""
        if t == 0:
            return np.eye(self.nstates)
        self._require_eigen()
        P = (self.evecs * np.exp(self.evals * t)) @ self.evecs_inv
        return np.maximum(P, 0.0)

    def grad_dt(self, t):
        """Derivative of the transition matrix with respect to ``t``."""
        if t == 0:
            return self.rate_matrix.copy()
        self._require_eigen()
        lam = self.evals
        return (self.evecs * (lam * np.exp(lam * t))) @ self.evecs_inv

    def grad_dr(self, t):
        """Derivatives of the transition matrix for each rate parameter."""
        self._require_eigen()
        n = self.nstates
        S, Sinv, lam = self.evecs, self.evecs_inv, self.evals
        exps = np.exp(lam * t)
        F = np.empty((n, n))
        for i in range(n):
            for j in range(n):
                if abs(lam[i] - lam[j]) < _EQUAL_EVAL_TOL:
                    F[i, j] = exps[i] * t
                else:
                    F[i, j] = (exps[i] - exps[j]) / (lam[i] - lam[j])

        grads = []
        for positions in self.param_positions:
            dq = np.zeros((n, n))
            for row, col in positions:
                if dq[row, col] != 0:
                    raise ValueError(f"duplicate rate matrix position ({row}, {col})")
                dq[row, col] = self.backgd_freqs[col]
                dq[row, row] -= dq[row, col]
            sinv_dq_s = Sinv @ dq @ S
            grads.append(S @ ((F * sinv_dq_s) @ Sinv))
        return grads