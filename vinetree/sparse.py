"""Sparse vectors and row-wise sparse matrices tuned for set and get."""

from __future__ import annotations

import bisect


class SparseVector:
    """A vector holding only its nonzero ``(index, value)`` pairs.

    Pairs are kept sorted by index, except after :meth:`set_lazy`, which
    defers sorting until the next lookup.
    """

    def __init__(self, dim):
        self.dim = dim
        self._idx = []
        self._val = []
        self.sorted = True

    def _check(self, idx):
        if not 0 <= idx < self.dim:
            raise IndexError(f"index {idx} out of range for dimension {self.dim}")

    def _ensure_sorted(self):
        if not self.sorted:
            self.sort_by_idx()

    def zero(self):
        """Remove every element."""
        self._idx.clear()
        self._val.clear()

    def copy_from(self, other):
        """Make this vector hold the same elements as ``other``."""
        if other.dim != self.dim:
            raise ValueError("dimension mismatch")
        self._idx = list(other._idx)
        self._val = list(other._val)
        self.sorted = other.sorted

    def set(self, idx, val):
        """Set an element, keeping the index order; zeros are not stored."""
        self._check(idx)
        if val == 0:
            return
        found, lidx = self.bsearch_idx(idx)
        if found:
            self._val[lidx] = val
        else:
            self._idx.insert(lidx + 1, idx)
            self._val.insert(lidx + 1, val)

    def set_sorted(self, idx, val):
        """Append an element whose index exceeds all stored ones."""
        self._check(idx)
        if val == 0:
            return
        self._idx.append(idx)
        self._val.append(val)

    def set_lazy(self, idx, val):
        """Append an element and defer sorting; indices must not repeat."""
        self._check(idx)
        if val == 0:
            return
        self._idx.append(idx)
        self._val.append(val)
        self.sorted = False

    def sort_by_idx(self):
        """Sort the stored elements by index."""
        pairs = sorted(zip(self._idx, self._val), key=lambda p: p[0])
        self._idx = [i for i, _ in pairs]
        self._val = [v for _, v in pairs]
        self.sorted = True

    def get(self, idx):
        """Value at ``idx``, or zero if none is stored."""
        self._check(idx)
        found, lidx = self.bsearch_idx(idx)
        return self._val[lidx] if found else 0.0

    def bsearch_idx(self, idx):
        """Locate ``idx`` among the stored elements.

        Returns ``(True, position)`` if present; otherwise ``(False,
        position)`` where position is that of the largest smaller index,
        or -1 when ``idx`` precedes every stored index.
        """
        self._ensure_sorted()
        pos = bisect.bisect_left(self._idx, idx)
        if pos < len(self._idx) and self._idx[pos] == idx:
            return True, pos
        return False, pos - 1

    def items(self):
        """``(index, value)`` pairs in ascending index order."""
        self._ensure_sorted()
        return list(zip(self._idx, self._val))

    def __len__(self):
        return len(self._idx)


class SparseMatrix:
    """A matrix stored as one :class:`SparseVector` per row."""

    def __init__(self, nrows, ncols):
        self.nrows = nrows
        self.ncols = ncols
        self.rows = [SparseVector(ncols) for _ in range(nrows)]

    def _check(self, row, col):
        if not (0 <= row < self.nrows and 0 <= col < self.ncols):
            raise IndexError(f"({row}, {col}) out of range for {self.nrows}x{self.ncols}")

    def _check_shape(self, other):
        if (other.nrows, other.ncols) != (self.nrows, self.ncols):
            raise ValueError("dimension mismatch")

    def zero(self):
        """Remove every element."""
        for row in self.rows:
            row.zero()

    def copy_from(self, other):
        """Copy every row of ``other`` into this matrix."""
        self._check_shape(other)
        for dest, src in zip(self.rows, other.rows):
            dest.copy_from(src)

    def copy_shallow(self, other):
        """Share the row objects of ``other`` instead of copying them."""
        self._check_shape(other)
        self.rows = list(other.rows)

    def set(self, row, col, val):
        self._check(row, col)
        self.rows[row].set(col, val)

    def set_lazy(self, row, col, val):
        self._check(row, col)
        self.rows[row].set_lazy(col, val)

    def set_sorted(self, row, col, val):
        self._check(row, col)
        self.rows[row].set_sorted(col, val)

    def get(self, row, col):
        self._check(row, col)
        return self.rows[row].get(col)