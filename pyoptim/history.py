"""Bounded curvature history for limited-memory quasi-Newton methods."""

from typing import Iterator, Tuple

import numpy as np
import numpy.typing as npt


class HistoryBuffer:
    r"""Fixed-capacity ring of (s, y) pairs.

    s_k = x_{k+1} - x_k and y_k = g_{k+1} - g_k. Storage is allocated once, as two
    (m, n) arrays; appending to a full buffer overwrites the oldest pair, so the
    buffer never holds more than m pairs.

    Parameters
    ----------
     capacity : int
        Maximum number of pairs, m.
     dimension : int
        Length of each vector, n.

    """

    def __init__(self, capacity: int, dimension: int) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1.")
        self.capacity = capacity
        self.dimension = dimension
        self._s = np.zeros((capacity, dimension))
        self._y = np.zeros((capacity, dimension))
        self._rho = np.zeros(capacity)
        self._head = 0
        self._length = 0

    def __len__(self) -> int:
        return self._length

    def append(self, s: npt.NDArray[np.float64], y: npt.NDArray[np.float64]) -> None:
        """Store a pair, evicting the oldest one if the buffer is full.

        The caller is responsible for only storing pairs with s^T * y > 0.

        """
        sy = np.dot(s, y)
        if sy <= 0:
            raise ValueError("Curvature pair must satisfy s^T * y > 0.")

        if self._length == self.capacity:
            idx = self._head
            self._head = (self._head + 1) % self.capacity
        else:
            idx = (self._head + self._length) % self.capacity
            self._length += 1
        self._s[idx] = s
        self._y[idx] = y
        self._rho[idx] = 1.0 / sy

    def clear(self) -> None:
        """Forget all pairs."""
        self._head = 0
        self._length = 0

    def _index(self, i: int) -> int:
        if i < 0:
            i += self._length
        if not 0 <= i < self._length:
            raise IndexError("history index out of range")
        return (self._head + i) % self.capacity

    def __getitem__(
        self, i: int
    ) -> Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64], float]:
        """Get (s, y, rho) for the i-th oldest pair."""
        idx = self._index(i)
        return self._s[idx], self._y[idx], self._rho[idx]

    def __iter__(
        self,
    ) -> Iterator[Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64], float]]:
        """Iterate from oldest to newest."""
        for i in range(self._length):
            yield self[i]

    def newest(
        self,
    ) -> Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64], float]:
        """Get the most recent pair."""
        return self[-1]


def two_loop_recursion(
    history: HistoryBuffer, g: npt.NDArray[np.float64]
) -> npt.NDArray[np.float64]:
    r"""Calculate -H_k * g for the L-BFGS inverse Hessian approximation H_k.

    H_k is never formed. The initial approximation is gamma * I, with
       gamma = s^T * y / y^T * y
    for the newest pair (gamma = 1 if the history is empty). Runs in O(n * m) time.
    See Nocedal and Wright, Numerical Optimization, Algorithm 7.4.

    """
    q = g.astype(np.float64, copy=True)
    m = len(history)
    alpha = np.zeros(m)
    for i in range(m - 1, -1, -1):
        s, y, rho = history[i]
        alpha[i] = rho * np.dot(s, q)
        q -= alpha[i] * y

    if m > 0:
        s, y, _ = history.newest()
        gamma = np.dot(s, y) / np.dot(y, y)
    else:
        gamma = 1.0
    r = gamma * q

    for i in range(m):
        s, y, rho = history[i]
        beta = rho * np.dot(y, r)
        r += (alpha[i] - beta) * s

    return -r
