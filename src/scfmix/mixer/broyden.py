# Copyright (c) 2023 H. L. Nourse
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You may obtain a copy of the License at
#     https:#www.gnu.org/licenses/gpl-3.0.txt
#
# Authors: H. L. Nourse

"""Modified Broyden mixer."""

import logging

import numpy as np

from .mixer import Mixer

logger = logging.getLogger(__name__)


class Broyden2Mixer(Mixer):
    """
    Broyden's second method over a window of past iterates.

    The inverse Jacobian of the residual is approximated by a recursion of
    rank-1 updates over consecutive pairs of stored residuals, starting from
    ``0.25`` times the identity. The extrapolated guess is blended with the
    current guess with the step size :attr:`beta`.

    Parameters
    ----------
    adapters : VectorAdapter | list[VectorAdapter] | CompositeAdapter
        Adapter for the quantity to mix, see :class:`.Mixer`.
    max_history : int, optional
        Size of the window of past iterates.
    beta : float, optional
        Initial step size.
    beta0 : float, optional
        Lower bound of the step size when it is scaled down.
    beta_scaling_factor : float, optional
        Factor in (0, 1] the step size is multiplied by when the rmse rises
        above its running average. 1 keeps the step size fixed.
    linear_mix_rmse_tol : float, optional
        The Broyden update is only used once the rmse is below this. If it is
        not positive, the update is used as soon as the window is full.
    degeneracy_tol : float or None, optional
        A pair of residuals whose difference has a squared norm below this
        (relative to the larger squared norm of the pair) is skipped in the
        recursion. None divides by the difference whatever its size.
    comm : Communicator, optional
        Process group that owns the distributed quantity.

    Notes
    -----
    The recursion is done with :class:`numpy.longdouble` because the
    squared norms of the residual differences can be small compared to the
    overlaps they are taken from. On platforms where ``longdouble`` is a
    plain double the recursion runs in double precision.

    """

    def __init__(
        self,
        adapters,
        /,
        max_history: int = 8,
        beta: float = 0.7,
        beta0: float = 0.15,
        beta_scaling_factor: float = 1.0,
        linear_mix_rmse_tol: float = 1e6,
        degeneracy_tol: float | None = np.finfo(float).eps,
        comm=None,
    ) -> None:
        super().__init__(adapters, max_history=max_history, beta=beta, comm=comm)

        if not 0 < beta0 <= 1:
            msg = f"beta0 must be in (0, 1] (got {beta0}) !"
            raise ValueError(msg)
        if not 0 < beta_scaling_factor <= 1:
            msg = f"beta_scaling_factor must be in (0, 1] (got {beta_scaling_factor}) !"
            raise ValueError(msg)

        #: float : Lower bound of the step size.
        self.beta0 = beta0

        #: float : Factor the step size is scaled down by.
        self.beta_scaling_factor = beta_scaling_factor

        #: float : rmse below which the Broyden update is used.
        self.linear_mix_rmse_tol = linear_mix_rmse_tol

        #: float | None : Relative threshold for degenerate residual pairs.
        self.degeneracy_tol = degeneracy_tol

        #: bool : Whether the last call to :meth:`mix` used the Broyden update.
        self.quasi_newton_active = False

    def _scale_beta(self) -> None:
        h = self.history
        if h.step <= h.max_history:
            return
        rmse_avg = np.mean(h.rmse_history)
        if h.rmse_history[h.idx_hist(h.step)] > rmse_avg:
            beta = max(self.beta0, self._beta * self.beta_scaling_factor)
            if beta != self._beta:
                logger.debug(f"step: {h.step}, rmse above average {rmse_avg}, beta: {self._beta} -> {beta}")
            self._beta = beta

    def _use_quasi_newton(self) -> bool:
        h = self.history
        rmse = h.rmse_history[h.idx_hist(h.step)]
        tol = self.linear_mix_rmse_tol
        if tol > 0:
            return h.history_size > 1 and rmse < tol
        return h.step > h.max_history

    def _overlap(self, idx: list[int]) -> np.ndarray:
        """Return the overlap matrix of the residuals in ``idx`` normalized by the global size."""
        h = self.history
        m = len(idx)
        S = np.zeros((m, m))
        S_local = np.zeros((m, m))
        for j1 in range(m):
            r1 = h.residual_history[idx[j1]]
            for j2 in range(j1 + 1):
                r2 = h.residual_history[idx[j2]]
                S[j1, j2] = S[j2, j1] = self.adapter.inner_product(False, r1, r2)
                S_local[j1, j2] = S_local[j2, j1] = self.adapter.inner_product(
                    True, r1, r2
                )
        S = self.comm.allreduce(S)
        global_size = self.global_size(h.residual_history[0])
        return (S + S_local) / global_size

    def _gamma(self, S: np.ndarray) -> np.ndarray:
        """
        Return the coefficients of the inverse Jacobian applied to each residual.

        Column ``j`` holds the expansion of ``G r_j`` in the basis of the ``m``
        residuals followed by the ``m`` guesses, where ``G`` is the inverse
        Jacobian after the rank-1 updates of all consecutive pairs.

        """
        m = S.shape[0]
        S = S.astype(np.longdouble)
        gamma = np.zeros((2 * m, m), dtype=np.longdouble)
        # Initial inverse Jacobian
        gamma[np.arange(m), np.arange(m)] = 0.25

        for k in range(m - 1):
            # Squared norm of the residual difference
            d = S[k, k] + S[k + 1, k + 1] - S[k, k + 1] - S[k + 1, k]
            if self.degeneracy_tol is not None and abs(d) <= self.degeneracy_tol * max(
                S[k, k], S[k + 1, k + 1]
            ):
                logger.debug(f"step: {self.step}, skipping degenerate residual pair {k} (d = {d})")
                continue

            v1 = S[k + 1, :] - S[k, :]
            # Secant error of the pair
            v2 = -(gamma[:, k + 1] - gamma[:, k])
            v2[m + k] -= 1
            v2[m + k + 1] += 1

            gamma += np.outer(v2, v1) / d
        return gamma

    def mix_impl(self) -> None:
        """Write the next guess into the input slot of the next step."""
        h = self.history
        idx_step = h.idx_hist(h.step)
        idx_next_step = h.idx_hist(h.step + 1)

        self._scale_beta()

        self.quasi_newton_active = self._use_quasi_newton()
        if self.quasi_newton_active:
            m = h.history_size
            idx = [h.idx_hist(h.step - m + j) for j in range(m)]
            gamma = self._gamma(self._overlap(idx))

            # Extrapolated guess x_{m-1} - G r_{m-1}
            v2 = -gamma[:, m - 1]
            v2[2 * m - 1] += 1

            self.adapter.scale(0.0, self._staging)
            for j in range(m):
                # Residuals are stored as output - input but the recursion
                # is for input - output
                self.adapter.axpy(-float(v2[j]), h.residual_history[idx[j]], self._staging)
                self.adapter.axpy(float(v2[j + m]), h.input_history[idx[j]], self._staging)
        else:
            self.adapter.copy(h.output_history[idx_step], self._staging)

        self.adapter.scale(self.beta, self._staging)
        self.adapter.axpy(1.0 - self.beta, h.input_history[idx_step], self._staging)
        self.adapter.copy(self._staging, h.input_history[idx_next_step])
