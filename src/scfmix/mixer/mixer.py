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

"""Abstract base class for mixers of a self-consistent loop."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from copy import deepcopy
from typing import Any

import numpy as np
from scipy.optimize import OptimizeResult

from scfmix.adapters import CompositeAdapter, VectorAdapter
from scfmix.comm import Communicator, SerialCommunicator

from .history import History

logger = logging.getLogger(__name__)


class Mixer(ABC):
    """
    Base class for mixers that predict the next input of a fixed-point iteration.

    A driver calls :meth:`initialize` once with the first guess, and then
    for each iteration evaluates the guess, passes the result to
    :meth:`set_output`, and calls :meth:`mix` to get the next guess.

    Parameters
    ----------
    adapters : VectorAdapter | list[VectorAdapter] | CompositeAdapter
        Adapter for the quantity to mix. If a list or a
        :class:`.CompositeAdapter` is given the mixed quantity is composite,
        and every guess and result must be a sequence with one element per
        adapter.
    max_history : int, optional
        Number of past iterates that are kept.
    beta : float, optional
        Mixing step size in (0, 1].
    comm : Communicator, optional
        Process group that owns the distributed quantity. Defaults to
        :class:`.SerialCommunicator`.

    Notes
    -----
    :meth:`mix_impl` must be defined in the inherited class.

    """

    def __init__(
        self,
        adapters: VectorAdapter | Sequence[VectorAdapter] | CompositeAdapter,
        max_history: int = 8,
        beta: float = 0.7,
        comm: Communicator | None = None,
    ) -> None:
        if not 0 < beta <= 1:
            msg = f"beta must be in (0, 1] (got {beta}) !"
            raise ValueError(msg)

        self._is_composite = not isinstance(adapters, VectorAdapter)
        if isinstance(adapters, CompositeAdapter):
            self.adapter = adapters
        elif self._is_composite:
            self.adapter = CompositeAdapter(adapters)
        else:
            self.adapter = CompositeAdapter([adapters])

        if comm is None:
            comm = SerialCommunicator()
        #: Communicator : Process group the inner products are summed over.
        self.comm = comm

        #: History : Past guesses, results, residuals and rmse.
        self.history = History(max_history)

        self._beta = beta

        # Staging buffer for the result of the evaluator
        self._staging: list[Any] | None = None

        self._rmse: float = np.inf
        self._rmse_step: int = -1

    @property
    def initialized(self) -> bool:
        """Whether :meth:`initialize` was called."""
        return self.history.allocated

    @property
    def max_history(self) -> int:
        """Number of past iterates that are kept."""
        return self.history.max_history

    @property
    def step(self) -> int:
        """Number of completed mixing steps."""
        return self.history.step

    @property
    def history_size(self) -> int:
        """Number of valid history entries at the current step."""
        return self.history.history_size

    @property
    def beta(self) -> float:
        """Step size used in the last call to :meth:`mix`."""
        return self._beta

    @property
    def rmse(self) -> float:
        """Root-mean-square of the last residual computed by :meth:`mix`."""
        return self._rmse

    @property
    def rmse_history(self) -> np.ndarray:
        """Stored rmse values ordered from the oldest to the last one."""
        if self._rmse_step < 0:
            return np.array([])
        return self.history.ordered_rmse(self._rmse_step)

    def _wrap(self, x: Any) -> list[Any]:
        if not self._is_composite:
            return [x]
        x = list(x)
        if len(x) != len(self.adapter):
            msg = f"Composite quantity has {len(x)} elements but there are {len(self.adapter)} adapters !"
            raise ValueError(msg)
        return x

    def _unwrap(self, x: list[Any]) -> Any:
        if self._is_composite:
            return x
        return x[0]

    def _check_initialized(self) -> None:
        if not self.initialized:
            msg = "The mixer must be initialized before it is used !"
            raise RuntimeError(msg)

    def initialize(self, initial_guess: Any) -> None:
        """
        Set the first guess and clear the history.

        Parameters
        ----------
        initial_guess : object
            First input to the evaluator. The mixer keeps its own copies.

        """
        x = self._wrap(initial_guess)
        self.adapter.check(x)
        self.history.allocate(x)
        self._staging = deepcopy(x)
        self.adapter.copy(x, self.history.input_history[0])
        self._rmse = np.inf
        self._rmse_step = -1

    def reset(self) -> None:
        """Discard the history but keep the current guess as the first guess."""
        self._check_initialized()
        h = self.history
        guess = deepcopy(h.input_history[h.idx_hist(h.step)])
        h.step = 0
        h.rmse_history[:] = 0
        self.adapter.copy(guess, h.input_history[0])
        self.adapter.copy(guess, self._staging)
        self._rmse_step = -1

    def set_output(self, result: Any) -> None:
        """Store the result of the evaluator for the current guess."""
        self._check_initialized()
        self.adapter.copy(self._wrap(result), self._staging)

    def get_input(self, out: Any = None) -> Any:
        """
        Return the current guess.

        Parameters
        ----------
        out : object, optional
            If given, the guess is copied into it and it is returned. Otherwise
            a reference to the mixer's own storage is returned, which must not
            be modified.

        """
        self._check_initialized()
        h = self.history
        x = h.input_history[h.idx_hist(h.step)]
        if out is None:
            return self._unwrap(x)
        self.adapter.copy(x, self._wrap(out))
        return out

    def global_inner_product(self, x: list[Any], y: list[Any]) -> float:
        """Return the inner product of two composite quantities over the process group."""
        return self.adapter.global_inner_product(self.comm, x, y)

    def global_size(self, x: list[Any]) -> int:
        """Return the element count of a composite quantity over the process group."""
        return self.adapter.global_size(self.comm, x)

    def _update_residual(self) -> float:
        h = self.history
        idx = h.idx_hist(h.step)
        self.adapter.copy(self._staging, h.output_history[idx])
        residual = h.residual_history[idx]
        self.adapter.copy(h.output_history[idx], residual)
        self.adapter.axpy(-1.0, h.input_history[idx], residual)

        size = self.global_size(residual)
        if size == 0:
            msg = "No element of the mixed quantity contributes to the residual norm !"
            raise ValueError(msg)
        rmse = float(np.sqrt(self.global_inner_product(residual, residual) / size))
        h.rmse_history[idx] = rmse
        return rmse

    def mix(self, rmse_min: float | None = None) -> Any:
        """
        Return the next guess from the stored result of the current guess.

        Parameters
        ----------
        rmse_min : float, optional
            If the rmse of the current residual is below this, no new guess
            is made and the current guess is returned.

        Returns
        -------
        object
            Reference to the next guess, see :meth:`get_input`.

        """
        self._check_initialized()
        self._rmse = self._update_residual()
        self._rmse_step = self.history.step

        if rmse_min is not None and self._rmse < rmse_min:
            logger.debug(f"step: {self.step}, rmse: {self._rmse} below {rmse_min}")
            return self.get_input()

        self.mix_impl()
        logger.debug(f"step: {self.step}, rmse: {self._rmse}, beta: {self.beta}")
        self.history.step += 1
        return self.get_input()

    @abstractmethod
    def mix_impl(self) -> None:
        """
        Write the next guess into the input slot of the next step.

        The result of the current step is in the staging buffer and in the
        history, together with its residual and rmse.

        """

    def solve(
        self,
        fun: Callable[..., Any],
        x0: Any,
        args: tuple[Any, ...] = (),
        tol: float = 1e-12,
        maxiter: int = 1000,
    ) -> OptimizeResult:
        """
        Find the fixed point of a function. It is called similarly to :func:`scipy.optimize.root`.

        Parameters
        ----------
        fun : callable
            The evaluator. It is called as ``fun(x, *args)`` and must return
            the result for the guess ``x`` without modifying ``x``.
        x0 : object
            Initial guess.
        args : tuple, optional
            Additional arguments to pass to ``fun``.
        tol : float, optional
            The solver stops when the rmse of the residual is below this.
        maxiter : int, optional
            Maximum number of evaluations.

        Returns
        -------
        scipy.optimize.OptimizeResult
            The fixed point ``x``, whether the solver converged ``success``,
            the number of evaluations ``nit`` and the final rmse ``fun``.

        """
        self.initialize(x0)
        x = self.get_input()
        success = False
        n = 0
        for n in range(1, maxiter + 1):
            self.set_output(fun(x, *args))
            x = self.mix(rmse_min=tol)
            logger.info(f"n: {n}, rmse: {self.rmse}, beta: {self.beta}")
            if self.rmse < tol:
                success = True
                break

        if success:
            logger.info(f"The solution converged. nit: {n}, tol: {self.rmse}")
            message = "The solution converged."
        else:
            logger.info(f"The solution did NOT converge. nit: {n} tol: {self.rmse}")
            message = "The maximum number of iterations was reached."

        return OptimizeResult(
            x=deepcopy(x), success=success, nit=n, fun=self.rmse, message=message
        )
