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

"""Circular history of the iterates of a mixer."""

from copy import deepcopy
from typing import Any

import numpy as np


class History:
    """
    Fixed-capacity circular buffers of past iterates.

    Nothing is shifted when a new iterate arrives. A monotonically increasing
    :attr:`step` counter is mapped to a slot with :meth:`idx_hist`, and the
    slot of :attr:`step` is overwritten once the buffers are full.

    Parameters
    ----------
    max_history : int
        Number of slots.

    """

    def __init__(self, max_history: int):
        if max_history < 1:
            msg = f"max_history must be at least 1 (got {max_history}) !"
            raise ValueError(msg)

        #: int : Number of slots in each buffer.
        self.max_history = int(max_history)

        #: int : Number of completed mixing steps.
        self.step: int = 0

        #: list : Guesses that were given to the evaluator.
        self.input_history: list[Any] = []

        #: list : Results of the evaluator for each guess in :attr:`input_history`.
        self.output_history: list[Any] = []

        #: list : Residuals ``output - input``.
        self.residual_history: list[Any] = []

        #: numpy.ndarray : Root-mean-square of each residual.
        self.rmse_history = np.zeros(self.max_history)

    @property
    def allocated(self) -> bool:
        """Whether the buffers hold storage for the quantities."""
        return len(self.input_history) == self.max_history

    def allocate(self, template: Any) -> None:
        """Make every slot an independent copy of ``template``."""
        self.input_history = [deepcopy(template) for _ in range(self.max_history)]
        self.output_history = [deepcopy(template) for _ in range(self.max_history)]
        self.residual_history = [deepcopy(template) for _ in range(self.max_history)]
        self.rmse_history[:] = 0
        self.step = 0

    def idx_hist(self, step: int) -> int:
        """Return the slot that holds the data of ``step``."""
        return step % self.max_history

    @property
    def history_size(self) -> int:
        """Number of valid past entries available at the current :attr:`step`."""
        return min(self.step, self.max_history)

    def ordered_rmse(self, last: int) -> np.ndarray:
        """Return the stored rmse values from the oldest one up to step ``last``."""
        first = max(0, last - self.max_history + 1)
        return np.array(
            [self.rmse_history[self.idx_hist(s)] for s in range(first, last + 1)]
        )
