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

"""Process groups used for the cross-process sums of the mixers."""

from abc import ABC, abstractmethod

import numpy as np
from numpy.typing import ArrayLike


class Communicator(ABC):
    """
    Group of processes that jointly own a distributed quantity.

    Every process in the group must call :meth:`allreduce` the same number of
    times and in the same order, otherwise the group deadlocks.

    """

    #: int : Index of this process in the group.
    rank: int = 0

    #: int : Number of processes in the group.
    size: int = 1

    @abstractmethod
    def allreduce(self, value: float | ArrayLike) -> float | np.ndarray:
        """
        Return the sum of ``value`` over all processes in the group.

        Parameters
        ----------
        value : float | numpy.ndarray
            Contribution of this process. Arrays are summed element-wise.

        Returns
        -------
        float | numpy.ndarray
            The sum, of the same kind as ``value``. The input is not modified.

        """


class SerialCommunicator(Communicator):
    """Group made of the calling process only."""

    def allreduce(self, value: float | ArrayLike) -> float | np.ndarray:  # noqa: D102
        if isinstance(value, np.ndarray):
            return value.copy()
        return value


class MPICommunicator(Communicator):
    """
    Process group backed by an :mod:`mpi4py` communicator.

    Parameters
    ----------
    comm : mpi4py.MPI.Comm, optional
        The communicator to reduce over. Defaults to ``MPI.COMM_WORLD``.

    """

    def __init__(self, comm=None):
        from mpi4py import MPI

        self._MPI = MPI
        if comm is None:
            comm = MPI.COMM_WORLD
        self.comm = comm
        self.rank = self.comm.Get_rank()
        self.size = self.comm.Get_size()

    def allreduce(self, value: float | ArrayLike) -> float | np.ndarray:  # noqa: D102
        if isinstance(value, np.ndarray):
            send = np.ascontiguousarray(value)
            recv = np.empty_like(send)
            self.comm.Allreduce(send, recv, op=self._MPI.SUM)
            return recv
        return self.comm.allreduce(value, op=self._MPI.SUM)
