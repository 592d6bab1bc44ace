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

"""Vector-space operations on the quantities that are mixed."""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any, TypeAlias

import numpy as np

from .comm import Communicator

BlockType: TypeAlias = dict[str, np.ndarray]


class VectorAdapter(ABC):
    """
    Vector-space operations for one type of quantity.

    The mixers never look inside a quantity. Everything they need is one
    adapter per quantity type with an inner product, an in-place scale,
    an in-place copy, an in-place ``axpy`` and an element count.

    Parameters
    ----------
    local : bool, optional
        True if the contributions of this quantity to inner products and
        sizes must not be summed over the process group, i.e., the data is
        already reduced, replicated, or only exists on this process.

    Notes
    -----
    The global inner product of a composite quantity is
    ``allreduce(inner_product(False, x, y)) + inner_product(True, x, y)``,
    see :class:`CompositeAdapter`.

    """

    def __init__(self, local: bool = False):
        #: bool : Whether this quantity is excluded from the cross-process sum.
        self.local = local

    def inner_product(self, local_only: bool, x: Any, y: Any) -> float:
        """
        Return the contribution of this process to ``<x, y>``.

        Parameters
        ----------
        local_only : bool
            Which half of the split to return. The contribution is zero
            unless ``local_only`` matches :attr:`local`.
        x, y : object
            Quantities of this type.

        """
        if local_only != self.local:
            return 0.0
        return float(self._dot(x, y))

    def local_size(self, local_only: bool, x: Any) -> int:
        """Return the number of elements of ``x`` on this process, split like :meth:`inner_product`."""
        if local_only != self.local:
            return 0
        return int(self._size(x))

    def check(self, x: Any) -> None:  # noqa: B027
        """Raise :class:`ValueError` if ``x`` cannot be mixed in place."""

    @abstractmethod
    def _dot(self, x: Any, y: Any) -> float:
        pass

    @abstractmethod
    def _size(self, x: Any) -> int:
        pass

    @abstractmethod
    def scale(self, alpha: float, x: Any) -> None:
        """In-place ``x *= alpha``."""

    @abstractmethod
    def copy(self, x: Any, y: Any) -> None:
        """In-place ``y := x``."""

    @abstractmethod
    def axpy(self, alpha: float, x: Any, y: Any) -> None:
        """In-place ``y += alpha * x``."""


def _check_arrays(x: np.ndarray, y: np.ndarray) -> None:
    if x.shape != y.shape:
        msg = f"Shapes {x.shape} and {y.shape} do not match !"
        raise ValueError(msg)


def _check_cast(dtype: np.dtype, y: np.ndarray) -> None:
    if not np.can_cast(dtype, y.dtype, "same_kind"):
        msg = f"Cannot store {dtype} data in an array of {y.dtype} !"
        raise ValueError(msg)


class ArrayAdapter(VectorAdapter):
    """
    Adapter for :class:`numpy.ndarray` quantities of any shape.

    Complex arrays use the real part of the Hermitian inner product
    ``Re(sum(conj(x) * y))``. A scalar is a 0-d or shape ``(1,)`` array so it
    can be updated in place.

    """

    def _dot(self, x: np.ndarray, y: np.ndarray) -> float:
        _check_arrays(x, y)
        return np.vdot(x, y).real

    def _size(self, x: np.ndarray) -> int:
        return x.size

    def check(self, x: np.ndarray) -> None:  # noqa: D102
        if not np.issubdtype(x.dtype, np.inexact):
            msg = f"Arrays must have a floating point or complex dtype (got {x.dtype}) !"
            raise ValueError(msg)

    def scale(self, alpha: float, x: np.ndarray) -> None:  # noqa: D102
        x *= alpha

    def copy(self, x: np.ndarray, y: np.ndarray) -> None:  # noqa: D102
        _check_arrays(x, y)
        _check_cast(x.dtype, y)
        np.copyto(y, x)

    def axpy(self, alpha: float, x: np.ndarray, y: np.ndarray) -> None:  # noqa: D102
        _check_arrays(x, y)
        _check_cast(np.result_type(alpha, x), y)
        y += alpha * x


class BlockArrayAdapter(VectorAdapter):
    """
    Adapter for block-structured quantities stored as ``dict[str, numpy.ndarray]``.

    Each key is a symmetry block (e.g., a spin or an atom) and the operations
    act block by block. Both quantities must have the same blocks.

    """

    def __init__(self, local: bool = False):
        super().__init__(local=local)
        self._block = ArrayAdapter(local=local)

    @staticmethod
    def _check_blocks(x: BlockType, y: BlockType) -> None:
        if x.keys() != y.keys():
            msg = f"Blocks {list(x)} and {list(y)} do not match !"
            raise ValueError(msg)

    def _dot(self, x: BlockType, y: BlockType) -> float:
        self._check_blocks(x, y)
        return sum(self._block._dot(x[bl], y[bl]) for bl in x)

    def _size(self, x: BlockType) -> int:
        return sum(x[bl].size for bl in x)

    def check(self, x: BlockType) -> None:  # noqa: D102
        for bl in x:
            self._block.check(x[bl])

    def scale(self, alpha: float, x: BlockType) -> None:  # noqa: D102
        for bl in x:
            self._block.scale(alpha, x[bl])

    def copy(self, x: BlockType, y: BlockType) -> None:  # noqa: D102
        self._check_blocks(x, y)
        for bl in x:
            self._block.copy(x[bl], y[bl])

    def axpy(self, alpha: float, x: BlockType, y: BlockType) -> None:  # noqa: D102
        self._check_blocks(x, y)
        for bl in x:
            self._block.axpy(alpha, x[bl], y[bl])


class PassiveArrayAdapter(ArrayAdapter):
    """
    Adapter for arrays that are mixed but take no part in the residual norm.

    Useful for a quantity that has to follow the mixing of the others, such
    as a density matrix mixed alongside a density, without weighting the
    inner products that steer the mixer.

    """

    def __init__(self, local: bool = True):
        super().__init__(local=local)

    def _dot(self, x: np.ndarray, y: np.ndarray) -> float:
        return 0.0

    def _size(self, x: np.ndarray) -> int:
        return 0


class CompositeAdapter:
    """
    Apply a list of adapters element-wise to a composite quantity.

    A composite quantity is a fixed-size sequence ``(x_1, ..., x_n)`` where
    ``x_i`` is handled by the ``i``-th adapter.

    Parameters
    ----------
    adapters : list[VectorAdapter]
        One adapter for each element of the composite quantity.

    """

    def __init__(self, adapters: Sequence[VectorAdapter]):
        if len(adapters) == 0:
            msg = "Need at least one adapter !"
            raise ValueError(msg)
        self.adapters = list(adapters)

    def __len__(self) -> int:
        return len(self.adapters)

    def _check(self, *quantities: Sequence[Any]) -> None:
        for q in quantities:
            if len(q) != len(self.adapters):
                msg = f"Composite quantity has {len(q)} elements but there are {len(self.adapters)} adapters !"
                raise ValueError(msg)

    def inner_product(self, local_only: bool, x: Sequence[Any], y: Sequence[Any]) -> float:
        """Return the sum of the element-wise :meth:`VectorAdapter.inner_product`."""
        self._check(x, y)
        return sum(
            a.inner_product(local_only, xi, yi)
            for a, xi, yi in zip(self.adapters, x, y, strict=True)
        )

    def local_size(self, local_only: bool, x: Sequence[Any]) -> int:
        """Return the sum of the element-wise :meth:`VectorAdapter.local_size`."""
        self._check(x)
        return sum(a.local_size(local_only, xi) for a, xi in zip(self.adapters, x, strict=True))

    def check(self, x: Sequence[Any]) -> None:
        """Apply :meth:`VectorAdapter.check` to each element."""
        self._check(x)
        for a, xi in zip(self.adapters, x, strict=True):
            a.check(xi)

    def scale(self, alpha: float, x: Sequence[Any]) -> None:  # noqa: D102
        self._check(x)
        for a, xi in zip(self.adapters, x, strict=True):
            a.scale(alpha, xi)

    def copy(self, x: Sequence[Any], y: Sequence[Any]) -> None:  # noqa: D102
        self._check(x, y)
        for a, xi, yi in zip(self.adapters, x, y, strict=True):
            a.copy(xi, yi)

    def axpy(self, alpha: float, x: Sequence[Any], y: Sequence[Any]) -> None:  # noqa: D102
        self._check(x, y)
        for a, xi, yi in zip(self.adapters, x, y, strict=True):
            a.axpy(alpha, xi, yi)

    def global_inner_product(
        self, comm: Communicator, x: Sequence[Any], y: Sequence[Any]
    ) -> float:
        """
        Return ``<x, y>`` over the whole process group.

        Only the non-local part is summed over the group, the local-only
        part of this process is added afterwards. This is a collective call.

        """
        return comm.allreduce(self.inner_product(False, x, y)) + self.inner_product(
            True, x, y
        )

    def global_size(self, comm: Communicator, x: Sequence[Any]) -> int:
        """Return the number of elements of ``x`` over the whole process group. This is a collective call."""
        return comm.allreduce(self.local_size(False, x)) + self.local_size(True, x)
