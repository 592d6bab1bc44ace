# ruff: noqa: T201, D100, D103
import numpy as np
import pytest
from test_common import run_ranks

from scfmix import (
    ArrayAdapter,
    BlockArrayAdapter,
    CompositeAdapter,
    PassiveArrayAdapter,
    SerialCommunicator,
)

abs = 1e-12


@pytest.fixture()
def vectors():
    rng = np.random.default_rng(7)
    x = rng.normal(size=(3, 4)) + 1j * rng.normal(size=(3, 4))
    y = rng.normal(size=(3, 4)) + 1j * rng.normal(size=(3, 4))
    z = rng.normal(size=(3, 4)) + 1j * rng.normal(size=(3, 4))
    return x, y, z


@pytest.mark.parametrize("local", [False, True])
def test_inner_product_symmetric(vectors, local):
    x, y, _ = vectors
    adapter = ArrayAdapter(local=local)
    for local_only in [False, True]:
        assert adapter.inner_product(local_only, x, y) == pytest.approx(
            adapter.inner_product(local_only, y, x), abs=abs
        )


def test_inner_product_split(subtests, vectors):
    x, y, _ = vectors
    expected = np.sum(x.conj() * y).real
    with subtests.test(msg="not local"):
        adapter = ArrayAdapter()
        assert adapter.inner_product(False, x, y) == pytest.approx(expected, abs=abs)
        assert adapter.inner_product(True, x, y) == 0
        assert adapter.local_size(False, x) == 12
        assert adapter.local_size(True, x) == 0
    with subtests.test(msg="local"):
        adapter = ArrayAdapter(local=True)
        assert adapter.inner_product(False, x, y) == 0
        assert adapter.inner_product(True, x, y) == pytest.approx(expected, abs=abs)
        assert adapter.local_size(False, x) == 0
        assert adapter.local_size(True, x) == 12


def test_in_place_operations(subtests, vectors):
    x, y, _ = vectors
    adapter = ArrayAdapter()
    with subtests.test(msg="scale"):
        x_scaled = x.copy()
        adapter.scale(-2.5, x_scaled)
        assert x_scaled == pytest.approx(-2.5 * x, abs=abs)
    with subtests.test(msg="copy"):
        y_copy = y.copy()
        adapter.copy(x, y_copy)
        assert y_copy == pytest.approx(x, abs=abs)
        assert y_copy is not x
    with subtests.test(msg="axpy"):
        y_axpy = y.copy()
        adapter.axpy(0.3, x, y_axpy)
        assert y_axpy == pytest.approx(y + 0.3 * x, abs=abs)


def test_bilinear(vectors):
    x, y, z = vectors
    adapter = CompositeAdapter([ArrayAdapter()])
    comm = SerialCommunicator()
    w = [y.copy()]
    adapter.axpy(0.7, [x], w)
    lhs = adapter.global_inner_product(comm, w, [z])
    rhs = adapter.global_inner_product(comm, [y], [z]) + 0.7 * adapter.global_inner_product(
        comm, [x], [z]
    )
    assert lhs == pytest.approx(rhs, abs=abs)


def test_shape_mismatch():
    adapter = ArrayAdapter()
    x = np.zeros(3)
    y = np.zeros(4)
    with pytest.raises(ValueError, match="do not match"):
        adapter.inner_product(False, x, y)
    with pytest.raises(ValueError, match="do not match"):
        adapter.copy(x, y)
    with pytest.raises(ValueError, match="do not match"):
        adapter.axpy(1.0, x, y)


def test_block_array_adapter(subtests):
    adapter = BlockArrayAdapter()
    x = {"up": np.array([[1.0, 2.0], [3.0, 4.0]]), "dn": np.array([[0.5, 0.0], [0.0, 0.5]])}
    y = {"up": np.eye(2), "dn": np.ones((2, 2))}
    with subtests.test(msg="inner product"):
        assert adapter.inner_product(False, x, y) == pytest.approx(5.0 + 1.0, abs=abs)
    with subtests.test(msg="size"):
        assert adapter.local_size(False, x) == 8
    with subtests.test(msg="axpy"):
        adapter.axpy(2.0, y, x)
        assert x["up"] == pytest.approx(np.array([[3.0, 2.0], [3.0, 6.0]]), abs=abs)
        assert x["dn"] == pytest.approx(np.array([[2.5, 2.0], [2.0, 2.5]]), abs=abs)
    with subtests.test(msg="mismatched blocks"):
        with pytest.raises(ValueError, match="do not match"):
            adapter.copy(x, {"up": np.eye(2)})


def test_passive_array_adapter():
    adapter = PassiveArrayAdapter()
    x = np.ones(5)
    y = np.full(5, 2.0)
    assert adapter.inner_product(True, x, y) == 0
    assert adapter.inner_product(False, x, y) == 0
    assert adapter.local_size(True, x) == 0
    adapter.axpy(2.0, x, y)
    assert y == pytest.approx(np.full(5, 4.0), abs=abs)


def test_composite_length_mismatch():
    adapter = CompositeAdapter([ArrayAdapter(), ArrayAdapter(local=True)])
    with pytest.raises(ValueError, match="2 adapters"):
        adapter.scale(2.0, [np.zeros(2)])
    with pytest.raises(ValueError, match="at least one"):
        CompositeAdapter([])


def test_global_inner_product_no_double_counting(subtests):
    # Part A is already reduced and replicated on every rank, part B is
    # distributed with a different slice on each rank
    rng = np.random.default_rng(3)
    a_x = rng.normal(size=4)
    a_y = rng.normal(size=4)
    b_x = [rng.normal(size=3), rng.normal(size=5)]
    b_y = [rng.normal(size=3), rng.normal(size=5)]
    adapter = CompositeAdapter([ArrayAdapter(local=True), ArrayAdapter()])

    def target(comm):
        x = [a_x, b_x[comm.rank]]
        y = [a_y, b_y[comm.rank]]
        return adapter.global_inner_product(comm, x, y), adapter.global_size(comm, x)

    results = run_ranks(2, target)

    expected = np.dot(a_x, a_y) + np.dot(np.concatenate(b_x), np.concatenate(b_y))
    for rank, (inner, size) in enumerate(results):
        with subtests.test(msg=f"rank {rank}"):
            assert inner == pytest.approx(expected, abs=abs)
            assert size == 4 + 3 + 5


def test_dtype_kind_mismatch(subtests):
    adapter = ArrayAdapter()
    x = np.array([1.0 + 1.0j, 2.0])
    y = np.zeros(2)
    with subtests.test(msg="copy complex into real"):
        with pytest.raises(ValueError, match="Cannot store complex128"):
            adapter.copy(x, y)
        assert y == pytest.approx(np.zeros(2), abs=abs)
    with subtests.test(msg="axpy complex into real"):
        with pytest.raises(ValueError, match="Cannot store"):
            adapter.axpy(1.0, x, y)
    with subtests.test(msg="axpy float into integer"):
        with pytest.raises(ValueError, match="Cannot store"):
            adapter.axpy(-1.0, np.ones(2, dtype=int), np.zeros(2, dtype=int))
    with subtests.test(msg="real into complex"):
        z = np.zeros(2, dtype=complex)
        adapter.copy(np.ones(2), z)
        assert z == pytest.approx(np.ones(2), abs=abs)


def test_check_dtype(subtests):
    with subtests.test(msg="array"):
        ArrayAdapter().check(np.zeros(2, dtype=np.float32))
        ArrayAdapter().check(np.zeros(2, dtype=complex))
        with pytest.raises(ValueError, match="int"):
            ArrayAdapter().check(np.zeros(2, dtype=int))
    with subtests.test(msg="blocks"):
        with pytest.raises(ValueError, match="floating point"):
            BlockArrayAdapter().check({"up": np.zeros(2), "dn": np.zeros(2, dtype=int)})
    with subtests.test(msg="composite"):
        adapter = CompositeAdapter([ArrayAdapter(), PassiveArrayAdapter()])
        with pytest.raises(ValueError, match="floating point"):
            adapter.check([np.zeros(2), np.zeros(3, dtype=bool)])
