# ruff: noqa: T201, D100, D103
import threading

import numpy as np

from scfmix import Communicator


class ThreadGroup:
    """Process group simulated by threads of the same process."""

    def __init__(self, size, timeout=30):
        self.size = size
        self.barrier = threading.Barrier(size, timeout=timeout)
        self.buffer = [None for _ in range(size)]


class ThreadCommunicator(Communicator):
    def __init__(self, group, rank):
        self.group = group
        self.rank = rank
        self.size = group.size

    def allreduce(self, value):
        self.group.buffer[self.rank] = np.array(value, copy=True)
        self.group.barrier.wait()
        # Every rank sums in the same order
        total = np.sum(self.group.buffer, axis=0)
        self.group.barrier.wait()
        if isinstance(value, np.ndarray):
            return total
        return total.item()


def run_ranks(size, target):
    group = ThreadGroup(size)
    results = [None for _ in range(size)]
    errors = []

    def work(rank):
        try:
            results[rank] = target(ThreadCommunicator(group, rank))
        except Exception as e:  # noqa: BLE001
            errors.append(e)
            group.barrier.abort()

    threads = [threading.Thread(target=work, args=(rank,)) for rank in range(size)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    if errors:
        raise errors[0]
    return results


# f(x) = 0.5 + 0.3 x with fixed point 5/7
def scalar_map(x):
    return 0.5 + 0.3 * x


def build_diagonal_map(n=4, seed=1):
    rng = np.random.default_rng(seed)
    a = np.linspace(0.1, 0.4, n)
    b = rng.uniform(-1, 1, n)

    def fun(x, a=a, b=b):
        return b + a * x

    x_expected = b / (1 - a)
    return fun, a, b, x_expected
