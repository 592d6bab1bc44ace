# noqa: D100

from .broyden import Broyden2Mixer
from .linear_mixing import LinearMixer
from .mixer import Mixer


def create_mixer(
    method: str,
    adapters,
    comm=None,
    max_history: int = 8,
    beta: float = 0.7,
    beta0: float = 0.15,
    beta_scaling_factor: float = 1.0,
    linear_mix_rmse_tol: float = 1e6,
) -> Mixer:
    """
    Return a mixer by name.

    Parameters
    ----------
    method : str, 'linear' | 'broyden2'
        Mixing method.
    adapters : VectorAdapter | list[VectorAdapter] | CompositeAdapter
        Adapter for the quantity to mix, see :class:`.Mixer`.
    comm : Communicator, optional
        Process group that owns the distributed quantity.
    max_history, beta, beta0, beta_scaling_factor, linear_mix_rmse_tol : optional
        See :class:`.Broyden2Mixer`. Only ``beta`` is used by linear mixing.

    """
    if method == "linear":
        return LinearMixer(adapters, beta=beta, comm=comm)
    if method == "broyden2":
        return Broyden2Mixer(
            adapters,
            max_history=max_history,
            beta=beta,
            beta0=beta0,
            beta_scaling_factor=beta_scaling_factor,
            linear_mix_rmse_tol=linear_mix_rmse_tol,
            comm=comm,
        )
    msg = f"Unrecognized mixer {method} !"
    raise ValueError(msg)
