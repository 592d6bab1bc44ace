"""Library of mixers for the self-consistent loops of electronic-structure solvers."""

from importlib.metadata import PackageNotFoundError, version

from .adapters import (  # noqa: F401
    ArrayAdapter,
    BlockArrayAdapter,
    CompositeAdapter,
    PassiveArrayAdapter,
    VectorAdapter,
)
from .comm import Communicator, MPICommunicator, SerialCommunicator  # noqa: F401
from .mixer import Broyden2Mixer, LinearMixer, Mixer, create_mixer  # noqa: F401

try:
    __version__ = version("scfmix")
except PackageNotFoundError:
    __version__ = "unknown version"
