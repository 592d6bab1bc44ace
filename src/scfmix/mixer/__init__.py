"""Mixers that accelerate the self-consistent loop."""

from .broyden import Broyden2Mixer  # noqa: F401
from .factory import create_mixer  # noqa: F401
from .history import History  # noqa: F401
from .linear_mixing import LinearMixer  # noqa: F401
from .mixer import Mixer  # noqa: F401
