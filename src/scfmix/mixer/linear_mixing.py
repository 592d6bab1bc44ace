# noqa: D100

from .mixer import Mixer


# x_i+1 = beta * g(x_i) + (1 - beta) * x_i
# where g(x_i) is the result of the evaluator for the guess x_i.
# A residual of zero leaves x_i unchanged for any beta.
class LinearMixer(Mixer):
    """Linear mixing of the latest result with the latest guess."""

    def __init__(self, adapters, /, **kwargs):
        # Only the current step is ever used
        kwargs.setdefault("max_history", 1)
        super().__init__(adapters, **kwargs)

    def mix_impl(self) -> None:
        """Write ``beta * output + (1 - beta) * input`` as the next guess."""
        h = self.history
        idx_step = h.idx_hist(h.step)
        idx_next_step = h.idx_hist(h.step + 1)

        # Blend in the staging buffer because both slots coincide when max_history = 1
        self.adapter.copy(h.output_history[idx_step], self._staging)
        self.adapter.scale(self.beta, self._staging)
        self.adapter.axpy(1.0 - self.beta, h.input_history[idx_step], self._staging)
        self.adapter.copy(self._staging, h.input_history[idx_next_step])
