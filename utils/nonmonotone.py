import numpy as np


class ObjectiveHistory:
    """
    Fixed-size memory of the last m objective values for non-monotone line search.
    Ring buffer with an insertion index; unused slots hold -inf so they never
    raise the reference value.
    """
    def __init__(self, m=10):
        if m < 1:
            raise ValueError("history size m must be >= 1")
        self.m = m
        self.values = np.full(m, -np.inf)
        self.pos = 0

    def reset(self):
        """Forget all stored values."""
        self.values.fill(-np.inf)
        self.pos = 0

    def push(self, f):
        """Store f, overwriting the oldest value once the buffer is full."""
        self.values[self.pos] = f
        self.pos += 1
        if self.pos == self.m:
            self.pos = 0

    def reference(self):
        """Reference value f_ref = max of the remembered objective values."""
        return float(self.values.max())
