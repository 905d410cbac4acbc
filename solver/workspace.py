"""
Scratch memory for the SPG hypercube solver.

One SPGWorkspace holds every vector a single solve mutates. The batch
dispatcher allocates one workspace per worker (WorkspaceArena) and reuses it
for every column that worker solves, so no allocation happens per subproblem.
"""

import numpy as np

from utils.nonmonotone import ObjectiveHistory

# memory size in non-monotone descent checking
MEM_OLD_VALUES = 10


class SPGWorkspace:
    """Per-worker buffers: iterates, gradients, direction, temporaries and f-history."""

    def __init__(self, k, memory=MEM_OLD_VALUES):
        self.k = k
        try:
            self.x = np.empty(k)
            self.x_old = np.empty(k)
            self.g = np.empty(k)
            self.g_old = np.empty(k)
            self.d = np.empty(k)
            self.tmp = np.empty(k)
            self.tmp1 = np.empty(k)
            self.history = ObjectiveHistory(memory)
        except MemoryError as exc:
            raise MemoryError(f"Out of memory allocating SPG workspace for k={k}") from exc

    def fits(self, k):
        return self.k == k


class WorkspaceArena:
    """Fixed set of workspaces indexed by worker id (never by subproblem)."""

    def __init__(self, n_workers, k, memory=MEM_OLD_VALUES):
        if n_workers < 1:
            raise ValueError(f"n_workers must be >= 1, got {n_workers}")
        try:
            self.blocks = [SPGWorkspace(k, memory) for _ in range(n_workers)]
        except MemoryError as exc:
            raise MemoryError(
                f"Out of memory allocating scratch for {n_workers} workers (k={k})") from exc

    def __getitem__(self, worker_id):
        return self.blocks[worker_id]
