"""
Core utilities for the cluster_matrix package.
Contains the timing tracker and the numba batcher shared by the matrix modules.
"""
import time
from collections import defaultdict
from contextlib import contextmanager

import numpy as np
from numba import njit, prange


class TimingStats:
    """Utility class to track timing statistics for different operations"""
    def __init__(self):
        self.stats = defaultdict(list)
        self.current_timers = {}

    def start(self, operation):
        """Start timing an operation"""
        self.current_timers[operation] = time.time()

    def end(self, operation):
        """End timing an operation and record the elapsed time"""
        if operation in self.current_timers:
            elapsed = time.time() - self.current_timers.pop(operation)
            self.stats[operation].append(elapsed)
            return elapsed
        return None

    @contextmanager
    def timed(self, operation, verbose=False):
        """Context manager form of start/end."""
        self.start(operation)
        try:
            yield
        finally:
            elapsed = self.end(operation)
            if verbose:
                print(f"  [{operation}] completed in {elapsed:.4f} seconds")

    def get_stats(self, as_dict=False):
        """
        Summarize every recorded operation.

        Parameters:
        -----------
        as_dict : bool, default=False
            Return the raw per-operation dictionary instead of a formatted string

        Returns:
        --------
        dict or str
        """
        result = {}
        for op, times in self.stats.items():
            result[op] = {
                'count': len(times),
                'total': sum(times),
                'mean': sum(times) / len(times) if times else 0,
                'max': max(times) if times else 0
            }

        if as_dict:
            return result

        lines = ["Timing Statistics:"]
        for op, stats in sorted(result.items(), key=lambda x: x[1]['total'], reverse=True):
            lines.append(f"  • {op}: {stats['total']:.4f}s total, "
                         f"{stats['count']} calls, "
                         f"{stats['mean']:.4f}s avg/call")
        return "\n".join(lines)


def make_pairwise_batcher(dist_func):
    """
    Given a user-supplied @njit decorated dist_func(values, weights, i, j),
    return a njit-compiled, parallel batcher compute_batch(values, weights, idx_i, idx_j).
    """
    @njit(parallel=True)
    def compute_batch(values: np.ndarray,
                      weights: np.ndarray,
                      idx_i: np.ndarray,
                      idx_j: np.ndarray) -> np.ndarray:
        n = idx_i.shape[0]
        out = np.empty(n, dtype=np.float64)
        for k in prange(n):
            out[k] = dist_func(values, weights, idx_i[k], idx_j[k])
        return out
    return compute_batch


def upper_triangle_pairs(n):
    """
    Index pairs (i, j) with i <= j for an n x n symmetric fill, diagonal included.

    Returns:
    --------
    idx_i, idx_j : numpy.ndarray
        int64 arrays of equal length n*(n+1)/2
    """
    idx_i, idx_j = np.triu_indices(n)
    return idx_i.astype(np.int64), idx_j.astype(np.int64)
