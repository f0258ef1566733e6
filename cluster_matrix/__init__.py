"""
Cluster Matrix Package - Edge-weight matrices, connected components and numeric tables for clustering.
"""

# Import main classes for easy access
from .numeric_table import NumericTable
from .sparse_matrix import SparseGraphMatrix, MatrixConfig, build_sparse_matrix
from .weights import (
    WeightPipeline,
    ValueRange,
    UNRESOLVED,
    NONE_ATTRIBUTE,
    LOG_CEILING,
    identity_converter,
)
from .components import ComponentFinder, find_connected_components

# Import core utilities that might be directly useful
from .core_utilities import TimingStats, make_pairwise_batcher

__all__ = [
    # Main classes
    'NumericTable',
    'SparseGraphMatrix',
    'WeightPipeline',
    'ComponentFinder',
    'MatrixConfig',
    'ValueRange',

    # Constants
    'UNRESOLVED',
    'NONE_ATTRIBUTE',
    'LOG_CEILING',

    # Functions
    'build_sparse_matrix',
    'find_connected_components',
    'identity_converter',

    # Utilities
    'TimingStats',
    'make_pairwise_batcher',
]

__version__ = '1.0.0'
