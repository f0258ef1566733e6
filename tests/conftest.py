import numpy as np
import pandas as pd
import pytest


@pytest.fixture
def nodes():
    return ["a", "b", "c", "d", "e"]


@pytest.fixture
def edge_df():
    """Small directed graph; weight 'score' has one missing cell."""
    return pd.DataFrame({
        "source": ["a", "b", "c", "a", "d"],
        "target": ["b", "c", "a", "d", "e"],
        "score": [1.0, 2.0, 3.0, np.nan, 5.0],
        "count": [1, 2, 3, 4, 5],
        "label": ["x", "y", "z", "w", "v"],
    })


@pytest.fixture
def random_graph():
    """Random edge list over 30 nodes with float weights."""
    rng = np.random.default_rng(7)
    n_nodes, n_edges = 30, 60
    labels = [f"n{i}" for i in range(n_nodes)]
    src = rng.integers(0, n_nodes, n_edges)
    tgt = rng.integers(0, n_nodes, n_edges)
    edges = pd.DataFrame({
        "source": [labels[i] for i in src],
        "target": [labels[i] for i in tgt],
        "weight": rng.uniform(0.1, 10.0, n_edges),
    })
    return labels, edges
