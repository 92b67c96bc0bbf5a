"""
conftest.py
~~~~~~~~~~~

Shared fixtures: synthetic Digit Recognizer CSV files.
"""

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

PIXEL_COLUMNS = [f"pixel{i}" for i in range(784)]


def make_pixels(num_rows, seed=0):
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(num_rows, 784))


@pytest.fixture
def train_csv(tmp_path):
    """100 training rows with labels cycling 0-9."""
    labels = np.arange(100) % 10
    table = pd.DataFrame(make_pixels(100), columns=PIXEL_COLUMNS)
    table.insert(0, "label", labels)
    path = tmp_path / "train.csv"
    table.to_csv(path, index=False)
    return str(path)


@pytest.fixture
def unlabeled_csv(tmp_path):
    """10 test rows without labels."""
    table = pd.DataFrame(make_pixels(10, seed=1), columns=PIXEL_COLUMNS)
    path = tmp_path / "test.csv"
    table.to_csv(path, index=False)
    return str(path)
