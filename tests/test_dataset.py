"""
test_dataset.py
~~~~~~~~~~~~~~~

Unit tests for CSV loading and preprocessing.
"""

import numpy as np
import pytest
import torch

from digit_recognizer.dataset import (
    flatten_images,
    load_table,
    load_test_data,
    load_train_data,
    normalize_pixels,
    one_hot_encode,
    reshape_images,
    to_torch_layout,
)
from digit_recognizer.errors import FormatError, RangeError, ShapeError


def write_rows(path, header, rows):
    lines = [",".join(header)] + [",".join(str(v) for v in row) for row in rows]
    path.write_text("\n".join(lines) + "\n")
    return str(path)


TRAIN_HEADER = ["label"] + [f"pixel{i}" for i in range(784)]


@pytest.mark.unit
class TestLoadTable:
    """Test reading and validating raw tables."""

    def test_train_table_shape(self, train_csv):
        table = load_table(train_csv, has_labels=True)
        assert table.shape == (100, 785)
        assert table.columns[0] == "label"

    def test_unlabeled_table_shape(self, unlabeled_csv):
        table = load_table(unlabeled_csv, has_labels=False)
        assert table.shape == (10, 784)

    def test_unlabeled_file_in_training_mode(self, unlabeled_csv):
        """A 784-column file where 785 columns are expected is rejected."""
        with pytest.raises(FormatError):
            load_table(unlabeled_csv, has_labels=True)

    def test_short_row(self, tmp_path):
        rows = [[1] + [0] * 784, [2] + [0] * 783]
        path = write_rows(tmp_path / "short.csv", TRAIN_HEADER, rows)
        with pytest.raises(FormatError):
            load_table(path, has_labels=True)

    def test_long_row(self, tmp_path):
        rows = [[1] + [0] * 784, [2] + [0] * 785]
        path = write_rows(tmp_path / "long.csv", TRAIN_HEADER, rows)
        with pytest.raises(FormatError):
            load_table(path, has_labels=True)

    def test_short_first_row(self, tmp_path):
        rows = [[1] + [0] * 783, [2] + [0] * 784]
        path = write_rows(tmp_path / "short_first.csv", TRAIN_HEADER, rows)
        with pytest.raises(FormatError):
            load_table(path, has_labels=True)

    def test_non_numeric_cell(self, tmp_path):
        rows = [[1] + [0] * 784, ["seven"] + [0] * 784]
        path = write_rows(tmp_path / "text.csv", TRAIN_HEADER, rows)
        with pytest.raises(FormatError, match="row 2"):
            load_table(path, has_labels=True)

    def test_header_only(self, tmp_path):
        path = write_rows(tmp_path / "empty.csv", TRAIN_HEADER, [])
        with pytest.raises(FormatError):
            load_table(path, has_labels=True)

    def test_invalid_utf8(self, tmp_path):
        path = tmp_path / "binary.csv"
        header = ",".join(TRAIN_HEADER).encode().replace(b"label", b"lab\xff\xfeel")
        path.write_bytes(header + b"\n1" + b",0" * 784 + b"\n")
        with pytest.raises(FormatError):
            load_table(str(path), has_labels=True)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_table(str(tmp_path / "missing.csv"))


@pytest.mark.unit
class TestOneHot:
    """Test label encoding."""

    @pytest.mark.parametrize("label", range(10))
    def test_single_hot_index(self, label):
        encoded = one_hot_encode([label])
        assert encoded.shape == (1, 10)
        assert encoded[0, label] == 1.0
        assert encoded.sum() == 1.0

    def test_batch(self):
        encoded = one_hot_encode(np.array([3, 3, 7, 0]))
        assert encoded.argmax(axis=1).tolist() == [3, 3, 7, 0]
        assert encoded.dtype == np.float32

    @pytest.mark.parametrize("bad_label", [-1, 10, 42])
    def test_out_of_range(self, bad_label):
        with pytest.raises(RangeError):
            one_hot_encode([1, bad_label])

    def test_fractional_label(self):
        with pytest.raises(RangeError):
            one_hot_encode([1.5])

    def test_empty(self):
        assert one_hot_encode([]).shape == (0, 10)


@pytest.mark.unit
class TestNormalize:
    """Test pixel scaling."""

    def test_endpoints(self):
        scaled = normalize_pixels([0, 255])
        assert scaled[0] == 0.0
        assert scaled[1] == 1.0

    def test_monotonic(self):
        scaled = normalize_pixels(np.arange(256))
        assert np.all(np.diff(scaled) > 0)
        assert scaled.min() >= 0.0 and scaled.max() <= 1.0

    @pytest.mark.parametrize("bad_value", [-1, 256])
    def test_out_of_range(self, bad_value):
        with pytest.raises(RangeError):
            normalize_pixels([0, bad_value])


@pytest.mark.unit
class TestReshape:
    """Test flat-row to image conversion."""

    def test_row_major_layout(self):
        flat = np.arange(2 * 784).reshape(2, 784)
        images = reshape_images(flat)
        assert images.shape == (2, 28, 28, 1)
        # pixel k -> (k // 28, k % 28)
        assert images[0, 1, 0, 0] == 28
        assert images[0, 0, 27, 0] == 27
        assert images[1, 27, 27, 0] == 2 * 784 - 1

    def test_round_trip(self):
        images = np.random.default_rng(0).random((3, 28, 28, 1))
        assert np.array_equal(reshape_images(flatten_images(images)), images)

    def test_bad_element_count(self):
        with pytest.raises(ShapeError):
            reshape_images(np.zeros(785))

    def test_bad_row_width(self):
        with pytest.raises(ShapeError):
            reshape_images(np.zeros((784, 2)))

    def test_expected_count_mismatch(self):
        with pytest.raises(ShapeError):
            reshape_images(np.zeros((2, 784)), num_images=3)

    def test_flatten_rejects_wrong_shape(self):
        with pytest.raises(ShapeError):
            flatten_images(np.zeros((2, 28, 28)))

    def test_torch_layout(self):
        images = np.zeros((4, 28, 28, 1), dtype=np.float32)
        images[0, 5, 6, 0] = 1.0
        tensor = to_torch_layout(images)
        assert tensor.shape == (4, 1, 28, 28)
        assert tensor.dtype == torch.float32
        assert tensor[0, 0, 5, 6] == 1.0


@pytest.mark.unit
class TestPreprocess:
    """Test the full load-and-preprocess path."""

    def test_train_data(self, train_csv):
        features, labels = load_train_data(train_csv)
        assert features.shape == (100, 28, 28, 1)
        assert labels.shape == (100, 10)
        assert features.dtype == np.float32
        assert features.min() >= 0.0 and features.max() <= 1.0
        assert labels.argmax(axis=1).tolist() == [i % 10 for i in range(100)]

    def test_test_data(self, unlabeled_csv):
        features = load_test_data(unlabeled_csv)
        assert features.shape == (10, 28, 28, 1)

    def test_label_out_of_range_in_file(self, tmp_path):
        rows = [[1] + [0] * 784, [12] + [0] * 784]
        path = write_rows(tmp_path / "bad_label.csv", TRAIN_HEADER, rows)
        with pytest.raises(RangeError):
            load_train_data(path)

    def test_pixel_out_of_range_in_file(self, tmp_path):
        rows = [[1] + [300] + [0] * 783]
        path = write_rows(tmp_path / "bad_pixel.csv", TRAIN_HEADER, rows)
        with pytest.raises(RangeError):
            load_train_data(path)
