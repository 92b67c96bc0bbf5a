import logging

import numpy as np
import pandas as pd
import torch

from .errors import FormatError, RangeError, ShapeError

logger = logging.getLogger(__name__)

NUM_CLASSES = 10
IMAGE_SIZE = 28
NUM_PIXELS = IMAGE_SIZE * IMAGE_SIZE
MAX_PIXEL_VALUE = 255


def load_table(path, has_labels=True):
    """
    Read a Digit Recognizer CSV file into a DataFrame

    Args:
        path: CSV file with a header row
        has_labels: Whether the first column holds the digit label (train.csv)

    Returns:
        pandas.DataFrame: one row per image, all cells numeric

    Raises:
        FormatError: If any row has the wrong number of columns or a
            non-numeric cell, or the file is not valid UTF-8
        FileNotFoundError: If the file does not exist
    """
    expected_columns = NUM_PIXELS + 1 if has_labels else NUM_PIXELS

    # The header is read separately so every data row is checked against
    # the width of the first one instead of letting pandas infer an index.
    try:
        header = pd.read_csv(path, nrows=0).columns
        table = pd.read_csv(path, header=None, skiprows=1)
    except pd.errors.EmptyDataError as e:
        raise FormatError(f"{path}: no data rows") from e
    except (pd.errors.ParserError, UnicodeDecodeError) as e:
        raise FormatError(f"{path}: {e}") from e

    if len(header) != expected_columns:
        raise FormatError(
            f"{path}: expected {expected_columns} columns in header, got {len(header)}"
        )
    if table.shape[1] != expected_columns:
        raise FormatError(
            f"{path}: expected {expected_columns} columns per row, got {table.shape[1]}"
        )

    table = table.apply(pd.to_numeric, errors="coerce")
    bad_rows = np.flatnonzero(table.isna().any(axis=1).to_numpy())
    if len(bad_rows) > 0:
        raise FormatError(
            f"{path}: row {bad_rows[0] + 1} has missing or non-numeric values"
        )

    table.columns = header
    logger.info(f"Loaded {len(table)} rows from {path}")
    return table


def one_hot_encode(labels, num_classes=NUM_CLASSES):
    """Encode integer labels as float32 one-hot rows of length num_classes"""
    labels = np.asarray(labels)
    if labels.ndim != 1:
        raise ShapeError(f"Expected a 1-D label array, got shape {labels.shape}")

    if labels.size > 0:
        if not np.all(np.mod(labels, 1) == 0):
            raise RangeError("Labels must be integers")
        if labels.min() < 0 or labels.max() >= num_classes:
            raise RangeError(
                f"Labels must be in [0, {num_classes - 1}], "
                f"got range [{labels.min()}, {labels.max()}]"
            )

    encoded = np.zeros((len(labels), num_classes), dtype=np.float32)
    encoded[np.arange(len(labels)), labels.astype(np.int64)] = 1.0
    return encoded


def normalize_pixels(pixels):
    """Scale intensities linearly from [0, 255] to [0, 1]"""
    pixels = np.asarray(pixels, dtype=np.float32)
    if pixels.size > 0 and (pixels.min() < 0 or pixels.max() > MAX_PIXEL_VALUE):
        raise RangeError(
            f"Pixel values must be in [0, {MAX_PIXEL_VALUE}], "
            f"got range [{pixels.min()}, {pixels.max()}]"
        )
    return pixels / MAX_PIXEL_VALUE


def reshape_images(flat, num_images=None):
    """
    Reshape flat pixel rows into N x 28 x 28 x 1 images

    Pixel k of a row lands at row k // 28, column k % 28 (row-major order).

    Args:
        flat: Array with N * 784 elements, usually shaped (N, 784)
        num_images: Expected N (optional)

    Returns:
        np.ndarray: shape (N, 28, 28, 1)
    """
    flat = np.asarray(flat)
    if flat.size % NUM_PIXELS != 0:
        raise ShapeError(
            f"Cannot reshape {flat.size} elements into {IMAGE_SIZE}x{IMAGE_SIZE} images"
        )
    if flat.ndim == 2 and flat.shape[1] != NUM_PIXELS:
        raise ShapeError(f"Expected rows of {NUM_PIXELS} pixels, got {flat.shape[1]}")
    if num_images is not None and flat.size != num_images * NUM_PIXELS:
        raise ShapeError(
            f"Expected {num_images * NUM_PIXELS} elements for {num_images} images, "
            f"got {flat.size}"
        )

    return flat.reshape(-1, IMAGE_SIZE, IMAGE_SIZE, 1)


def flatten_images(images):
    """Inverse of reshape_images: (N, 28, 28, 1) -> (N, 784)"""
    images = np.asarray(images)
    if images.shape[1:] != (IMAGE_SIZE, IMAGE_SIZE, 1):
        raise ShapeError(
            f"Expected images of shape (N, {IMAGE_SIZE}, {IMAGE_SIZE}, 1), got {images.shape}"
        )
    return images.reshape(len(images), NUM_PIXELS)


def preprocess(table, has_labels=True):
    """
    Turn a raw table into model inputs

    Returns:
        tuple: (features, labels) where features is (N, 28, 28, 1) float32 in
        [0, 1] and labels is (N, 10) one-hot, or None when has_labels is False
    """
    values = table.to_numpy()

    labels = None
    if has_labels:
        labels = one_hot_encode(values[:, 0])
        values = values[:, 1:]

    features = reshape_images(normalize_pixels(values), num_images=len(table))
    return features, labels


def load_train_data(path):
    """Load train.csv and return (features, one_hot_labels)"""
    return preprocess(load_table(path, has_labels=True), has_labels=True)


def load_test_data(path):
    """Load test.csv and return features only"""
    features, _ = preprocess(load_table(path, has_labels=False), has_labels=False)
    return features


def to_torch_layout(images):
    """Convert NHWC numpy images to an NCHW float tensor"""
    images = np.asarray(images, dtype=np.float32)
    if images.ndim != 4:
        raise ShapeError(f"Expected a 4-D image batch, got shape {images.shape}")
    return torch.from_numpy(np.ascontiguousarray(images.transpose(0, 3, 1, 2)))
