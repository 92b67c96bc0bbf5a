import logging
import os

import numpy as np
import pandas as pd
import torch

from .dataset import to_torch_layout

logger = logging.getLogger(__name__)


def predict_proba(model, images, batch_size=256, device=None):
    """
    Run batched inference over (N, 28, 28, 1) images

    Returns:
        np.ndarray: (N, 10) class probabilities
    """
    if device is None:
        device = next(model.parameters()).device

    model.eval()
    outputs = []
    with torch.no_grad():
        for start in range(0, len(images), batch_size):
            data = to_torch_layout(images[start : start + batch_size]).to(device)
            outputs.append(torch.exp(model(data)).cpu().numpy())

    if not outputs:
        return np.zeros((0, 10), dtype=np.float32)
    return np.concatenate(outputs)


def predict_labels(model, images, batch_size=256, device=None):
    """Arg-max digit per image"""
    return predict_proba(model, images, batch_size, device).argmax(axis=1)


def evaluate_accuracy(model, images, one_hot_labels, batch_size=256, device=None):
    """Percentage of images whose predicted label matches the one-hot target"""
    predicted = predict_labels(model, images, batch_size, device)
    correct = int((predicted == np.asarray(one_hot_labels).argmax(axis=1)).sum())
    return 100.0 * correct / len(predicted)


def make_submission(labels):
    """Two-column ImageId/Label frame with 1-based ids"""
    labels = np.asarray(labels, dtype=np.int64)
    return pd.DataFrame(
        {"ImageId": np.arange(1, len(labels) + 1), "Label": labels}
    )


def write_submission(labels, path):
    """Write predictions as an ImageId,Label CSV file and return the path"""
    out_dir = os.path.dirname(path)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)

    make_submission(labels).to_csv(path, index=False)
    logger.info(f"Wrote {len(labels)} predictions to {path}")
    return path
