import logging
import math
import random

import numpy as np
import torch
import torch.nn as nn
import torch.optim as optim

from .dataset import to_torch_layout
from .errors import TrainingError

logger = logging.getLogger(__name__)


def get_device():
    return torch.device("cuda" if torch.cuda.is_available() else "cpu")


def seed_everything(seed):
    """Seed python, numpy and torch RNGs"""
    random.seed(seed)
    np.random.seed(seed)
    torch.manual_seed(seed)


def train_epoch(model, device, stream, optimizer, criterion, steps, epoch, log_interval=100):
    """
    Train for one epoch of `steps` batches pulled from an augmented stream

    Returns:
        tuple: (average loss, accuracy in percent)
    """
    model.train()
    train_loss = 0.0
    correct = 0
    seen = 0

    for step in range(steps):
        images, labels = next(stream)
        data = to_torch_layout(images).to(device)
        # one-hot rows -> class indices for NLLLoss
        target = torch.as_tensor(labels).argmax(dim=1).to(device)

        optimizer.zero_grad()
        try:
            output = model(data)
            loss = criterion(output, target)
            if not torch.isfinite(loss):
                raise TrainingError(
                    f"Loss diverged to {loss.item()} at epoch {epoch}, step {step}"
                )
            loss.backward()
            optimizer.step()
        except RuntimeError as e:
            raise TrainingError(f"Training failed at epoch {epoch}, step {step}: {e}") from e

        train_loss += loss.item()
        correct += (output.argmax(dim=1) == target).sum().item()
        seen += len(data)

        if log_interval and step % log_interval == 0:
            logger.info(
                f"Train Epoch: {epoch} [{step}/{steps} "
                f"({100.0 * step / steps:.0f}%)]\tLoss: {loss.item():.6f}"
            )

    train_loss /= steps
    accuracy = 100.0 * correct / seen
    logger.info(
        f"Epoch {epoch}: Average loss: {train_loss:.4f}, "
        f"Accuracy: {correct}/{seen} ({accuracy:.2f}%)"
    )
    return train_loss, accuracy


def train_model(
    model,
    stream,
    num_epochs=1,
    steps_per_epoch=None,
    learning_rate=0.001,
    device=None,
    criterion=None,
):
    """
    Fit a model on an augmented batch stream with Adam and categorical cross-entropy

    The model ends in LogSoftmax, so NLLLoss on the class index is the
    categorical cross-entropy of the one-hot targets.

    Args:
        model: torch model ending in LogSoftmax
        stream: AugmentedBatchStream yielding (images, one_hot_labels)
        num_epochs: Number of epochs
        steps_per_epoch: Batches per epoch (defaults to one pass over the data)
        learning_rate: Adam learning rate
        device: Device to train on (auto-detected if None)
        criterion: Loss on log-probabilities (defaults to nn.NLLLoss())

    Returns:
        tuple: (trained_model, training_history)
    """
    if device is None:
        device = get_device()
    if steps_per_epoch is None:
        steps_per_epoch = len(stream)
    if num_epochs < 1 or steps_per_epoch < 1:
        raise ValueError(
            f"num_epochs and steps_per_epoch must be positive, "
            f"got {num_epochs} and {steps_per_epoch}"
        )

    logger.info(f"Training on device: {device}")
    model = model.to(device)
    optimizer = optim.Adam(model.parameters(), lr=learning_rate)
    if criterion is None:
        criterion = nn.NLLLoss()

    history = {"loss": [], "accuracy": []}

    for epoch in range(1, num_epochs + 1):
        loss, accuracy = train_epoch(
            model, device, stream, optimizer, criterion, steps_per_epoch, epoch
        )
        if not math.isfinite(loss):
            raise TrainingError(f"Average loss is not finite after epoch {epoch}")
        history["loss"].append(loss)
        history["accuracy"].append(accuracy)

    logger.info("Training completed!")
    return model, history
