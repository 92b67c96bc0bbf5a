from collections import namedtuple

import torch.nn as nn

from .errors import ShapeError

# Layer specifications. A model is an ordered tuple of these, interpreted by
# build_model() into torch modules.
Conv2D = namedtuple("Conv2D", ["filters", "kernel_size", "activation"], defaults=["relu"])
MaxPool2D = namedtuple("MaxPool2D", ["pool_size"], defaults=[2])
BatchNorm = namedtuple("BatchNorm", [])
Dropout = namedtuple("Dropout", ["rate"])
Flatten = namedtuple("Flatten", [])
Dense = namedtuple("Dense", ["units", "activation"], defaults=["relu"])


BASELINE_LAYERS = (
    Conv2D(32, 3),
    MaxPool2D(2),
    Conv2D(64, 3),
    MaxPool2D(2),
    Conv2D(64, 3),
    Flatten(),
    Dense(64),
    Dense(10, "softmax"),
)

IMPROVED_LAYERS = (
    BatchNorm(),
    Conv2D(32, 5),
    BatchNorm(),
    Conv2D(32, 5),
    MaxPool2D(2),
    Dropout(0.2),
    BatchNorm(),
    Conv2D(64, 3),
    MaxPool2D(2),
    Dropout(0.2),
    Flatten(),
    Dense(1024),
    Dense(512),
    Dense(256),
    Dense(10, "softmax"),
)

MODEL_LAYERS = {
    "baseline": BASELINE_LAYERS,
    "improved": IMPROVED_LAYERS,
}


def _activation(name):
    if name is None:
        return None
    if name == "relu":
        return nn.ReLU()
    # Paired with the categorical cross-entropy in train.py, which expects
    # log-probabilities
    if name == "softmax":
        return nn.LogSoftmax(dim=1)
    raise ValueError(f"Unsupported activation: {name}")


def build_model(layers, input_shape=(1, 28, 28)):
    """
    Build a torch model from an ordered stack of layer specs

    Channel and feature counts are inferred by tracking the output shape
    through the stack. Convolutions use valid padding.

    Args:
        layers: Sequence of Conv2D/MaxPool2D/BatchNorm/Dropout/Flatten/Dense
        input_shape: (channels, height, width) of a single sample

    Returns:
        nn.Sequential
    """
    modules = []
    shape = tuple(input_shape)

    for spec in layers:
        if isinstance(spec, Conv2D):
            channels, height, width = shape
            height -= spec.kernel_size - 1
            width -= spec.kernel_size - 1
            if height < 1 or width < 1:
                raise ShapeError(f"{spec} shrinks a {shape} input below 1x1")
            modules.append(nn.Conv2d(channels, spec.filters, spec.kernel_size))
            shape = (spec.filters, height, width)
        elif isinstance(spec, MaxPool2D):
            channels, height, width = shape
            height //= spec.pool_size
            width //= spec.pool_size
            if height < 1 or width < 1:
                raise ShapeError(f"{spec} shrinks a {shape} input below 1x1")
            modules.append(nn.MaxPool2d(spec.pool_size))
            shape = (channels, height, width)
        elif isinstance(spec, BatchNorm):
            if len(shape) == 3:
                modules.append(nn.BatchNorm2d(shape[0]))
            else:
                modules.append(nn.BatchNorm1d(shape[0]))
        elif isinstance(spec, Dropout):
            modules.append(nn.Dropout(spec.rate))
        elif isinstance(spec, Flatten):
            modules.append(nn.Flatten())
            size = 1
            for dim in shape:
                size *= dim
            shape = (size,)
        elif isinstance(spec, Dense):
            if len(shape) != 1:
                raise ShapeError(f"{spec} needs a flat input, got {shape}; add Flatten()")
            modules.append(nn.Linear(shape[0], spec.units))
            shape = (spec.units,)
        else:
            raise TypeError(f"Unknown layer spec: {spec!r}")

        activation = _activation(getattr(spec, "activation", None))
        if activation is not None:
            modules.append(activation)

    return nn.Sequential(*modules)


def get_model(name):
    """Build the 'baseline' or 'improved' digit classifier"""
    if name not in MODEL_LAYERS:
        raise ValueError(
            f"Unknown model '{name}', choose from {sorted(MODEL_LAYERS)}"
        )
    return build_model(MODEL_LAYERS[name])


def count_parameters(model):
    return sum(p.numel() for p in model.parameters() if p.requires_grad)


def describe_layers(layers):
    """One line per layer spec, e.g. 'Conv2D(filters=32, kernel_size=3, activation='relu')'"""
    return "\n".join(f"{i:2d}. {spec!r}" for i, spec in enumerate(layers, 1))
