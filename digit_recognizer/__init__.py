"""
Digit Recognizer package: CSV loading, augmentation, CNN training and submission export
"""

from .errors import FormatError, RangeError, ShapeError, TrainingError
from .dataset import load_train_data, load_test_data
from .augment import AugmentationConfig, ImageAugmentor
from .model import get_model, build_model, BASELINE_LAYERS, IMPROVED_LAYERS
from .train import train_model
from .predict import predict_labels, write_submission
from .pipeline import run_pipeline, compare_models

__all__ = [
    "FormatError",
    "RangeError",
    "ShapeError",
    "TrainingError",
    "load_train_data",
    "load_test_data",
    "AugmentationConfig",
    "ImageAugmentor",
    "get_model",
    "build_model",
    "BASELINE_LAYERS",
    "IMPROVED_LAYERS",
    "train_model",
    "predict_labels",
    "write_submission",
    "run_pipeline",
    "compare_models",
]
