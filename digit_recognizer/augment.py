"""
Random affine augmentation of digit images

ImageAugmentor samples shift, zoom, rotation, shear and flip parameters per
image and applies them with torchvision. AugmentedBatchStream wraps a DataLoader
over the training set into an endless, restartable sequence of augmented
minibatches; an epoch is a fixed number of batches pulled from it.
"""

import logging
import math
from dataclasses import dataclass, fields

import numpy as np
import torch
import torchvision.transforms.functional as TF
from torch.utils.data import DataLoader, Dataset
from torchvision.transforms import InterpolationMode

from .errors import ShapeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AugmentationConfig:
    """
    Enabled perturbations and their bounds

    Attributes:
        rotation_range: Max rotation in degrees (sampled in [-r, r])
        width_shift_range: Max horizontal shift as a fraction of the width
        height_shift_range: Max vertical shift as a fraction of the height
        shear_range: Max shear angle in degrees
        zoom_range: Scale is sampled in [1 - z, 1 + z]
        horizontal_flip: Flip left-right with probability 0.5
        vertical_flip: Flip top-bottom with probability 0.5
        featurewise_center: Subtract the per-channel mean computed by fit()
        featurewise_std_normalization: Divide by the per-channel std from fit()
    """

    rotation_range: float = 0.0
    width_shift_range: float = 0.0
    height_shift_range: float = 0.0
    shear_range: float = 0.0
    zoom_range: float = 0.0
    horizontal_flip: bool = False
    vertical_flip: bool = False
    featurewise_center: bool = False
    featurewise_std_normalization: bool = False

    def __post_init__(self):
        for field in fields(self):
            value = getattr(self, field.name)
            if field.type is float and value < 0:
                raise ValueError(f"{field.name} must be non-negative, got {value}")
        if self.zoom_range >= 1:
            raise ValueError(f"zoom_range must be below 1, got {self.zoom_range}")

    @property
    def is_geometric_identity(self):
        return not any(
            [
                self.rotation_range,
                self.width_shift_range,
                self.height_shift_range,
                self.shear_range,
                self.zoom_range,
                self.horizontal_flip,
                self.vertical_flip,
            ]
        )


# Magnitudes used for the improved model run
DEFAULT_AUGMENTATION = AugmentationConfig(
    rotation_range=10,
    width_shift_range=0.1,
    height_shift_range=0.1,
    zoom_range=0.1,
)


def _make_generator(seed):
    generator = torch.Generator()
    if seed is None:
        generator.seed()
    else:
        generator.manual_seed(seed)
    return generator


class ImageAugmentor:
    """Samples and applies random affine transforms to NHWC float images"""

    def __init__(self, config=None, seed=None):
        self.config = config if config is not None else AugmentationConfig()
        self.seed = seed
        self.mean = None
        self.std = None
        self._generator = _make_generator(seed)

    def fit(self, images):
        """Compute featurewise statistics over a (N, H, W, C) array"""
        images = np.asarray(images, dtype=np.float32)
        if images.ndim != 4:
            raise ShapeError(f"Expected a 4-D image batch, got shape {images.shape}")

        if self.config.featurewise_center:
            self.mean = images.mean(axis=(0, 1, 2))
        if self.config.featurewise_std_normalization:
            self.std = images.std(axis=(0, 1, 2))
        return self

    def standardize(self, images):
        if self.config.featurewise_center:
            if self.mean is None:
                raise ValueError("featurewise_center is set but fit() was never called")
            images = images - self.mean
        if self.config.featurewise_std_normalization:
            if self.std is None:
                raise ValueError(
                    "featurewise_std_normalization is set but fit() was never called"
                )
            images = images / (self.std + 1e-6)
        return images.astype(np.float32, copy=False)

    def _uniform(self, bound, generator):
        return (torch.rand(1, generator=generator).item() * 2.0 - 1.0) * bound

    def _coin(self, generator):
        return torch.rand(1, generator=generator).item() < 0.5

    def get_random_params(self, image_shape, generator=None):
        """
        Sample one set of transform parameters

        Every parameter is drawn independently and uniformly within its bound.
        """
        if generator is None:
            generator = self._generator
        height, width = image_shape[:2]
        cfg = self.config

        return {
            "angle": self._uniform(cfg.rotation_range, generator),
            "translate": [
                int(round(self._uniform(cfg.width_shift_range, generator) * width)),
                int(round(self._uniform(cfg.height_shift_range, generator) * height)),
            ],
            "scale": 1.0 + self._uniform(cfg.zoom_range, generator),
            "shear": self._uniform(cfg.shear_range, generator),
            "horizontal_flip": cfg.horizontal_flip and self._coin(generator),
            "vertical_flip": cfg.vertical_flip and self._coin(generator),
        }

    def apply_transform(self, image, params):
        """Apply sampled params to a single (H, W, C) image"""
        tensor = torch.from_numpy(
            np.ascontiguousarray(np.asarray(image, dtype=np.float32).transpose(2, 0, 1))
        )

        if params["horizontal_flip"]:
            tensor = TF.hflip(tensor)
        if params["vertical_flip"]:
            tensor = TF.vflip(tensor)

        tensor = TF.affine(
            tensor,
            angle=params["angle"],
            translate=params["translate"],
            scale=params["scale"],
            shear=[params["shear"], 0.0],
            interpolation=InterpolationMode.BILINEAR,
        )
        return tensor.numpy().transpose(1, 2, 0)

    def random_transform(self, image, generator=None):
        if self.config.is_geometric_identity:
            return np.array(image, dtype=np.float32)
        params = self.get_random_params(np.shape(image), generator)
        return self.apply_transform(image, params)

    def flow(self, images, labels=None, batch_size=32, shuffle=True, seed=None):
        """Return an endless stream of augmented (images, labels) batches"""
        return AugmentedBatchStream(
            self,
            images,
            labels,
            batch_size=batch_size,
            shuffle=shuffle,
            seed=self.seed if seed is None else seed,
        )


class AugmentedDataset(Dataset):
    """Applies a fresh random transform every time an image is fetched"""

    def __init__(self, augmentor, images, labels=None):
        self.augmentor = augmentor
        self.images = images
        self.labels = labels
        self.generator = _make_generator(None)

    def __len__(self):
        return len(self.images)

    def __getitem__(self, idx):
        image = self.augmentor.random_transform(self.images[idx], self.generator)
        if self.labels is None:
            return image
        return image, self.labels[idx]


def _stack_batch(samples):
    if isinstance(samples[0], tuple):
        images, labels = zip(*samples)
        return np.stack(images), np.asarray(labels)
    return np.stack(samples)


class AugmentedBatchStream:
    """
    Lazy, infinite iterator of augmented minibatches

    Wraps a DataLoader over an AugmentedDataset and starts a new pass (with a
    new shuffle order) whenever the loader runs out; the last batch of a pass
    may be shorter than batch_size. reset() restarts the sequence from the seed.
    """

    def __init__(self, augmentor, images, labels=None, batch_size=32, shuffle=True, seed=None):
        images = np.asarray(images, dtype=np.float32)
        if images.ndim != 4:
            raise ShapeError(f"Expected a 4-D image batch, got shape {images.shape}")
        if len(images) == 0:
            raise ValueError("Cannot stream batches from an empty dataset")
        if labels is not None:
            labels = np.asarray(labels)
            if len(labels) != len(images):
                raise ShapeError(
                    f"Got {len(images)} images but {len(labels)} labels"
                )
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")

        self.augmentor = augmentor
        self.dataset = AugmentedDataset(augmentor, images, labels)
        self.batch_size = batch_size
        self.shuffle = shuffle
        self.seed = seed
        self.reset()

    def __len__(self):
        """Number of batches in one pass over the data"""
        return steps_per_epoch(len(self.dataset), self.batch_size)

    def reset(self):
        # Shuffling and transform sampling draw from separate generators
        self.dataset.generator = _make_generator(self.seed)
        self.loader = DataLoader(
            self.dataset,
            batch_size=self.batch_size,
            shuffle=self.shuffle,
            generator=_make_generator(None if self.seed is None else self.seed + 1),
            collate_fn=_stack_batch,
        )
        self._iterator = iter(self.loader)
        self.batches_seen = 0

    def __iter__(self):
        return self

    def __next__(self):
        try:
            batch = next(self._iterator)
        except StopIteration:
            self._iterator = iter(self.loader)
            batch = next(self._iterator)
        self.batches_seen += 1

        if self.dataset.labels is None:
            return self.augmentor.standardize(batch)
        images, labels = batch
        return self.augmentor.standardize(images), labels


def steps_per_epoch(num_samples, batch_size):
    return math.ceil(num_samples / batch_size)
