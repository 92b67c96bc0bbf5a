import math
import os

import matplotlib.pyplot as plt
import numpy as np


def plot_digits(images, titles=None, ncols=5, save_path=None, show=False, title_colors=None):
    """
    Draw a grid of digit images with optional overlay titles

    Args:
        images: (N, 28, 28, 1) or (N, 28, 28) array
        titles: Text drawn above each image
        ncols: Images per row
        save_path: Where to save the figure (optional)
        show: Call plt.show() after drawing
        title_colors: Per-image title colors

    Returns:
        matplotlib.figure.Figure
    """
    images = np.asarray(images)
    num_images = len(images)
    ncols = max(1, min(ncols, num_images))
    nrows = max(1, math.ceil(num_images / ncols))

    fig, axes = plt.subplots(nrows, ncols, figsize=(2 * ncols, 2.2 * nrows), squeeze=False)

    for i, ax in enumerate(axes.flat):
        ax.axis("off")
        if i >= num_images:
            continue
        ax.imshow(images[i].squeeze(), cmap="gray")
        if titles is not None:
            ax.set_title(titles[i])
            if title_colors is not None:
                ax.title.set_color(title_colors[i])

    plt.tight_layout()

    if save_path:
        save_dir = os.path.dirname(save_path)
        if save_dir:
            os.makedirs(save_dir, exist_ok=True)
        fig.savefig(save_path, dpi=150, bbox_inches="tight")

    if show:
        plt.show()

    return fig


def plot_samples(images, one_hot_labels, num_samples=10, **kwargs):
    """Show the first training images with their labels"""
    labels = np.asarray(one_hot_labels)[:num_samples].argmax(axis=1)
    return plot_digits(
        images[:num_samples], [f"Label: {label}" for label in labels], **kwargs
    )


def plot_predictions(images, predictions, labels=None, num_samples=10, **kwargs):
    """
    Show images with their predicted digits

    When true labels are given, titles are green for correct and red for
    wrong predictions.
    """
    predictions = np.asarray(predictions)[:num_samples]
    if labels is None:
        titles = [f"Pred: {p}" for p in predictions]
        colors = None
    else:
        labels = np.asarray(labels)[:num_samples]
        titles = [f"True: {t}, Pred: {p}" for t, p in zip(labels, predictions)]
        colors = ["green" if t == p else "red" for t, p in zip(labels, predictions)]

    return plot_digits(images[:num_samples], titles, title_colors=colors, **kwargs)


def plot_history(history, save_path=None, show=False):
    """Loss and accuracy per epoch"""
    epochs = range(1, len(history["loss"]) + 1)

    fig, (ax_loss, ax_acc) = plt.subplots(1, 2, figsize=(10, 4))
    ax_loss.plot(epochs, history["loss"], marker="o")
    ax_loss.set_xlabel("Epoch")
    ax_loss.set_ylabel("Loss")
    ax_loss.set_title("Training loss")

    ax_acc.plot(epochs, history["accuracy"], marker="o", color="tab:green")
    ax_acc.set_xlabel("Epoch")
    ax_acc.set_ylabel("Accuracy (%)")
    ax_acc.set_title("Training accuracy")

    plt.tight_layout()

    if save_path:
        save_dir = os.path.dirname(save_path)
        if save_dir:
            os.makedirs(save_dir, exist_ok=True)
        fig.savefig(save_path, dpi=150, bbox_inches="tight")

    if show:
        plt.show()

    return fig
