import logging
import os

import matplotlib.pyplot as plt

from .augment import DEFAULT_AUGMENTATION, ImageAugmentor
from .dataset import load_test_data, load_train_data
from .model import MODEL_LAYERS, count_parameters, describe_layers, get_model
from .predict import evaluate_accuracy, predict_labels, write_submission
from .train import get_device, seed_everything, train_model
from .visualize import plot_history, plot_predictions, plot_samples

logger = logging.getLogger(__name__)


def _finish_plot(fig, show):
    if not show:
        plt.close(fig)


def run_pipeline(
    train_path,
    test_path,
    output_path="submission.csv",
    model_name="improved",
    num_epochs=1,
    batch_size=64,
    steps_per_epoch=None,
    learning_rate=0.001,
    augmentation=None,
    seed=None,
    plot_dir=None,
    show_plots=False,
    device=None,
):
    """
    Load, preprocess, train, predict and export in one linear run

    Any error is terminal: the submission file is only written after
    training and inference succeed.

    Args:
        train_path: train.csv with label + 784 pixel columns
        test_path: test.csv with 784 pixel columns
        output_path: Where to write the ImageId,Label submission
        model_name: 'baseline' or 'improved'
        num_epochs: Number of training epochs
        batch_size: Minibatch size for training and inference
        steps_per_epoch: Batches per epoch (defaults to one pass over the data)
        learning_rate: Adam learning rate
        augmentation: AugmentationConfig (defaults to DEFAULT_AUGMENTATION)
        seed: Seed for model init, shuffling and augmentation
        plot_dir: Directory for sample/prediction/history figures (optional)
        show_plots: Display figures interactively
        device: Device to train on (auto-detected if None)

    Returns:
        dict: model, history, predictions, train_accuracy and output_path
    """
    if seed is not None:
        seed_everything(seed)
    if augmentation is None:
        augmentation = DEFAULT_AUGMENTATION
    if device is None:
        device = get_device()
    draw = plot_dir is not None or show_plots

    logger.info(f"Loading training data from {train_path}")
    train_images, train_labels = load_train_data(train_path)
    logger.info(f"Loading test data from {test_path}")
    test_images = load_test_data(test_path)
    logger.info(
        f"Train images: {train_images.shape}, labels: {train_labels.shape}, "
        f"test images: {test_images.shape}"
    )

    if draw:
        fig = plot_samples(
            train_images,
            train_labels,
            save_path=os.path.join(plot_dir, "samples.png") if plot_dir else None,
            show=show_plots,
        )
        _finish_plot(fig, show_plots)

    model = get_model(model_name)
    logger.info(f"Model '{model_name}':\n{describe_layers(MODEL_LAYERS[model_name])}")
    logger.info(f"Trainable parameters: {count_parameters(model):,}")

    augmentor = ImageAugmentor(augmentation, seed=seed).fit(train_images)
    stream = augmentor.flow(train_images, train_labels, batch_size=batch_size, seed=seed)

    model, history = train_model(
        model,
        stream,
        num_epochs=num_epochs,
        steps_per_epoch=steps_per_epoch,
        learning_rate=learning_rate,
        device=device,
    )

    train_accuracy = evaluate_accuracy(model, train_images, train_labels, batch_size, device)
    logger.info(f"Accuracy on un-augmented training images: {train_accuracy:.2f}%")

    predictions = predict_labels(model, test_images, batch_size, device)

    if draw:
        fig = plot_predictions(
            test_images,
            predictions,
            save_path=os.path.join(plot_dir, f"predictions_{model_name}.png") if plot_dir else None,
            show=show_plots,
        )
        _finish_plot(fig, show_plots)
        fig = plot_history(
            history,
            save_path=os.path.join(plot_dir, f"history_{model_name}.png") if plot_dir else None,
            show=show_plots,
        )
        _finish_plot(fig, show_plots)

    write_submission(predictions, output_path)

    return {
        "model": model,
        "history": history,
        "predictions": predictions,
        "train_accuracy": train_accuracy,
        "output_path": output_path,
    }


def compare_models(train_path, test_path, output_dir=".", model_names=None, **kwargs):
    """
    Train every variant in turn and write one submission per model

    Returns:
        dict: model name -> run_pipeline result
    """
    if model_names is None:
        model_names = list(MODEL_LAYERS)

    results = {}
    for name in model_names:
        logger.info(f"{'=' * 20} {name} {'=' * 20}")
        results[name] = run_pipeline(
            train_path,
            test_path,
            output_path=os.path.join(output_dir, f"submission_{name}.csv"),
            model_name=name,
            **kwargs,
        )
    return results
