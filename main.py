import argparse
import logging
import os
import sys

from digit_recognizer.augment import AugmentationConfig
from digit_recognizer.pipeline import compare_models, run_pipeline


def build_augmentation(args):
    """Collect the augmentation flags into a config"""
    return AugmentationConfig(
        rotation_range=args.rotation_range,
        width_shift_range=args.width_shift_range,
        height_shift_range=args.height_shift_range,
        shear_range=args.shear_range,
        zoom_range=args.zoom_range,
        horizontal_flip=args.horizontal_flip,
        vertical_flip=args.vertical_flip,
    )


def print_summary(results):
    print("\n" + "=" * 60)
    print("TRAINING SUMMARY")
    print("=" * 60)
    print("Model      | Final loss | Final acc | Train acc | Output")
    print("-" * 60)
    for name, result in results.items():
        history = result["history"]
        print(
            f"{name:<10} |   {history['loss'][-1]:.4f}   |  {history['accuracy'][-1]:.2f}%  "
            f"|  {result['train_accuracy']:.2f}%  | {result['output_path']}"
        )


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Train a CNN on the Digit Recognizer CSV files and write a submission",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    # Data
    parser.add_argument(
        "--train-csv", type=str, default="data/train.csv", help="Training CSV (default: data/train.csv)"
    )
    parser.add_argument(
        "--test-csv", type=str, default="data/test.csv", help="Test CSV (default: data/test.csv)"
    )
    parser.add_argument(
        "--output",
        type=str,
        default="submission.csv",
        help="Submission file; with --model both, one submission_<model>.csv per model is written next to it (default: submission.csv)",
    )

    # Model and training
    parser.add_argument(
        "--model",
        choices=["baseline", "improved", "both"],
        default="improved",
        help="Architecture to train (default: improved)",
    )
    parser.add_argument("--epochs", type=int, default=3, help="Training epochs (default: 3)")
    parser.add_argument("--batch-size", type=int, default=64, help="Batch size (default: 64)")
    parser.add_argument(
        "--steps-per-epoch",
        type=int,
        default=None,
        help="Batches per epoch (default: one pass over the training data)",
    )
    parser.add_argument(
        "--learning-rate", type=float, default=0.001, help="Adam learning rate (default: 0.001)"
    )
    parser.add_argument("--seed", type=int, default=None, help="Random seed")

    # Augmentation
    parser.add_argument("--rotation-range", type=float, default=10.0, help="Degrees (default: 10)")
    parser.add_argument(
        "--width-shift-range", type=float, default=0.1, help="Fraction of width (default: 0.1)"
    )
    parser.add_argument(
        "--height-shift-range", type=float, default=0.1, help="Fraction of height (default: 0.1)"
    )
    parser.add_argument("--zoom-range", type=float, default=0.1, help="Zoom fraction (default: 0.1)")
    parser.add_argument("--shear-range", type=float, default=0.0, help="Shear degrees (default: 0)")
    parser.add_argument("--horizontal-flip", action="store_true", help="Random left-right flips")
    parser.add_argument("--vertical-flip", action="store_true", help="Random top-bottom flips")

    # Output and logging
    parser.add_argument(
        "--plot-dir", type=str, default=None, help="Directory to save figures (optional)"
    )
    parser.add_argument(
        "--no-display",
        action="store_true",
        help="Don't display plots (useful for batch processing)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )

    return parser.parse_args(argv)


def main(argv=None):
    """Main function with command line interface"""
    args = parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        handlers=[logging.StreamHandler()],
    )

    print("Digit Recognizer")
    print("=" * 50)
    print(f"Train CSV: {args.train_csv}")
    print(f"Test CSV:  {args.test_csv}")
    print(f"Model:     {args.model}")
    print(f"Epochs:    {args.epochs}, batch size: {args.batch_size}")
    print()

    try:
        options = dict(
            num_epochs=args.epochs,
            batch_size=args.batch_size,
            steps_per_epoch=args.steps_per_epoch,
            learning_rate=args.learning_rate,
            augmentation=build_augmentation(args),
            seed=args.seed,
            plot_dir=args.plot_dir,
            show_plots=not args.no_display,
        )
        if args.model == "both":
            results = compare_models(
                args.train_csv, args.test_csv, output_dir=os.path.dirname(args.output) or ".", **options
            )
        else:
            results = {
                args.model: run_pipeline(
                    args.train_csv,
                    args.test_csv,
                    output_path=args.output,
                    model_name=args.model,
                    **options,
                )
            }

        print_summary(results)
        print(f"\n✓ Submission written successfully!")

    except KeyboardInterrupt:
        print(f"\n\nRun interrupted by user")
        sys.exit(1)
    except Exception as e:
        print(f"\n✗ Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
