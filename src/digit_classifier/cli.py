"""Command-line interface: print the model, train it, or classify one record.

Usage::

    digit-classifier model
    digit-classifier --artifact ./artifact train --epochs 10 --batch-size 64
    digit-classifier --artifact ./artifact inf --index 42

    # Offline smoke run on rendered digits instead of MNIST
    digit-classifier --synthetic 512 train --epochs 1 --workers 0
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence

from loguru import logger
from rich.console import Console
from rich.table import Table

from digit_classifier.backend import ComputeBackend, resolve_backend
from digit_classifier.callbacks.model_info import ModelInfoCallback, model_summary_table
from digit_classifier.callbacks.statistics import DatasetStatisticsCallback
from digit_classifier.config import ModelConfig, TrainingConfig, parse_config
from digit_classifier.data.dataset import MnistRecordDataset, RecordDataset
from digit_classifier.errors import DigitClassifierError
from digit_classifier.inference.checkpoint_inferencer import infer
from digit_classifier.synthetic.renderer import SyntheticDigitDataset
from digit_classifier.training import train

DEFAULT_HIDDEN_SIZE = 512


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="digit-classifier",
        description="Train and run a small CNN on 28x28 grayscale digits",
    )
    parser.add_argument(
        "-a", "--artifact", dest="artifact_dir", default="./artifact",
        help="Artifact directory (default: ./artifact)",
    )
    parser.add_argument(
        "-d", "--device", default="auto",
        help="Device selector: auto, cpu, cuda, cuda:N or mps (default: auto)",
    )
    parser.add_argument(
        "--data-root", default="./data", help="MNIST directory (default: ./data)"
    )
    parser.add_argument(
        "--synthetic", type=int, default=None, metavar="RECORDS",
        help="Use RECORDS rendered training digits instead of MNIST",
    )
    parser.add_argument(
        "--hidden-size", type=int, default=None,
        help=f"Hidden layer width (default: {DEFAULT_HIDDEN_SIZE}; "
        "for inf, checked against the checkpoint when given)",
    )
    parser.add_argument(
        "--num-classes", type=int, default=10, help="Number of classes (default: 10)"
    )
    parser.add_argument("--log-level", default="INFO", help="Log level (default: INFO)")

    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser(
        "model", aliases=["print", "print-model"], help="Print model"
    )

    train_parser = subparsers.add_parser("train", help="Training")
    train_parser.add_argument(
        "-e", "--epochs", dest="num_epochs", type=int, default=10,
        help="Number of epochs (default: 10)",
    )
    train_parser.add_argument(
        "-b", "--batch-size", "--batch_size", dest="batch_size", type=int, default=64,
        help="Batch size (default: 64)",
    )
    train_parser.add_argument(
        "-w", "--workers", dest="num_workers", type=int, default=4,
        help="Number of workers (default: 4)",
    )
    train_parser.add_argument(
        "-l", "--lr", dest="learning_rate", type=float, default=1.0e-4,
        help="Learning rate (default: 1e-4)",
    )
    train_parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    train_parser.add_argument(
        "--divergence-policy", choices=["warn", "abort"], default="warn",
        help="What a NaN/Inf training loss does (default: warn)",
    )
    train_parser.add_argument(
        "--plot", action="store_true", help="Write loss/accuracy curves to the artifact dir"
    )

    inf_parser = subparsers.add_parser("inf", help="Inference")
    inf_parser.add_argument(
        "-i", "--index", "--idx", dest="index", type=int, default=42,
        help="Record index in the test split (default: 42)",
    )
    return parser


def _train_dataset(args: argparse.Namespace, num_classes: int) -> RecordDataset:
    """Training split, synthetic or MNIST."""
    if args.synthetic is not None:
        return SyntheticDigitDataset(args.synthetic, num_classes=num_classes, seed=0)
    return MnistRecordDataset(root=args.data_root, train=True)


def _test_dataset(args: argparse.Namespace, num_classes: int) -> RecordDataset:
    """Test split (also used for validation), synthetic or MNIST."""
    if args.synthetic is not None:
        return SyntheticDigitDataset(
            max(1, args.synthetic // 4), num_classes=num_classes, seed=1
        )
    return MnistRecordDataset(root=args.data_root, train=False)


def _model_config(args: argparse.Namespace) -> ModelConfig:
    hidden_size = args.hidden_size or DEFAULT_HIDDEN_SIZE
    return parse_config(  # type: ignore[no-any-return]
        ModelConfig, {"num_classes": args.num_classes, "hidden_size": hidden_size}
    )


def run_model(args: argparse.Namespace, backend: ComputeBackend) -> None:
    model = _model_config(args).init(backend)
    console = Console()
    console.print(f"Model:\n{model}")
    console.print(model_summary_table(model))


def run_train(args: argparse.Namespace, backend: ComputeBackend) -> None:
    model_config = _model_config(args)
    config: TrainingConfig = parse_config(
        TrainingConfig,
        {
            "model": model_config.model_dump(),
            "optimizer": {"learning_rate": args.learning_rate},
            "data": {
                "batch_size": args.batch_size,
                "num_workers": args.num_workers,
                "seed": args.seed,
            },
            "num_epochs": args.num_epochs,
            "seed": args.seed,
            "divergence_policy": args.divergence_policy,
        },
    )
    logger.info(
        f"Number of epochs: {config.num_epochs} | batch size: {config.data.batch_size} "
        f"| workers: {config.data.num_workers} | lr: {config.optimizer.learning_rate}"
    )
    train_ds = _train_dataset(args, model_config.num_classes)
    val_ds = _test_dataset(args, model_config.num_classes)
    train(
        args.artifact_dir,
        config,
        backend,
        train_ds,
        val_ds,
        data_root=args.data_root,
        callbacks=[ModelInfoCallback(), DatasetStatisticsCallback()],
        plot_history=args.plot,
    )


def run_inf(args: argparse.Namespace, backend: ComputeBackend) -> None:
    record = _test_dataset(args, args.num_classes).get(args.index)
    model_config = _model_config(args) if args.hidden_size is not None else None
    prediction = infer(args.artifact_dir, backend, record, model_config=model_config)

    table = Table(title=f"Inference: record {args.index}")
    table.add_column("Class", justify="right", style="cyan")
    table.add_column("Logit", justify="right", style="green")
    for class_id, score in enumerate(prediction.logits):
        marker = " <" if class_id == prediction.class_id else ""
        table.add_row(str(class_id), f"{score:.4f}{marker}")
    console = Console()
    console.print(table)
    console.print(
        f"Predicted {prediction.class_id} (confidence {prediction.confidence:.1%}), "
        f"expected {prediction.target}"
    )


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logger.remove()
    logger.add(sys.stderr, level=args.log_level)

    if args.command is None:
        parser.print_help()
        logger.error("No valid subcommand provided.")
        return 2

    try:
        backend = resolve_backend(args.device)
        logger.info(f"Artifact directory: {args.artifact_dir}")
        if args.command in ("model", "print", "print-model"):
            run_model(args, backend)
        elif args.command == "train":
            run_train(args, backend)
        elif args.command == "inf":
            run_inf(args, backend)
    except DigitClassifierError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
    except IndexError as e:
        logger.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
