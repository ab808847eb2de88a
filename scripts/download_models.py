#!/usr/bin/env python3
"""
LiveScribe Whisper Model Downloader

Downloads and caches Whisper models for offline use, resolving the compute
device and type the same way the recognition engine does.
"""

import argparse
import sys
from pathlib import Path

# Ensure project root is on sys.path for ``src`` imports
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

try:
    from faster_whisper import WhisperModel
except ImportError:
    print("Error: faster-whisper is not installed.")
    print("Please install it with: pip install faster-whisper")
    sys.exit(1)

from src.core.models import Accelerator, Precision  # noqa: E402
from src.services.transcription.whisper import WhisperSTT, compute_type_for  # noqa: E402

# Model information
MODELS = {
    "tiny.en": {"size": "75 MB", "description": "Fastest, English only (default)"},
    "tiny": {"size": "75 MB", "description": "Fastest, multilingual"},
    "base.en": {"size": "142 MB", "description": "Good balance, English only"},
    "base": {"size": "142 MB", "description": "Good balance, multilingual"},
    "small": {"size": "466 MB", "description": "Better accuracy"},
    "medium": {"size": "1.5 GB", "description": "High accuracy, slower"},
    "large-v3": {"size": "3.1 GB", "description": "Best accuracy, slowest"},
}

DEFAULT_MODEL = "tiny.en"
DEFAULT_CACHE_DIR = Path.home() / ".cache" / "huggingface" / "hub"


def print_models():
    """Print available models with their sizes and descriptions."""
    print("\nAvailable Whisper Models:")
    print("-" * 60)
    for model_name, info in MODELS.items():
        print(f"  {model_name:12} - {info['size']:8} - {info['description']}")
    print("-" * 60)
    print(f"\nDefault model: {DEFAULT_MODEL}")
    print(f"Default cache directory: {DEFAULT_CACHE_DIR}\n")


def download_model(
    model_name: str,
    cache_dir: Path | None = None,
    precision: Precision = Precision.fp32,
    accelerator: Accelerator = Accelerator.preferred,
) -> bool:
    """
    Download a Whisper model.

    The first device the engine would use for ``accelerator`` is used here,
    so the cached weights match what the server loads.

    Args:
        model_name: Name of the model to download
        cache_dir: Directory to cache the model
        precision: "fp32" or "fp16"
        accelerator: "preferred" (CUDA when present) or "cpu-only"

    Returns:
        True if successful, False otherwise
    """
    if model_name not in MODELS:
        print(f"Error: Unknown model '{model_name}'")
        print_models()
        return False

    if cache_dir is None:
        cache_dir = DEFAULT_CACHE_DIR

    device = WhisperSTT.candidate_devices(accelerator)[0]
    compute_type = compute_type_for(device, precision)

    print(f"\n{'='*60}")
    print(f"Downloading Whisper model: {model_name}")
    print(f"Size: {MODELS[model_name]['size']}")
    print(f"Cache directory: {cache_dir}")
    print(f"Device: {device}")
    print(f"Compute type: {compute_type}")
    print(f"{'='*60}\n")

    try:
        cache_dir.mkdir(parents=True, exist_ok=True)

        print("Initializing model download...")
        print("This may take a few minutes depending on your connection.\n")

        # Download model by initializing WhisperModel
        model = WhisperModel(
            model_name,
            device=device,
            compute_type=compute_type,
            download_root=str(cache_dir),
        )

        print(f"\n✓ Successfully downloaded {model_name} model!")
        print(f"  Cache location: {cache_dir}\n")

        del model
        return True

    except Exception as e:
        print(f"\n✗ Error downloading model: {e}")
        return False


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Download Whisper models for LiveScribe",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--model",
        type=str,
        default=DEFAULT_MODEL,
        help=f"Model to download (default: {DEFAULT_MODEL})",
    )

    parser.add_argument(
        "--cache-dir",
        type=Path,
        default=None,
        help=f"Cache directory (default: {DEFAULT_CACHE_DIR})",
    )

    parser.add_argument(
        "--list",
        action="store_true",
        help="List available models and exit",
    )

    parser.add_argument(
        "--precision",
        type=Precision,
        default=Precision.fp32,
        choices=list(Precision),
        help="Engine precision (default: fp32)",
    )

    parser.add_argument(
        "--accelerator",
        type=Accelerator,
        default=Accelerator.preferred,
        choices=list(Accelerator),
        help="Use CUDA when available, or force CPU (default: preferred)",
    )

    args = parser.parse_args(argv)

    if args.list:
        print_models()
        return 0

    success = download_model(args.model, args.cache_dir, args.precision, args.accelerator)
    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
