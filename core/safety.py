"""
Lumen — Safety & Resource Guards
Preflight checks run before reading input files, and shape/size guards for
frames entering a backend. Prevents oversized inputs and runaway allocations.
"""

import os
from pathlib import Path

import numpy as np

from core.errors import FrameError, LumenError

# --- Configurable Limits ---
MAX_FILE_MB = 500          # Maximum input file size
MIN_DISK_GB = 1.0          # Minimum free disk space
MAX_FRAME_DIMENSION = 8192
IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".bmp", ".tif", ".tiff", ".webp"}
VIDEO_EXTENSIONS = {".mp4", ".mov", ".avi", ".mkv", ".webm", ".m4v"}
ALLOWED_EXTENSIONS = IMAGE_EXTENSIONS | VIDEO_EXTENSIONS


class SafetyError(LumenError):
    """Raised when a preflight check fails."""
    pass


def preflight(input_path: str, output_dir: str | None = None) -> dict:
    """Run all safety checks before processing a file.

    Args:
        input_path: Path to the input file.
        output_dir: Directory where output will be written (optional).

    Returns:
        dict with file metadata (path, size_mb, extension, is_video)

    Raises:
        SafetyError: If any check fails.
        FileNotFoundError: If input doesn't exist.
    """
    input_path = str(input_path)
    real_path = os.path.realpath(input_path)

    # 1. File exists
    if not os.path.isfile(real_path):
        raise FileNotFoundError(f"Input file not found: {input_path}")

    # 2. File size check
    size_mb = os.path.getsize(real_path) / (1024 * 1024)
    if size_mb > MAX_FILE_MB:
        raise SafetyError(
            f"Input file is {size_mb:.0f}MB, exceeds {MAX_FILE_MB}MB limit. "
            f"Use a shorter clip or lower resolution."
        )

    # 3. File extension check
    ext = Path(real_path).suffix.lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise SafetyError(
            f"File type '{ext}' not allowed. "
            f"Supported: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
        )

    # 4. Disk space check (if output dir specified)
    if output_dir:
        output_dir = str(output_dir)
        check_dir = output_dir if os.path.isdir(output_dir) else os.path.dirname(output_dir) or "."
        try:
            stat = os.statvfs(check_dir)
        except OSError:
            stat = None  # Can't check disk space, proceed
        if stat is not None:
            free_gb = (stat.f_bavail * stat.f_frsize) / (1024 ** 3)
            if free_gb < MIN_DISK_GB:
                raise SafetyError(
                    f"Only {free_gb:.1f}GB free disk space, need {MIN_DISK_GB}GB minimum."
                )

    return {
        "path": real_path,
        "size_mb": size_mb,
        "extension": ext,
        "is_video": ext in VIDEO_EXTENSIONS,
    }


def validate_frame(frame: np.ndarray, max_dimension: int = MAX_FRAME_DIMENSION) -> None:
    """Check a frame is (H, W, 3|4) uint8 and not absurdly large.

    Raises:
        FrameError: If the array can't be rendered.
    """
    if not isinstance(frame, np.ndarray):
        raise FrameError(f"Frame must be a numpy array, got {type(frame).__name__}")
    if frame.ndim != 3 or frame.shape[2] not in (3, 4):
        raise FrameError(f"Frame must be (H, W, 3) or (H, W, 4), got {frame.shape}")
    if frame.dtype != np.uint8:
        raise FrameError(f"Frame must be uint8, got {frame.dtype}")
    h, w = frame.shape[:2]
    if h < 1 or w < 1:
        raise FrameError(f"Empty frame: {w}x{h}")
    if h > max_dimension or w > max_dimension:
        raise FrameError(f"Frame {w}x{h} exceeds {max_dimension}px limit")
