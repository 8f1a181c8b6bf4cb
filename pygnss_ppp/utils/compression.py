"""
Compression utilities for run logs and session archives.

Provides:
- Gzip compression of single files (engine logs)
- Tar+gzip archiving of a whole working directory (full-session logs)
"""

from __future__ import annotations

import gzip
import shutil
import tarfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass
class CompressionResult:
    """Result of a compression operation."""

    success: bool
    input_path: Path
    output_path: Optional[Path] = None
    error: Optional[str] = None


def compress_gzip(
    input_path: Path | str,
    output_path: Optional[Path | str] = None,
    keep_original: bool = True,
    compression_level: int = 9,
) -> CompressionResult:
    """Compress file with gzip.

    Args:
        input_path: Path to input file
        output_path: Output path (auto-generated if None)
        keep_original: Keep the original file
        compression_level: Compression level (1-9)

    Returns:
        CompressionResult
    """
    input_path = Path(input_path)
    result = CompressionResult(success=False, input_path=input_path)

    if not input_path.exists():
        result.error = f"Input file not found: {input_path}"
        return result

    if output_path:
        output_path = Path(output_path)
    else:
        output_path = input_path.parent / (input_path.name + ".gz")

    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(input_path, "rb") as f_in:
            with gzip.open(output_path, "wb", compresslevel=compression_level) as f_out:
                shutil.copyfileobj(f_in, f_out)

        result.success = True
        result.output_path = output_path

        if not keep_original:
            input_path.unlink()

    except OSError as e:
        result.error = f"Gzip compression failed: {e}"

    return result


def archive_directory(
    directory: Path | str,
    output_path: Path | str,
) -> CompressionResult:
    """Archive a directory's contents into a gzipped tarball.

    Members are stored relative to the directory's parent, so the archive
    unpacks into a single folder named after the directory.

    Args:
        directory: Directory to archive
        output_path: Target .tgz path

    Returns:
        CompressionResult
    """
    directory = Path(directory)
    output_path = Path(output_path)
    result = CompressionResult(success=False, input_path=directory)

    if not directory.is_dir():
        result.error = f"Directory not found: {directory}"
        return result

    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with tarfile.open(output_path, "w:gz") as tar:
            tar.add(directory, arcname=directory.name)

        result.success = True
        result.output_path = output_path

    except (OSError, tarfile.TarError) as e:
        result.error = f"Archive failed: {e}"

    return result
