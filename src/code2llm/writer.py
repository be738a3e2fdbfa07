"""
Output writing for code2llm.

Names segment files, removes outputs left by earlier runs, and writes new ones.
"""

from __future__ import annotations

import glob
import re
from pathlib import Path

from .segmenter import Result

_UNSAFE_NAME_CHARS = re.compile(r"[^\w.-]+")


def segment_filename(
    prefix: str,
    project: str,
    part: int,
    total: int,
    multi_project: bool = False,
) -> str:
    """Build the file name for one segment.

    Args:
        prefix: Output file prefix (e.g., `LLM_CODE`).
        project: Project name, used only for multi-project runs.
        part: 1-based part number.
        total: Number of parts for the project.
        multi_project: Whether several projects are written in one run.

    Returns:
        `PREFIX.md` for a lone segment, `PREFIX_partNN.md` otherwise, with
        `_<project>` inserted after the prefix for multi-project runs.
    """
    stem = prefix
    if multi_project:
        stem = f"{stem}_{_UNSAFE_NAME_CHARS.sub('_', project)}"
    if total <= 1:
        return f"{stem}.md"
    return f"{stem}_part{part:02d}.md"


def clean_old_outputs(output_dir: Path, prefix: str) -> list[Path]:
    """Delete `PREFIX*.md` files written by earlier runs.

    Args:
        output_dir: Directory holding the outputs.
        prefix: Output file prefix.

    Returns:
        Paths that were removed.
    """
    if not output_dir.is_dir():
        return []

    removed = []
    for path in sorted(output_dir.glob(f"{glob.escape(prefix)}*.md")):
        if path.is_file():
            path.unlink()
            removed.append(path)
    return removed


def write_results(
    results: list[Result],
    output_dir: Path,
    prefix: str,
) -> tuple[list[Path], int]:
    """Write every segment of every result.

    Args:
        results: Packed results, one per project.
        output_dir: Directory to write into (created if missing).
        prefix: Output file prefix.

    Returns:
        Tuple of (written paths in order, total bytes written).
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    multi_project = len(results) > 1

    written: list[Path] = []
    total_bytes = 0
    for result in results:
        total = len(result.segments)
        for segment in result.segments:
            name = segment_filename(
                prefix, result.project_name, segment.part_num, total, multi_project
            )
            path = output_dir / name
            data = segment.content.encode("utf-8")
            path.write_bytes(data)
            written.append(path)
            total_bytes += len(data)
    return written, total_bytes
