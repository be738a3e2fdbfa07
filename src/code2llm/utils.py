"""
Utility functions for code2llm.

Includes token estimation, encoding detection, binary sniffing, line counting, and
number formatting helpers.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import chardet

# Try to import tiktoken for accurate token counting
_tiktoken_encoder: Any | None = None
try:
    import tiktoken

    try:
        # Some environments (sandboxed CI, restricted containers) may have `tiktoken`
        # installed but unable to initialize its resources. In that case, gracefully
        # fall back to the heuristic estimator rather than failing at import time.
        _tiktoken_encoder = tiktoken.get_encoding("cl100k_base")
    except Exception:
        _tiktoken_encoder = None
except ImportError:
    pass


def estimate_tokens(text: str) -> int:
    """Estimate token count for a string.

    Uses `tiktoken` when available for a closer approximation to OpenAI-style tokenization;
    otherwise falls back to a lightweight heuristic.

    Args:
        text: Input text to estimate tokens for.

    Returns:
        Estimated number of tokens in `text`.
    """
    if _tiktoken_encoder is not None:
        return len(_tiktoken_encoder.encode(text, disallowed_special=()))

    # Fallback heuristic (~4 chars/token) keeps the tool usable without optional deps.
    return len(text) // 4


def detect_encoding(file_path: Path, sample_size: int = 8192) -> str:
    """Detect a likely text encoding for a file.

    Prefers UTF-8 and only asks `chardet` when strict UTF-8 decoding fails.

    Args:
        file_path: Path to the file to inspect.
        sample_size: Number of bytes to sample from the start of the file.

    Returns:
        A normalized encoding label (e.g., `"utf-8"`, `"utf-8-sig"`, `"utf-16-le"`).
    """
    try:
        with open(file_path, "rb") as f:
            sample = f.read(sample_size)
    except OSError:
        return "utf-8"

    if not sample:
        return "utf-8"

    # Check for BOM markers first (most reliable)
    if sample.startswith(b"\xef\xbb\xbf"):
        return "utf-8-sig"
    if sample.startswith(b"\xff\xfe"):
        return "utf-16-le"
    if sample.startswith(b"\xfe\xff"):
        return "utf-16-be"

    try:
        sample.decode("utf-8")
        return "utf-8"
    except UnicodeDecodeError:
        pass

    result = chardet.detect(sample)
    encoding_any = result.get("encoding")
    if not isinstance(encoding_any, str) or not encoding_any:
        return "utf-8"

    encoding = encoding_any.lower()
    if encoding in ("ascii", "utf-8", "utf8"):
        return "utf-8"
    return encoding


def is_binary_file(file_path: Path, sample_size: int = 8192) -> bool:
    """Heuristically determine whether a file is binary.

    A NUL byte in the sample is a strong binary signal; otherwise the file is binary when
    more than 30% of the sampled bytes are control characters other than tab, CR and LF.

    Args:
        file_path: Path to the file to test.
        sample_size: Number of bytes to sample from the file start.

    Returns:
        True if the file is likely binary (or unreadable), otherwise False.
    """
    try:
        with open(file_path, "rb") as f:
            sample = f.read(sample_size)
    except OSError:
        return True

    return is_binary_content(sample)


def is_binary_content(sample: bytes) -> bool:
    """Apply the binary heuristic to a byte sample."""
    if not sample:
        return False

    if b"\x00" in sample:
        return True

    control = sum(1 for b in sample if (b < 32 and b not in (9, 10, 13)) or b == 127)
    return control / len(sample) > 0.30


def read_file_safe(file_path: Path, encoding: str | None = None) -> tuple[str, str]:
    """Read a file robustly with encoding detection.

    Strategy:
    - If `encoding` is explicitly provided, use it.
    - Otherwise, try strict UTF-8 first (most modern repos are UTF-8).
    - If UTF-8 fails, detect encoding and retry using `errors="replace"`.

    Args:
        file_path: Path to the file to read.
        encoding: Optional explicit encoding to use (None enables auto-detection).

    Returns:
        A tuple `(content, encoding_used)`.

    Raises:
        OSError: If the file cannot be read at all.
    """
    if encoding is not None:
        try:
            with open(file_path, encoding=encoding, errors="replace") as f:
                return f.read(), encoding
        except LookupError:
            # Unknown encoding, fall through to auto-detect
            pass

    try:
        with open(file_path, encoding="utf-8", errors="strict") as f:
            return f.read(), "utf-8"
    except UnicodeDecodeError:
        pass

    detected = detect_encoding(file_path)
    try:
        with open(file_path, encoding=detected, errors="replace") as f:
            return f.read(), detected
    except LookupError:
        with open(file_path, encoding="utf-8", errors="replace") as f:
            return f.read(), "utf-8"


def normalize_path(path: str) -> str:
    """Normalize a path to forward slashes for cross-platform comparisons."""
    return path.replace("\\", "/")


def normalize_line_endings(content: str) -> str:
    """Normalize line endings to LF (Unix-style).

    Args:
        content: Input text that may contain CRLF/CR/mixed endings.

    Returns:
        Content with all line endings normalized to LF.
    """
    # Replace CRLF first, then remaining CR, to avoid double-transforming CRLF.
    return content.replace("\r\n", "\n").replace("\r", "\n")


def count_lines(content: str) -> int:
    """Count lines the way editors do.

    An empty string has zero lines; a trailing newline does not start a new line; any
    non-empty content has at least one line.
    """
    if not content:
        return 0
    content = normalize_line_endings(content)
    count = content.count("\n") + 1
    if content.endswith("\n"):
        count -= 1
    return max(count, 1)


def format_number(n: int) -> str:
    """Format an integer with thousands separators (e.g., `12,345`)."""
    return f"{n:,}"


def format_bytes(size: int) -> str:
    """Format a byte count with binary units (e.g., `1.5 KB`)."""
    unit = 1024
    if size < unit:
        return f"{size} B"
    value = float(size)
    for suffix in "KMGTPE":
        value /= unit
        if value < unit:
            return f"{value:.1f} {suffix}B"
    return f"{value:.1f} EB"
