"""
File scanner module for code2llm.

Walks a project directory, applies ignore rules (.gitignore, default and custom
patterns, custom regexes), skips binary and oversized files, and reads the rest into
`FileRecord`s.
"""

from __future__ import annotations

import os
import re
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Optional

import pathspec

from .config import Config, FileRecord, ScanStats
from .utils import (
    count_lines,
    is_binary_file,
    normalize_line_endings,
    normalize_path,
    read_file_safe,
)


def _compile_spec(patterns: list[str]) -> pathspec.PathSpec:
    return pathspec.PathSpec.from_lines(pathspec.patterns.GitWildMatchPattern, patterns)


class GitIgnoreParser:
    """
    Parser for .gitignore files.

    Supports nested .gitignore files; each one applies to paths below its directory.
    Files are loaded as the scanner enters directories, so ignored trees are never read.
    """

    def __init__(self, root_path: Path):
        """
        Initialize the parser.

        Args:
            root_path: Root directory of the project
        """
        self.root_path = root_path.resolve()
        self._specs: dict[Path, pathspec.PathSpec] = {}
        self.load_directory(self.root_path)

    def load_directory(self, directory: Path) -> None:
        """Load the .gitignore in `directory`, if there is one."""
        gitignore_path = directory / ".gitignore"
        if directory in self._specs or not gitignore_path.is_file():
            return
        try:
            with open(gitignore_path, "r", encoding="utf-8", errors="replace") as f:
                lines = f.read().splitlines()
        except OSError:
            return

        patterns = [
            line.strip() for line in lines
            if line.strip() and not line.strip().startswith("#")
        ]
        if patterns:
            self._specs[directory] = _compile_spec(patterns)

    def is_ignored(self, path: Path, is_dir: bool = False) -> bool:
        """
        Check if a path is ignored by any loaded .gitignore.

        Args:
            path: Absolute path to the file or directory
            is_dir: Whether the path is a directory

        Returns:
            True if the path should be ignored
        """
        for base_path, spec in self._specs.items():
            try:
                rel_path = normalize_path(str(path.relative_to(base_path)))
            except ValueError:
                continue  # Not under this .gitignore's directory
            if spec.match_file(rel_path):
                return True
            if is_dir and spec.match_file(rel_path + "/"):
                return True
        return False


class IgnoreRules:
    """
    Project-level ignore rules: gitwildmatch patterns plus regular expressions.

    Patterns are matched against the project-relative path; regexes are searched in both
    the relative path and the file name.
    """

    def __init__(self, config: Config):
        patterns = list(config.ignore_patterns)
        # Never pick up our own earlier output
        patterns.append(f"{config.output.output_prefix}*.md")
        self._spec = _compile_spec(patterns)
        self._regexes = [re.compile(expr) for expr in config.custom_regex]

    def matches(self, rel_path: str, is_dir: bool = False) -> bool:
        if self._spec.match_file(rel_path):
            return True
        if is_dir and self._spec.match_file(rel_path + "/"):
            return True
        name = rel_path.rsplit("/", 1)[-1]
        return any(rx.search(rel_path) or rx.search(name) for rx in self._regexes)


class FileScanner:
    """
    Scans a project for files to include.

    Handles ignore rules, .gitignore, binary detection, and the size limit.
    """

    def __init__(
        self,
        root_path: Path,
        config: Optional[Config] = None,
        respect_gitignore: Optional[bool] = None,
        max_file_bytes: Optional[int] = None,
    ):
        """
        Initialize the scanner.

        Args:
            root_path: Root directory to scan
            config: Configuration supplying ignore rules and language tables
            respect_gitignore: Whether to respect .gitignore files (defaults to config)
            max_file_bytes: Maximum file size in bytes (defaults to config)

        Raises:
            re.error: If a custom ignore regex does not compile
        """
        self.root_path = root_path.resolve()
        self.config = config or Config()
        self.respect_gitignore = (
            self.config.respect_gitignore if respect_gitignore is None else respect_gitignore
        )
        self.max_file_bytes = (
            self.config.max_file_bytes if max_file_bytes is None else max_file_bytes
        )

        self._rules = IgnoreRules(self.config)
        self._gitignore: Optional[GitIgnoreParser] = None
        if self.respect_gitignore:
            self._gitignore = GitIgnoreParser(self.root_path)

        self.stats = ScanStats()

    def relative_path(self, path: Path) -> str:
        return normalize_path(str(path.relative_to(self.root_path)))

    def is_ignored(self, path: Path, is_dir: bool = False) -> bool:
        """Check a path against the ignore rules and any loaded .gitignore files."""
        if self._rules.matches(self.relative_path(path), is_dir):
            return True
        return self._gitignore is not None and self._gitignore.is_ignored(path, is_dir)

    def scan(self) -> list[FileRecord]:
        """
        Scan the project.

        Returns:
            FileRecord objects for every included file, sorted by relative path
        """
        records = []
        for file_path in self._walk_files():
            self.stats.files_scanned += 1
            record = self._read_record(file_path)
            if record is not None:
                records.append(record)
        records.sort(key=lambda r: r.relative_path)
        return records

    def _read_record(self, file_path: Path) -> Optional[FileRecord]:
        rel_path = self.relative_path(file_path)
        if self.is_ignored(file_path):
            self.stats.files_skipped_ignore += 1
            return None

        try:
            size = file_path.stat().st_size
        except OSError:
            self.stats.files_unreadable += 1
            return None

        if size > self.max_file_bytes:
            self.stats.files_skipped_size += 1
            return None

        ext = file_path.suffix.lower()
        if ext in self.config.binary_extensions or is_binary_file(file_path):
            self.stats.files_skipped_binary += 1
            return None

        try:
            content, _ = read_file_safe(file_path)
        except OSError:
            self.stats.files_unreadable += 1
            return None

        content = normalize_line_endings(content)
        language = self.config.get_language(ext, file_path.name)

        self.stats.languages_detected[language] = (
            self.stats.languages_detected.get(language, 0) + 1
        )
        self.stats.files_included += 1
        self.stats.total_bytes_included += size

        return FileRecord(
            relative_path=rel_path,
            language=language,
            content=content,
            is_code=self.config.is_code(ext),
            line_count=count_lines(content),
            size_bytes=size,
        )

    def _walk_files(self) -> Generator[Path, None, None]:
        """
        Walk the project and yield file paths.

        Uses os.scandir; symlinks are skipped and ignored directories are pruned.
        """
        dirs_to_process = [self.root_path]

        while dirs_to_process:
            current_dir = dirs_to_process.pop()
            if self._gitignore is not None:
                self._gitignore.load_directory(current_dir)

            try:
                with os.scandir(current_dir) as entries:
                    entries_list = sorted(entries, key=lambda e: e.name)
            except OSError:
                continue

            subdirs = []
            for entry in entries_list:
                try:
                    if entry.is_symlink():
                        continue
                    entry_path = Path(entry.path)
                    if entry.is_dir():
                        if not self.is_ignored(entry_path, is_dir=True):
                            subdirs.append(entry_path)
                    elif entry.is_file():
                        yield entry_path
                except OSError:
                    continue

            # Reversed so the stack pops directories in name order
            dirs_to_process.extend(reversed(subdirs))


def scan_project(
    root_path: Path,
    config: Optional[Config] = None,
    respect_gitignore: Optional[bool] = None,
    max_file_bytes: Optional[int] = None,
) -> tuple[list[FileRecord], ScanStats]:
    """
    Convenience function to scan a project.

    Returns:
        Tuple of (list of FileRecord, ScanStats)
    """
    scanner = FileScanner(
        root_path=root_path,
        config=config,
        respect_gitignore=respect_gitignore,
        max_file_bytes=max_file_bytes,
    )
    files = scanner.scan()
    return files, scanner.stats


def generate_tree(
    root_path: Path,
    is_ignored: Optional[Callable[[Path, bool], bool]] = None,
    max_depth: Optional[int] = None,
) -> str:
    """
    Generate a directory tree representation.

    Directories come before files; each group is sorted by name.

    Args:
        root_path: Root directory
        is_ignored: Predicate `(path, is_dir)` for entries to leave out
        max_depth: Maximum depth to display (unlimited when None)

    Returns:
        String representation of the directory tree
    """
    root_path = root_path.resolve()
    lines = [root_path.name + "/"]

    def _walk(path: Path, prefix: str, depth: int) -> None:
        if max_depth is not None and depth > max_depth:
            return

        try:
            with os.scandir(path) as it:
                entries = sorted(it, key=lambda e: (not e.is_dir(), e.name))
        except OSError:
            return

        visible = [
            entry for entry in entries
            if not entry.is_symlink()
            and not (is_ignored and is_ignored(Path(entry.path), entry.is_dir()))
        ]

        for i, entry in enumerate(visible):
            is_last = i == len(visible) - 1
            connector = "└── " if is_last else "├── "
            if entry.is_dir():
                lines.append(f"{prefix}{connector}{entry.name}/")
                extension = "    " if is_last else "│   "
                _walk(Path(entry.path), prefix + extension, depth + 1)
            else:
                lines.append(f"{prefix}{connector}{entry.name}")

    _walk(root_path, "", 1)
    return "\n".join(lines)
