"""
Configuration models and defaults for code2llm.

Dataclasses hold the run configuration, the Markdown wording, and the scanned file
records. Validation happens in `__post_init__` so an invalid snapshot never reaches the
packer.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

# Default characters per output segment
DEFAULT_MAX_CHARS = 50_000

# Below this many free characters a segment is closed rather than split into
MIN_CONTINUATION_CHARS = 500

# Files larger than this are never read
DEFAULT_MAX_FILE_BYTES = 10 * 1024 * 1024

DEFAULT_OUTPUT_PREFIX = "LLM_CODE"


class SplitMode(str, Enum):
    """How the packer treats a file that does not fit the current segment."""

    FILE = "file"  # start a new segment; split only files larger than a segment
    LINE = "line"  # fill the current segment up to a line boundary

    @classmethod
    def _missing_(cls, value: object) -> SplitMode | None:
        """Accept any letter case, and `char` as the older name of `line`."""
        if isinstance(value, str):
            name = value.strip().lower()
            if name == "char":
                return cls.LINE
            for mode in cls:
                if mode.value == name:
                    return mode
        return None


# Language detection by extension
EXTENSION_TO_LANGUAGE: dict[str, str] = {
    ".py": "python",
    ".pyi": "python",
    ".pyx": "python",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".go": "go",
    ".java": "java",
    ".kt": "kotlin",
    ".kts": "kotlin",
    ".rs": "rust",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".hpp": "cpp",
    ".cc": "cpp",
    ".cxx": "cpp",
    ".cs": "csharp",
    ".m": "objc",
    ".mm": "objc",
    ".rb": "ruby",
    ".php": "php",
    ".swift": "swift",
    ".scala": "scala",
    ".dart": "dart",
    ".sh": "bash",
    ".bash": "bash",
    ".zsh": "zsh",
    ".md": "markdown",
    ".rst": "restructuredtext",
    ".txt": "text",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".toml": "toml",
    ".json": "json",
    ".ini": "ini",
    ".cfg": "ini",
    ".xml": "xml",
    ".html": "html",
    ".css": "css",
    ".scss": "scss",
    ".less": "less",
    ".vue": "vue",
    ".svelte": "svelte",
    ".sql": "sql",
    ".graphql": "graphql",
    ".proto": "protobuf",
}

# Extensions treated as configuration/documentation rather than code
NON_CODE_EXTENSIONS: set[str] = {
    ".md",
    ".rst",
    ".txt",
    ".yaml",
    ".yml",
    ".toml",
    ".json",
    ".ini",
    ".cfg",
    ".xml",
    ".lock",
    ".env",
    ".csv",
}

# Extensions skipped without reading the file
BINARY_EXTENSIONS: set[str] = {
    ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".webp", ".svgz",
    ".pdf", ".zip", ".gz", ".tgz", ".bz2", ".xz", ".7z", ".rar", ".tar",
    ".exe", ".dll", ".so", ".dylib", ".a", ".o", ".obj", ".class", ".jar",
    ".pyc", ".pyo", ".whl", ".wasm", ".bin", ".dat", ".db", ".sqlite",
    ".mp3", ".mp4", ".wav", ".avi", ".mov", ".ttf", ".otf", ".woff", ".woff2",
}

# Gitwildmatch patterns ignored in every project
DEFAULT_IGNORE: list[str] = [
    ".git/",
    ".svn/",
    ".hg/",
    ".idea/",
    ".vscode/",
    ".vs/",
    "node_modules/",
    "vendor/",
    "__pycache__/",
    ".venv/",
    "venv/",
    ".tox/",
    ".nox/",
    ".eggs/",
    "*.egg-info/",
    ".pytest_cache/",
    ".mypy_cache/",
    ".ruff_cache/",
    "dist/",
    "build/",
    "target/",
    "coverage/",
    "htmlcov/",
    ".DS_Store",
    "Thumbs.db",
    "*.min.js",
    "*.min.css",
    "*.map",
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
]


@dataclass
class OutputSettings:
    """Output options consumed by the packer and writer.

    Attributes:
        max_chars: Character budget per segment.
        compress: Whether code files are compressed.
        ultra_compress: Whether ultra mode is used (implies `compress`).
        split_mode: How files that do not fit are split.
        include_tree: Whether the first segment carries a directory tree.
        output_prefix: File name prefix for written segments.
        min_continuation_chars: Smallest free space worth splitting a file into.
    """

    max_chars: int = DEFAULT_MAX_CHARS
    compress: bool = True
    ultra_compress: bool = False
    split_mode: SplitMode = SplitMode.FILE
    include_tree: bool = True
    output_prefix: str = DEFAULT_OUTPUT_PREFIX
    min_continuation_chars: int = MIN_CONTINUATION_CHARS

    def __post_init__(self) -> None:
        """Validate the settings.

        Raises:
            ValueError: If `max_chars` is not positive, `split_mode` is unknown, or
                `output_prefix` is empty.
        """
        if self.max_chars <= 0:
            raise ValueError(f"max_chars must be positive, got {self.max_chars}")
        if self.min_continuation_chars < 0:
            raise ValueError("min_continuation_chars must not be negative")
        try:
            self.split_mode = SplitMode(self.split_mode)
        except ValueError:
            choices = ", ".join(mode.value for mode in SplitMode)
            raise ValueError(
                f"Unknown split mode: {self.split_mode!r} (expected one of: {choices})"
            ) from None
        if not self.output_prefix:
            raise ValueError("output_prefix must not be empty")
        if self.ultra_compress:
            self.compress = True

    @property
    def compress_mode(self) -> str:
        """Label of the active compression mode."""
        if not self.compress:
            return "none"
        return "ultra" if self.ultra_compress else "standard"


@dataclass
class Prompts:
    """Wording used in the generated Markdown."""

    section_info: str = "Project Overview"
    section_tree: str = "Directory Structure"
    section_code: str = "Source Files"
    section_stats: str = "Statistics"
    header_prompt: str = ""
    compress_notice: str = "Code has been compressed; format it before use."
    ultra_compress_notice: str = (
        "Code has been ultra-compressed; it must be formatted before it is readable."
    )
    continue_notice: str = "Content continues in the next part."
    complete_notice: str = "All content has been shown."
    file_info_format: str = "**Type**: {language} | **Lines**: {lines} | **Size**: {size}"
    usage_instructions: str = (
        "Send the parts to the model in order and mention that the code arrives in parts."
    )

    def to_dict(self) -> dict[str, str]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Prompts:
        """Create `Prompts` from config data, ignoring unknown keys."""
        prompts = cls()
        for key, value in data.items():
            if hasattr(prompts, key) and value is not None:
                setattr(prompts, key, str(value))
        return prompts


@dataclass
class Config:
    """Main configuration for `code2llm`.

    Attributes:
        language_map: Extension → language overrides, merged over the defaults.
        default_ignore: Gitwildmatch patterns ignored everywhere.
        binary_extensions: Extensions skipped as binary.
        non_code_extensions: Extensions classified as config/docs (never compressed).
        custom_patterns: Extra gitwildmatch ignore patterns.
        custom_regex: Regular expressions matched against relative paths.
        respect_gitignore: Whether .gitignore files are honored.
        max_file_bytes: Files larger than this are skipped.
        output: Output settings snapshot.
        prompts: Markdown wording.
    """

    language_map: dict[str, str] = field(default_factory=dict)
    default_ignore: list[str] = field(default_factory=lambda: list(DEFAULT_IGNORE))
    binary_extensions: set[str] = field(default_factory=lambda: set(BINARY_EXTENSIONS))
    non_code_extensions: set[str] = field(default_factory=lambda: set(NON_CODE_EXTENSIONS))
    custom_patterns: list[str] = field(default_factory=list)
    custom_regex: list[str] = field(default_factory=list)
    respect_gitignore: bool = True
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES
    output: OutputSettings = field(default_factory=OutputSettings)
    prompts: Prompts = field(default_factory=Prompts)

    def __post_init__(self) -> None:
        # Normalize extensions to lower case with a leading dot
        self.language_map = {
            _dotted(ext): lang.lower() for ext, lang in self.language_map.items()
        }
        self.binary_extensions = {_dotted(ext) for ext in self.binary_extensions}
        self.non_code_extensions = {_dotted(ext) for ext in self.non_code_extensions}

    @property
    def ignore_patterns(self) -> list[str]:
        """Default and custom gitwildmatch patterns, in that order."""
        return [*self.default_ignore, *self.custom_patterns]

    def get_language(self, extension: str, filename: str = "") -> str:
        """Resolve a language tag, honoring `language_map` overrides first."""
        ext_lower = extension.lower()
        if ext_lower in self.language_map:
            return self.language_map[ext_lower]
        return get_language(ext_lower, filename)

    def is_code(self, extension: str) -> bool:
        """Return whether a file is code (as opposed to config/documentation)."""
        return extension.lower() not in self.non_code_extensions

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary suitable for YAML output."""
        output = asdict(self.output)
        output["split_mode"] = self.output.split_mode.value
        return {
            "language_map": dict(sorted(self.language_map.items())),
            "default_ignore": list(self.default_ignore),
            "binary_extensions": sorted(self.binary_extensions),
            "non_code_extensions": sorted(self.non_code_extensions),
            "custom_ignore": {
                "patterns": list(self.custom_patterns),
                "regex": list(self.custom_regex),
            },
            "respect_gitignore": self.respect_gitignore,
            "max_file_bytes": self.max_file_bytes,
            "output": output,
            "prompts": self.prompts.to_dict(),
        }


def _dotted(extension: str) -> str:
    extension = extension.strip().lower()
    return extension if extension.startswith(".") else f".{extension}"


@dataclass(frozen=True)
class FileRecord:
    """A scanned text file, read-only for the rest of the pipeline.

    Attributes:
        relative_path: Project-relative path using forward slashes.
        language: Normalized language tag.
        content: Full text content (LF line endings).
        is_code: Whether the file is code rather than config/documentation.
        line_count: Number of lines in `content`.
        size_bytes: File size on disk.
    """

    relative_path: str
    language: str
    content: str
    is_code: bool
    line_count: int
    size_bytes: int

    @property
    def char_count(self) -> int:
        return len(self.content)


@dataclass
class ScanStats:
    """Statistics from scanning a project.

    Attributes:
        files_scanned: Total file paths visited during traversal.
        files_included: Files included after filtering.
        files_skipped_ignore: Files skipped by ignore patterns, regexes, or `.gitignore`.
        files_skipped_size: Files skipped due to the size limit.
        files_skipped_binary: Files skipped by extension or content sniffing.
        files_unreadable: Files that could not be read.
        total_bytes_included: Total bytes of included files.
        languages_detected: Counts of detected languages among included files.
    """

    files_scanned: int = 0
    files_included: int = 0
    files_skipped_ignore: int = 0
    files_skipped_size: int = 0
    files_skipped_binary: int = 0
    files_unreadable: int = 0
    total_bytes_included: int = 0
    languages_detected: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a dictionary; language counts sorted by frequency then name."""
        return {
            "files_included": self.files_included,
            "files_scanned": self.files_scanned,
            "files_skipped": {
                "binary": self.files_skipped_binary,
                "ignore": self.files_skipped_ignore,
                "size": self.files_skipped_size,
                "unreadable": self.files_unreadable,
            },
            "languages_detected": dict(
                sorted(self.languages_detected.items(), key=lambda x: (-x[1], x[0]))
            ),
            "total_bytes_included": self.total_bytes_included,
        }


def get_language(extension: str, filename: str = "") -> str:
    """Get a normalized language label from a file extension or special filename.

    Args:
        extension: File extension (with or without normalization).
        filename: Optional filename used for special cases like `Dockerfile`.

    Returns:
        A normalized language label (e.g., `"python"`, `"markdown"`, `"text"`).
    """
    ext_lower = extension.lower()
    if ext_lower in EXTENSION_TO_LANGUAGE:
        return EXTENSION_TO_LANGUAGE[ext_lower]

    # Handle special filenames
    name_lower = filename.lower()
    if name_lower == "dockerfile":
        return "dockerfile"
    if name_lower == "makefile":
        return "makefile"
    if name_lower in {"rakefile", "gemfile"}:
        return "ruby"

    return "text"
