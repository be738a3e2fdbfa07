"""
Segment packing for code2llm.

Turns an ordered list of `FileRecord`s into Markdown segments that each stay within a
character budget. Files are packed whole when they fit; otherwise they are split at line
boundaries, and every later piece is marked as a continuation.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .compressor import compress, validate_compression
from .config import FileRecord, OutputSettings, Prompts, SplitMode
from .renderer import (
    block_heading,
    code_fence,
    render_code_heading,
    render_continuation_header,
    render_continue_notice,
    render_footer,
    render_header,
    render_tree_section,
)
from .utils import format_bytes


class PackState(str, Enum):
    """Packer state in which a segment was closed."""

    OPEN = "open"  # still accepting blocks; only the last segment ends this way
    FULL_FLUSH = "full_flush"  # closed because the next block did not fit
    SPLIT_FLUSH = "split_flush"  # closed in the middle of a file


@dataclass
class RenderedBlock:
    """A whole file, or a contiguous line range of one, ready to be rendered.

    Attributes:
        file_num: 1-based position of the file in the project.
        path: Project-relative path.
        language: Language tag used on the code fence.
        lines: Lines of the range, without line terminators.
        start_line: 1-based first line of the range.
        end_line: 1-based last line of the range.
        is_start: Whether the range begins the file.
        whole: Whether the range covers the entire file.
        fence: Backtick fence wrapping the code.
        metadata: Optional file information line shown under the first heading.
    """

    file_num: int
    path: str
    language: str
    lines: list[str]
    start_line: int
    end_line: int
    is_start: bool = True
    whole: bool = True
    fence: str = "```"
    metadata: str | None = None

    @property
    def heading(self) -> str:
        return block_heading(
            self.file_num, self.path, self.start_line, self.end_line, self.is_start, self.whole
        )

    @property
    def overhead(self) -> int:
        """Characters the block takes besides its lines."""
        size = len(self.heading) + 2
        if self.metadata:
            size += len(self.metadata) + 2
        size += len(self.fence) + len(self.language) + 1
        size += len(self.fence) + 2
        return size

    @property
    def size(self) -> int:
        return self.overhead + sum(len(line) + 1 for line in self.lines)

    def render(self) -> str:
        parts = [self.heading, "\n\n"]
        if self.metadata:
            parts.extend((self.metadata, "\n\n"))
        parts.extend((self.fence, self.language, "\n"))
        for line in self.lines:
            parts.extend((line, "\n"))
        parts.extend((self.fence, "\n\n"))
        return "".join(parts)


@dataclass
class Segment:
    """One output part.

    Attributes:
        content: Markdown text of the part.
        part_num: 1-based part number.
        total_parts: Number of parts for the project.
        char_count: Length of `content`.
        file_range: First and last file positions covered, e.g. `a.py:1 - b.py:40`.
        blocks: Blocks placed in the part, in order.
        end_state: How the part was closed.
    """

    content: str
    part_num: int = 0
    total_parts: int = 0
    char_count: int = 0
    file_range: str | None = None
    blocks: list[RenderedBlock] = field(default_factory=list, repr=False)
    end_state: PackState = PackState.OPEN


@dataclass
class Result:
    """All segments for one project plus totals over its uncompressed files."""

    project_name: str
    project_path: str = ""
    segments: list[Segment] = field(default_factory=list)
    file_count: int = 0
    total_lines: int = 0
    total_chars: int = 0
    code_files: int = 0
    config_files: int = 0
    warnings: list[str] = field(default_factory=list)

    @property
    def output_chars(self) -> int:
        return sum(segment.char_count for segment in self.segments)


@dataclass
class _FileUnit:
    file_num: int
    record: FileRecord
    lines: list[str]
    fence: str
    metadata: str | None


class SegmentPacker:
    """Budgeted packer for file blocks.

    A segment that has not received a block yet always takes at least one line, even if
    that line alone exceeds the budget, so every step makes progress.

    Args:
        output: Output settings (budget, split mode, continuation threshold).
        first_header: Text opening the first segment.
        continuation_header: Builds the text opening part `n` for `n >= 2`.
        continue_notice: Text closing every segment except the last.
    """

    def __init__(
        self,
        output: OutputSettings,
        first_header: str,
        continuation_header: Callable[[int], str],
        continue_notice: str,
    ):
        self.output = output
        self.continuation_header = continuation_header
        self.continue_notice = continue_notice
        self.budget = output.max_chars - len(continue_notice)
        self.segments: list[Segment] = []
        self._open(first_header)

    @property
    def fresh(self) -> bool:
        """Whether the current segment holds no block yet."""
        return not self._blocks

    def _open(self, header: str) -> None:
        self._parts = [header]
        self._chars = len(header)
        self._blocks: list[RenderedBlock] = []

    def _close(self, closing: str, state: PackState) -> None:
        content = "".join(self._parts) + closing
        self.segments.append(
            Segment(
                content=content,
                char_count=len(content),
                file_range=_file_range(self._blocks),
                blocks=self._blocks,
                end_state=state,
            )
        )

    def _flush(self, state: PackState) -> None:
        self._close(self.continue_notice, state)
        self._open(self.continuation_header(len(self.segments) + 1))

    def _append(self, block: RenderedBlock) -> None:
        text = block.render()
        self._parts.append(text)
        self._chars += len(text)
        self._blocks.append(block)

    def _block(self, unit: _FileUnit, start: int, end: int) -> RenderedBlock:
        is_start = start == 0
        return RenderedBlock(
            file_num=unit.file_num,
            path=unit.record.relative_path,
            language=unit.record.language,
            lines=unit.lines[start:end],
            start_line=start + 1,
            end_line=end,
            is_start=is_start,
            whole=is_start and end >= len(unit.lines),
            fence=unit.fence,
            metadata=unit.metadata if is_start else None,
        )

    def _fit_lines(self, unit: _FileUnit, start: int, available: int) -> int:
        """Count whole lines from `start` that fit in `available` characters."""
        # Size the heading for the longest range it could name
        widest = self._block(unit, start, len(unit.lines))
        widest.whole = False
        room = available - widest.overhead
        count = 0
        for line in unit.lines[start:]:
            cost = len(line) + 1
            if cost > room:
                break
            room -= cost
            count += 1
        return count

    def add(self, unit: _FileUnit) -> None:
        """Place all lines of one file, splitting across segments as needed."""
        total = len(unit.lines)
        start = 0
        while True:
            block = self._block(unit, start, total)
            if self._chars + block.size <= self.budget:
                self._append(block)
                return

            available = self.budget - self._chars
            if not self.fresh and (
                self.output.split_mode is SplitMode.FILE
                or available < self.output.min_continuation_chars
            ):
                self._flush(PackState.FULL_FLUSH)
                continue

            count = self._fit_lines(unit, start, available)
            if count == 0:
                if not self.fresh:
                    self._flush(PackState.FULL_FLUSH)
                    continue
                count = 1

            self._append(self._block(unit, start, min(start + count, total)))
            start += count
            if start >= total:
                return
            self._flush(PackState.SPLIT_FLUSH)

    def finish(self, footer: Callable[[int], str]) -> list[Segment]:
        """Close the last segment, number all parts, and attach the footer.

        Args:
            footer: Builds the footer text given the final part count.

        Returns:
            The packed segments in order.
        """
        total = len(self.segments) + 1
        self._close(footer(total), PackState.OPEN)
        for num, segment in enumerate(self.segments, start=1):
            segment.part_num = num
            segment.total_parts = total
        return self.segments


def _file_range(blocks: list[RenderedBlock]) -> str | None:
    if not blocks:
        return None
    first, last = blocks[0], blocks[-1]
    return f"{first.path}:{first.start_line} - {last.path}:{max(last.end_line, 1)}"


def split_lines(content: str) -> list[str]:
    """Split content into lines, ignoring one trailing newline."""
    if not content:
        return []
    if content.endswith("\n"):
        content = content[:-1]
    return content.split("\n")


class _FormatFields(dict):
    """Leaves unknown placeholders of a user-supplied format untouched."""

    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def file_metadata(record: FileRecord, prompts: Prompts) -> str | None:
    """Render the file information line for `record`, if a format is configured."""
    if not prompts.file_info_format:
        return None
    fields = _FormatFields(
        language=record.language,
        lines=record.line_count,
        size=format_bytes(record.size_bytes),
        path=record.relative_path,
    )
    return prompts.file_info_format.format_map(fields)


def generate(
    project_name: str,
    files: Iterable[FileRecord],
    output: OutputSettings,
    prompts: Prompts,
    tree: str | None = None,
    generated_at: datetime | None = None,
    project_path: str = "",
) -> Result:
    """Compress and pack a project's files into segments.

    Args:
        project_name: Name shown in headers.
        files: Scanned files in output order.
        output: Output settings.
        prompts: Markdown wording.
        tree: Directory tree text, shown when `output.include_tree` is set.
        generated_at: Timestamp for the header (defaults to now).
        project_path: Source directory, recorded on the result.

    Returns:
        A `Result` with numbered segments, totals, and compression warnings.
    """
    files = list(files)
    result = Result(project_name=project_name, project_path=project_path, file_count=len(files))
    for record in files:
        result.total_lines += record.line_count
        result.total_chars += record.char_count
        if record.is_code:
            result.code_files += 1
        else:
            result.config_files += 1

    units: list[_FileUnit] = []
    for num, record in enumerate(files, start=1):
        content = record.content
        if output.compress and record.is_code:
            compressed = compress(content, record.language, ultra=output.ultra_compress)
            result.warnings.extend(
                f"{record.relative_path}: {warning}"
                for warning in validate_compression(content, compressed, record.language)
            )
            content = compressed
        units.append(
            _FileUnit(
                file_num=num,
                record=record,
                lines=split_lines(content),
                fence=code_fence(content),
                metadata=file_metadata(record, prompts),
            )
        )

    header = render_header(project_name, result, output, prompts, generated_at or datetime.now())
    if output.include_tree and tree:
        header += render_tree_section(project_name, tree, prompts)
    header += render_code_heading(prompts)

    packer = SegmentPacker(
        output,
        header,
        lambda part: render_continuation_header(project_name, part, output, prompts),
        render_continue_notice(prompts),
    )
    for unit in units:
        packer.add(unit)
    result.segments = packer.finish(lambda total: render_footer(result, total, prompts))
    return result
