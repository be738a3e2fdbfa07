"""
Markdown rendering for code2llm.

Builds the text pieces a segment is made of: the project header, the optional tree
section, file block headings, continuation headers and notices, and the statistics
footer.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import TYPE_CHECKING

from .config import OutputSettings, Prompts
from .utils import format_number

if TYPE_CHECKING:
    from .segmenter import Result

_BACKTICK_RUNS = re.compile(r"`{3,}")


def code_fence(content: str) -> str:
    """Return a backtick fence longer than any backtick run inside `content`."""
    longest = max((len(run) for run in _BACKTICK_RUNS.findall(content)), default=2)
    return "`" * (longest + 1)


def block_heading(
    file_num: int,
    path: str,
    start_line: int,
    end_line: int,
    is_start: bool,
    whole: bool,
) -> str:
    """Heading line for a file block.

    A block covering the whole file gets a plain heading; a block that starts the file but
    stops early carries its line range; later blocks are marked as continued.
    """
    if not is_start:
        return f"### {file_num}. {path} (continued: lines {start_line}-{end_line})"
    if whole:
        return f"### {file_num}. {path}"
    return f"### {file_num}. {path} (lines {start_line}-{end_line})"


def render_header(
    project_name: str,
    result: Result,
    output: OutputSettings,
    prompts: Prompts,
    generated_at: datetime,
) -> str:
    """Render the project header opening the first segment."""
    parts = [f"# {project_name}\n\n"]

    if prompts.header_prompt:
        parts.append(prompts.header_prompt.rstrip() + "\n\n")

    parts.append(f"## {prompts.section_info}\n\n")
    parts.append(f"- **Project**: {project_name}\n")
    parts.append(f"- **Generated**: {generated_at.strftime('%Y-%m-%d %H:%M:%S')}\n")
    parts.append(
        f"- **Files**: {result.file_count} "
        f"(code: {result.code_files}, config: {result.config_files})\n"
    )
    parts.append(f"- **Lines**: {format_number(result.total_lines)}\n")
    parts.append(f"- **Characters**: {format_number(result.total_chars)}\n")
    if output.compress:
        parts.append(f"- **Compression**: {output.compress_mode}\n")
    parts.append("\n")

    if output.compress:
        notice = prompts.ultra_compress_notice if output.ultra_compress else prompts.compress_notice
        if notice:
            parts.append(f"> {notice}\n\n")

    return "".join(parts)


def render_tree_section(project_name: str, tree: str, prompts: Prompts) -> str:
    """Render the directory tree section."""
    body = tree if tree.startswith(f"{project_name}/") else f"{project_name}/\n{tree}"
    return f"## {prompts.section_tree}\n\n```\n{body.rstrip()}\n```\n\n"


def render_code_heading(prompts: Prompts) -> str:
    return f"## {prompts.section_code}\n\n"


def render_continuation_header(
    project_name: str,
    part_num: int,
    output: OutputSettings,
    prompts: Prompts,
) -> str:
    """Render the header opening every segment after the first."""
    parts = [
        f"# {project_name} (Part {part_num})\n\n",
        f"> Part {part_num}, continued from the previous part.\n\n",
    ]
    if output.compress and output.ultra_compress and prompts.ultra_compress_notice:
        parts.append(f"> {prompts.ultra_compress_notice}\n\n")
    parts.append(f"## {prompts.section_code} (continued)\n\n")
    return "".join(parts)


def render_continue_notice(prompts: Prompts) -> str:
    """Render the notice closing every segment except the last."""
    return f"\n---\n\n> {prompts.continue_notice}\n\n"


def render_footer(result: Result, total_parts: int, prompts: Prompts) -> str:
    """Render the statistics footer closing the last segment."""
    rows = [
        ("Files", str(result.file_count)),
        ("Code files", str(result.code_files)),
        ("Config files", str(result.config_files)),
        ("Total lines", format_number(result.total_lines)),
        ("Total characters", format_number(result.total_chars)),
    ]
    if total_parts > 1:
        rows.append(("Parts", str(total_parts)))

    parts = ["\n---\n\n", f"## {prompts.section_stats}\n\n"]
    if prompts.complete_notice:
        parts.append(f"**{prompts.complete_notice}**\n\n")
    parts.append("| Metric | Value |\n")
    parts.append("|--------|-------|\n")
    parts.extend(f"| {name} | {value} |\n" for name, value in rows)
    parts.append("\n")
    return "".join(parts)
