"""
CLI entry point for code2llm.

Provides a command-line interface for packing source trees into compressed, segmented
Markdown files sized for LLM context windows.
"""

from __future__ import annotations

import time
import traceback
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.syntax import Syntax

from . import __version__
from .compressor import decompress_hint
from .config import Config, SplitMode
from .config_loader import (
    DEFAULT_CONFIG_FILE,
    ConfigError,
    ProjectConfig,
    dump_config,
    load_config,
    merge_cli_with_config,
    save_config,
)
from .grammar import CODE_LANGUAGES
from .scanner import FileScanner, generate_tree
from .segmenter import Result, generate
from .utils import estimate_tokens, format_bytes, format_number
from .writer import clean_old_outputs, segment_filename, write_results

# Initialize CLI app
app = typer.Typer(
    name="code2llm",
    help="Pack source trees into compressed, segmented Markdown for LLM context windows.",
    add_completion=False,
)
config_app = typer.Typer(help="Create or inspect code2llm config files.")
app.add_typer(config_app, name="config")

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"code2llm version {__version__}")
        raise typer.Exit()


def _load_merged(
    project_dir: Path,
    config_path: Optional[Path],
    **cli_options: object,
) -> tuple[Config, ProjectConfig]:
    project_config = load_config(project_dir, config_path)
    return merge_cli_with_config(project_config, **cli_options), project_config


def _config_output_dir(project_dir: Path, project_config: ProjectConfig) -> Optional[Path]:
    """Output directory from a config file, relative to the project directory."""
    if project_config.output_dir is None:
        return None
    return project_dir / project_config.output_dir


def _dominant_code_language(languages: dict[str, int]) -> Optional[str]:
    """Most frequent language that the compressor has a grammar for."""
    candidates = sorted(
        (lang for lang in languages if lang in CODE_LANGUAGES),
        key=lambda lang: (-languages[lang], lang),
    )
    return candidates[0] if candidates else None


def _print_result(result: Result, prefix: str, multi_project: bool) -> None:
    total = len(result.segments)
    console.print(
        f"[green]{result.project_name}: {result.file_count} files → "
        f"{total} part{'s' if total != 1 else ''}[/green]"
    )
    for segment in result.segments:
        name = segment_filename(
            prefix, result.project_name, segment.part_num, total, multi_project
        )
        console.print(
            f"  {name}  [dim]{format_number(segment.char_count)} chars, "
            f"~{format_number(estimate_tokens(segment.content))} tokens[/dim]"
        )


@app.command()
def pack(
    project_dirs: list[Path] = typer.Argument(
        ...,
        help="Project directories to pack.",
        exists=True,
        file_okay=False,
        dir_okay=True,
        resolve_path=True,
    ),
    # Output options
    output: Optional[str] = typer.Option(
        None,
        "--output", "-o",
        help="Output file prefix (default: LLM_CODE).",
    ),
    output_dir: Optional[Path] = typer.Option(
        None,
        "--output-dir",
        help="Directory for the generated files (default: current directory).",
    ),
    chars: Optional[int] = typer.Option(
        None,
        "--chars", "-c",
        help="Maximum characters per output file (default: 50000).",
    ),
    compress: Optional[bool] = typer.Option(
        None,
        "--compress/--no-compress",
        help="Compress code files (default: on).",
    ),
    ultra: bool = typer.Option(
        False,
        "--ultra", "-u",
        help="Ultra compression; implies --compress.",
    ),
    split_mode: Optional[SplitMode] = typer.Option(
        None,
        "--split-mode", "-s",
        help="'file' keeps files whole where possible, 'line' fills every part.",
    ),
    tree: Optional[bool] = typer.Option(
        None,
        "--tree/--no-tree",
        help="Include the directory tree section (default: on).",
    ),
    # Filter options
    exclude: Optional[list[str]] = typer.Option(
        None,
        "--exclude", "-e",
        help="Extra gitignore-style pattern to exclude (repeatable).",
    ),
    regex: Optional[list[str]] = typer.Option(
        None,
        "--regex",
        help="Extra regular expression for paths to exclude (repeatable).",
    ),
    no_gitignore: bool = typer.Option(
        False,
        "--no-gitignore",
        help="Don't respect .gitignore files.",
    ),
    config_path: Optional[Path] = typer.Option(
        None,
        "--config", "-f",
        help="Config file to use instead of searching the project directory.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        help="Show compression warnings and tracebacks.",
    ),
    # Version
    version: bool = typer.Option(
        False,
        "--version", "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """
    Pack one or more projects into Markdown files for an LLM.

    Examples:

        # Pack the current directory
        code2llm pack .

        # Smaller parts, ultra compression
        code2llm pack ./repo --chars 30000 --ultra

        # Two projects into one output directory
        code2llm pack ./api ./web --output-dir ./out
    """
    start_time = time.time()
    cli_options = {
        "max_chars": chars,
        "compress": compress,
        "ultra": ultra,
        "split_mode": split_mode.value if split_mode is not None else None,
        "include_tree": tree,
        "output_prefix": output,
        "exclude": exclude,
        "regex": regex,
        "no_gitignore": no_gitignore,
    }

    results: list[Result] = []
    warnings: list[str] = []
    languages: dict[str, int] = {}
    prefix: Optional[str] = None
    usage_instructions = ""
    ultra_used = False
    target_dir = output_dir

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            for project_dir in project_dirs:
                task = progress.add_task(f"Scanning {project_dir.name}...", total=None)
                config, project_config = _load_merged(project_dir, config_path, **cli_options)
                if project_config.config_file is not None and verbose:
                    console.print(f"[dim]Using config {project_config.config_file}[/dim]")

                # The first project decides where and under which prefix files go
                if prefix is None:
                    prefix = config.output.output_prefix
                    usage_instructions = config.prompts.usage_instructions
                if target_dir is None:
                    target_dir = _config_output_dir(project_dir, project_config)
                ultra_used = ultra_used or config.output.ultra_compress

                scanner = FileScanner(project_dir, config)
                files = scanner.scan()
                if not files:
                    console.print(
                        f"[yellow]Warning: No files found in {project_dir}.[/yellow]"
                    )
                    progress.remove_task(task)
                    continue

                for lang, count in scanner.stats.languages_detected.items():
                    languages[lang] = languages.get(lang, 0) + count

                tree_text = None
                if config.output.include_tree:
                    tree_text = generate_tree(project_dir, scanner.is_ignored)

                progress.update(task, description=f"Packing {project_dir.name}...")
                result = generate(
                    project_dir.name,
                    files,
                    config.output,
                    config.prompts,
                    tree=tree_text,
                    project_path=str(project_dir),
                )
                results.append(result)
                warnings.extend(f"{result.project_name}/{w}" for w in result.warnings)
                progress.remove_task(task)

        if not results or prefix is None:
            console.print("[yellow]Nothing to write.[/yellow]")
            return

        target_dir = (target_dir or Path.cwd()).resolve()
        removed = clean_old_outputs(target_dir, prefix)
        if removed:
            console.print(f"[dim]Removed {len(removed)} old output file(s)[/dim]")
        paths, total_bytes = write_results(results, target_dir, prefix)

    except ConfigError as e:
        console.print(f"[red]Config error: {e}[/red]")
        raise typer.Exit(1)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        if verbose:
            console.print(traceback.format_exc())
        raise typer.Exit(1)

    # Print summary
    multi_project = len(results) > 1
    console.print()
    for result in results:
        _print_result(result, prefix, multi_project)

    if verbose and warnings:
        console.print()
        console.print("[yellow]Compression warnings:[/yellow]")
        for warning in warnings:
            console.print(f"  [yellow]{warning}[/yellow]")

    if ultra_used:
        language = _dominant_code_language(languages)
        if language is not None:
            console.print()
            console.print(f"[dim]{decompress_hint(language, ultra=True)}[/dim]")

    console.print()
    console.print("[bold green]✓ Pack complete![/bold green]")
    console.print(f"  Output directory: {target_dir}")
    console.print(f"  Files written: {len(paths)} ({format_bytes(total_bytes)})")
    console.print(f"  Processing time: {time.time() - start_time:.2f}s")

    if len(paths) > 1 and usage_instructions:
        console.print()
        console.print(f"[cyan]{usage_instructions}[/cyan]")


@app.command()
def info(
    project_dir: Path = typer.Argument(
        ...,
        help="Path to the project.",
        exists=True,
        file_okay=False,
        dir_okay=True,
        resolve_path=True,
    ),
    exclude: Optional[list[str]] = typer.Option(
        None,
        "--exclude", "-e",
        help="Extra gitignore-style pattern to exclude (repeatable).",
    ),
    no_gitignore: bool = typer.Option(
        False,
        "--no-gitignore",
        help="Don't respect .gitignore files.",
    ),
    config_path: Optional[Path] = typer.Option(
        None,
        "--config", "-f",
        help="Config file to use instead of searching the project directory.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
) -> None:
    """
    Show information about a project without writing anything.

    Uses the same scanning logic as 'pack' for consistent results.
    """
    try:
        config, _ = _load_merged(
            project_dir, config_path, exclude=exclude, no_gitignore=no_gitignore
        )
        scanner = FileScanner(project_dir, config)
        files = scanner.scan()
    except ConfigError as e:
        console.print(f"[red]Config error: {e}[/red]")
        raise typer.Exit(1)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    stats = scanner.stats
    total_chars = sum(f.char_count for f in files)
    code_files = sum(1 for f in files if f.is_code)

    console.print(f"\n[bold]Project: {project_dir.name}[/bold]\n")

    # Languages
    console.print("[cyan]Languages detected:[/cyan]")
    for lang, count in stats.to_dict()["languages_detected"].items():
        marker = "" if lang in CODE_LANGUAGES else " [dim](not compressed)[/dim]"
        console.print(f"  {lang}: {count} files{marker}")

    # Stats
    console.print("\n[cyan]Statistics:[/cyan]")
    console.print(f"  Total files scanned: {stats.files_scanned}")
    console.print(f"  Files included: {stats.files_included}")
    console.print(f"  Code files: {code_files}")
    console.print(f"  Config files: {len(files) - code_files}")
    console.print(f"  Files skipped (ignore rules): {stats.files_skipped_ignore}")
    console.print(f"  Files skipped (size): {stats.files_skipped_size}")
    console.print(f"  Files skipped (binary): {stats.files_skipped_binary}")
    console.print(f"  Files unreadable: {stats.files_unreadable}")
    console.print(f"  Total bytes: {stats.total_bytes_included:,}")
    console.print(f"  Total characters: {format_number(total_chars)}")
    parts = -(-total_chars // config.output.max_chars) if total_chars else 0
    console.print(
        f"  Uncompressed parts at {format_number(config.output.max_chars)} chars: ~{parts}"
    )


@config_app.command("init")
def config_init(
    directory: Path = typer.Argument(
        Path("."),
        help="Directory to create the config file in.",
        file_okay=False,
        dir_okay=True,
        resolve_path=True,
    ),
    force: bool = typer.Option(
        False,
        "--force",
        help="Overwrite an existing config file.",
    ),
) -> None:
    """Write a config file holding the default settings."""
    path = directory / DEFAULT_CONFIG_FILE
    if path.exists() and not force:
        console.print(f"[red]Error: {path} already exists (use --force to overwrite).[/red]")
        raise typer.Exit(1)

    try:
        save_config(Config(), path)
    except ConfigError as e:
        console.print(f"[red]Config error: {e}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓ Wrote {path}[/green]")


@config_app.command("show")
def config_show(
    project_dir: Path = typer.Argument(
        Path("."),
        help="Project directory whose effective configuration is shown.",
        exists=True,
        file_okay=False,
        dir_okay=True,
        resolve_path=True,
    ),
    config_path: Optional[Path] = typer.Option(
        None,
        "--config", "-f",
        help="Config file to use instead of searching the project directory.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
) -> None:
    """Show the effective configuration for a project."""
    try:
        config, project_config = _load_merged(project_dir, config_path)
        text = dump_config(config, project_config.output_dir)
    except ConfigError as e:
        console.print(f"[red]Config error: {e}[/red]")
        raise typer.Exit(1)

    source = project_config.config_file
    console.print(f"[dim]Source: {source if source is not None else 'built-in defaults'}[/dim]")
    console.print(Syntax(text, "yaml", background_color="default"))


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
