"""Tests for the command-line interface."""

from pathlib import Path

import pytest
from typer.testing import CliRunner

from code2llm import __version__
from code2llm.cli import app

runner = CliRunner()


@pytest.fixture
def project(tmp_path):
    """Create a small project with code and config files."""
    root = tmp_path / "demo"
    (root / "src").mkdir(parents=True)
    (root / "src" / "app.py").write_text(
        "# entry point\n"
        "def main():\n"
        "    return 'hello # not a comment'\n"
    )
    (root / "src" / "util.js").write_text("// helpers\nexport const add = (a, b) => a + b;\n")
    (root / "README.md").write_text("# Demo\n\nA demo project.\n")
    return root


@pytest.fixture
def out_dir(tmp_path):
    return tmp_path / "out"


def pack(*args):
    return runner.invoke(app, ["pack", *[str(a) for a in args]])


class TestPack:
    """Tests for the pack command."""

    def test_single_project(self, project, out_dir):
        result = pack(project, "--output-dir", out_dir)

        assert result.exit_code == 0, result.output
        assert "Pack complete" in result.output
        content = (out_dir / "LLM_CODE.md").read_text(encoding="utf-8")
        assert content.startswith("# demo\n\n")
        assert "## Directory Structure" in content
        assert "'hello # not a comment'" in content
        assert "entry point" not in content
        assert "# Demo" in content

    def test_no_compress_keeps_comments(self, project, out_dir):
        result = pack(project, "--output-dir", out_dir, "--no-compress", "--no-tree")

        assert result.exit_code == 0, result.output
        content = (out_dir / "LLM_CODE.md").read_text(encoding="utf-8")
        assert "# entry point" in content
        assert "## Directory Structure" not in content

    def test_multiple_parts(self, project, out_dir):
        lines = "".join(f"value_{i} = {i}\n" for i in range(400))
        (project / "src" / "big.py").write_text(lines)

        result = pack(project, "--output-dir", out_dir, "--chars", "2000", "-s", "line")

        assert result.exit_code == 0, result.output
        names = sorted(p.name for p in out_dir.iterdir())
        assert len(names) > 1
        assert names[0] == "LLM_CODE_part01.md"
        assert not (out_dir / "LLM_CODE.md").exists()
        second = (out_dir / "LLM_CODE_part02.md").read_text(encoding="utf-8")
        assert second.startswith("# demo (Part 2)")

    def test_custom_prefix(self, project, out_dir):
        result = pack(project, "--output-dir", out_dir, "-o", "CTX")

        assert result.exit_code == 0, result.output
        assert (out_dir / "CTX.md").is_file()

    def test_multiple_projects(self, project, tmp_path, out_dir):
        other = tmp_path / "api"
        other.mkdir()
        (other / "main.go").write_text("package main\n\nfunc main() {}\n")

        result = pack(project, other, "--output-dir", out_dir)

        assert result.exit_code == 0, result.output
        assert sorted(p.name for p in out_dir.iterdir()) == [
            "LLM_CODE_api.md",
            "LLM_CODE_demo.md",
        ]

    def test_old_outputs_are_removed(self, project, out_dir):
        out_dir.mkdir()
        (out_dir / "LLM_CODE_part07.md").write_text("stale")
        (out_dir / "notes.md").write_text("keep")

        result = pack(project, "--output-dir", out_dir)

        assert result.exit_code == 0, result.output
        assert not (out_dir / "LLM_CODE_part07.md").exists()
        assert (out_dir / "notes.md").exists()
        assert (out_dir / "LLM_CODE.md").exists()

    def test_output_dir_from_config_file(self, project):
        (project / ".code2llm.yaml").write_text("output:\n  output_dir: generated\n")

        result = pack(project)

        assert result.exit_code == 0, result.output
        assert (project / "generated" / "LLM_CODE.md").is_file()

    def test_exclude_pattern(self, project, out_dir):
        result = pack(project, "--output-dir", out_dir, "-e", "*.js")

        assert result.exit_code == 0, result.output
        content = (out_dir / "LLM_CODE.md").read_text(encoding="utf-8")
        assert "util.js" not in content

    def test_ultra_prints_formatter_hint(self, project, out_dir):
        result = pack(project, "--output-dir", out_dir, "--ultra")

        assert result.exit_code == 0, result.output
        assert "formatter" in result.output
        content = (out_dir / "LLM_CODE.md").read_text(encoding="utf-8")
        assert "- **Compression**: ultra" in content

    def test_invalid_chars(self, project, out_dir):
        result = pack(project, "--output-dir", out_dir, "--chars", "0")

        assert result.exit_code == 1
        assert "Config error" in result.output
        assert not out_dir.exists()

    def test_invalid_regex(self, project, out_dir):
        result = pack(project, "--output-dir", out_dir, "--regex", "(")

        assert result.exit_code == 1
        assert "Config error" in result.output

    def test_invalid_split_mode(self, project, out_dir):
        result = pack(project, "--output-dir", out_dir, "--split-mode", "words")

        assert result.exit_code == 2

    def test_missing_directory(self, tmp_path):
        result = pack(tmp_path / "missing")

        assert result.exit_code == 2

    def test_empty_project(self, tmp_path, out_dir):
        empty = tmp_path / "empty"
        empty.mkdir()
        (empty / "logo.png").write_bytes(b"\x89PNG")

        result = pack(empty, "--output-dir", out_dir)

        assert result.exit_code == 0
        assert "Nothing to write" in result.output
        assert not out_dir.exists()

    def test_version(self):
        result = runner.invoke(app, ["pack", "--version"])

        assert result.exit_code == 0
        assert __version__ in result.output


class TestInfo:
    """Tests for the info command."""

    def test_info(self, project):
        result = runner.invoke(app, ["info", str(project)])

        assert result.exit_code == 0, result.output
        assert "Languages detected" in result.output
        assert "python: 1 files" in result.output
        assert "Files included: 3" in result.output
        assert "Code files: 2" in result.output

    def test_info_writes_nothing(self, project):
        before = sorted(p.name for p in project.rglob("*"))
        runner.invoke(app, ["info", str(project)])

        assert sorted(p.name for p in project.rglob("*")) == before


class TestConfigCommands:
    """Tests for the config sub-commands."""

    def test_init_writes_defaults(self, tmp_path):
        result = runner.invoke(app, ["config", "init", str(tmp_path)])

        assert result.exit_code == 0, result.output
        text = (tmp_path / ".code2llm.yaml").read_text(encoding="utf-8")
        assert "max_chars: 50000" in text

    def test_init_refuses_to_overwrite(self, tmp_path):
        path = tmp_path / ".code2llm.yaml"
        path.write_text("max_chars: 10\n")

        result = runner.invoke(app, ["config", "init", str(tmp_path)])

        assert result.exit_code == 1
        assert "already exists" in result.output
        assert path.read_text() == "max_chars: 10\n"

    def test_init_force(self, tmp_path):
        path = tmp_path / ".code2llm.yaml"
        path.write_text("max_chars: 10\n")

        result = runner.invoke(app, ["config", "init", str(tmp_path), "--force"])

        assert result.exit_code == 0, result.output
        assert "max_chars: 50000" in path.read_text()

    def test_show_defaults(self, tmp_path):
        result = runner.invoke(app, ["config", "show", str(tmp_path)])

        assert result.exit_code == 0, result.output
        assert "built-in defaults" in result.output
        assert "max_chars" in result.output

    def test_show_config_file(self, project):
        config_file = project / ".code2llm.yaml"
        config_file.write_text("output:\n  max_chars: 1234\n")

        result = runner.invoke(app, ["config", "show", str(project)])

        assert result.exit_code == 0, result.output
        assert "1234" in result.output

    def test_show_invalid_config(self, project):
        (project / ".code2llm.yaml").write_text("output: [unclosed\n")

        result = runner.invoke(app, ["config", "show", str(project)])

        assert result.exit_code == 1
        assert "Config error" in result.output


def test_help_lists_commands() -> None:
    result = runner.invoke(app, ["--help"])

    assert result.exit_code == 0
    for command in ("pack", "info", "config"):
        assert command in result.output


def test_pack_default_output_is_current_directory(project, monkeypatch, tmp_path) -> None:
    workdir = tmp_path / "work"
    workdir.mkdir()
    monkeypatch.chdir(workdir)

    result = pack(project)

    assert result.exit_code == 0, result.output
    assert Path(workdir / "LLM_CODE.md").is_file()
