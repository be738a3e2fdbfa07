"""Tests for the scanner module."""

import tempfile
from pathlib import Path

import pytest

from code2llm.config import Config
from code2llm.scanner import FileScanner, GitIgnoreParser, generate_tree, scan_project


@pytest.fixture
def temp_repo():
    """Create a temporary project structure for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)

        # Create directory structure
        (root / "src").mkdir()
        (root / "src" / "main").mkdir()
        (root / "tests").mkdir()
        (root / "docs").mkdir()
        (root / "node_modules").mkdir()
        (root / "node_modules" / "package").mkdir()

        # Create files
        (root / "README.md").write_text("# Test Project\n\nThis is a test.")
        (root / "package.json").write_text('{"name": "test", "main": "src/index.js"}')
        (root / "src" / "index.js").write_text("console.log('hello');")
        (root / "src" / "main" / "app.py").write_text("def main(): pass")
        (root / "tests" / "test_app.py").write_text("def test_main(): pass")
        (root / "docs" / "guide.md").write_text("# Guide\n\nHow to use.")
        (root / "node_modules" / "package" / "index.js").write_text("// vendored")

        # Create .gitignore
        (root / ".gitignore").write_text("generated/\n*.pyc\n__pycache__/\n")

        yield root


class TestGitIgnoreParser:
    """Tests for GitIgnoreParser."""

    def test_parse_gitignore(self, temp_repo):
        """Test parsing .gitignore file."""
        (temp_repo / "generated").mkdir()
        parser = GitIgnoreParser(temp_repo)

        assert parser.is_ignored(temp_repo / "generated" / "out.js")
        assert parser.is_ignored(temp_repo / "generated", is_dir=True)
        assert not parser.is_ignored(temp_repo / "src" / "index.js")

    def test_empty_gitignore(self, temp_repo):
        """Test with empty .gitignore."""
        (temp_repo / ".gitignore").write_text("")

        parser = GitIgnoreParser(temp_repo)

        assert not parser.is_ignored(temp_repo / "src" / "index.js")

    def test_nested_gitignore_applies_below_its_directory(self, temp_repo):
        """A nested .gitignore only matches paths under its own directory."""
        (temp_repo / "src" / ".gitignore").write_text("*.log\n")
        parser = GitIgnoreParser(temp_repo)
        parser.load_directory(temp_repo / "src")

        assert parser.is_ignored(temp_repo / "src" / "debug.log")
        assert not parser.is_ignored(temp_repo / "debug.log")

    def test_comments_are_skipped(self, temp_repo):
        (temp_repo / ".gitignore").write_text("# *.js\n")
        parser = GitIgnoreParser(temp_repo)

        assert not parser.is_ignored(temp_repo / "src" / "index.js")


class TestFileScanner:
    """Tests for FileScanner."""

    def test_scan_respects_gitignore(self, temp_repo):
        """Test that scanner respects .gitignore."""
        (temp_repo / "src" / "cache.pyc").write_text("x = 1")
        scanner = FileScanner(temp_repo, respect_gitignore=True)
        paths = {f.relative_path for f in scanner.scan()}

        assert "src/cache.pyc" not in paths
        assert "src/index.js" in paths

    def test_scan_ignores_gitignore_when_disabled(self, temp_repo):
        """Test that scanner can ignore .gitignore."""
        (temp_repo / "generated").mkdir()
        (temp_repo / "generated" / "out.js").write_text("let x = 1;")

        with_gitignore = {f.relative_path for f in FileScanner(temp_repo).scan()}
        without = {
            f.relative_path for f in FileScanner(temp_repo, respect_gitignore=False).scan()
        }

        assert "generated/out.js" not in with_gitignore
        assert "generated/out.js" in without

    def test_default_ignore_prunes_directories(self, temp_repo):
        """Default patterns apply even without .gitignore."""
        scanner = FileScanner(temp_repo, respect_gitignore=False)
        paths = {f.relative_path for f in scanner.scan()}

        assert "node_modules/package/index.js" not in paths

    def test_scan_results_are_sorted(self, temp_repo):
        files = FileScanner(temp_repo).scan()
        paths = [f.relative_path for f in files]

        assert paths == sorted(paths)
        assert "src/main/app.py" in paths

    def test_scan_filters_by_size(self, temp_repo):
        """Test filtering by file size."""
        (temp_repo / "src" / "large.py").write_text("x" * 10000)

        scanner = FileScanner(temp_repo, max_file_bytes=5000)
        paths = {f.relative_path for f in scanner.scan()}

        assert "src/large.py" not in paths
        assert scanner.stats.files_skipped_size == 1

    def test_scan_applies_custom_patterns(self, temp_repo):
        """Test that custom ignore patterns work."""
        config = Config(custom_patterns=["tests/**"])
        paths = {f.relative_path for f in FileScanner(temp_repo, config=config).scan()}

        assert "tests/test_app.py" not in paths
        assert "src/index.js" in paths

    def test_scan_applies_custom_regex(self, temp_repo):
        """Regexes match the relative path or the file name."""
        config = Config(custom_regex=[r"^docs/", r"^package\.json$"])
        paths = {f.relative_path for f in FileScanner(temp_repo, config=config).scan()}

        assert "docs/guide.md" not in paths
        assert "package.json" not in paths
        assert "README.md" in paths

    def test_previous_output_is_ignored(self, temp_repo):
        """Files written by earlier runs are never packed again."""
        (temp_repo / "LLM_CODE.md").write_text("# old output")
        (temp_repo / "LLM_CODE_part01.md").write_text("# old output")
        paths = {f.relative_path for f in FileScanner(temp_repo).scan()}

        assert not any(p.startswith("LLM_CODE") for p in paths)

    def test_binary_files_are_skipped(self, temp_repo):
        (temp_repo / "logo.png").write_bytes(b"\x89PNG\r\n")
        (temp_repo / "blob.dat2").write_bytes(b"\x00\x01\x02\x03")
        scanner = FileScanner(temp_repo)
        paths = {f.relative_path for f in scanner.scan()}

        assert "logo.png" not in paths
        assert "blob.dat2" not in paths
        assert scanner.stats.files_skipped_binary == 2

    def test_legacy_encoding_is_decoded(self, temp_repo):
        (temp_repo / "src" / "legacy.py").write_bytes(
            "name = 'café crème brûlée'\n".encode("latin-1") * 20
        )
        files = {f.relative_path: f for f in FileScanner(temp_repo).scan()}

        assert files["src/legacy.py"].content.startswith("name = 'caf")
        assert files["src/legacy.py"].line_count == 20

    def test_line_endings_are_normalized(self, temp_repo):
        (temp_repo / "src" / "crlf.py").write_bytes(b"a = 1\r\nb = 2\r\n")
        files = {f.relative_path: f for f in FileScanner(temp_repo).scan()}

        assert files["src/crlf.py"].content == "a = 1\nb = 2\n"
        assert files["src/crlf.py"].line_count == 2

    def test_records_classify_code_and_config(self, temp_repo):
        files = {f.relative_path: f for f in FileScanner(temp_repo).scan()}

        assert files["src/main/app.py"].language == "python"
        assert files["src/main/app.py"].is_code
        assert not files["package.json"].is_code
        assert not files["docs/guide.md"].is_code

    def test_language_map_override(self, temp_repo):
        config = Config(language_map={"js": "typescript"})
        files = {f.relative_path: f for f in FileScanner(temp_repo, config=config).scan()}

        assert files["src/index.js"].language == "typescript"

    def test_scan_statistics(self, temp_repo):
        """Test that scan statistics are collected."""
        scanner = FileScanner(temp_repo, respect_gitignore=True)
        files = scanner.scan()

        assert scanner.stats.files_scanned >= len(files)
        assert scanner.stats.files_included == len(files)
        assert scanner.stats.total_bytes_included > 0
        assert scanner.stats.languages_detected["python"] == 2

    def test_symlinks_are_skipped(self, temp_repo):
        link = temp_repo / "link.js"
        try:
            link.symlink_to(temp_repo / "src" / "index.js")
        except OSError:
            pytest.skip("symlinks not supported")

        paths = {f.relative_path for f in FileScanner(temp_repo).scan()}

        assert "link.js" not in paths


class TestGenerateTree:
    """Tests for generate_tree function."""

    def test_basic_tree(self, temp_repo):
        """Test basic tree generation."""
        tree = generate_tree(temp_repo)
        lines = tree.split("\n")

        assert lines[0] == f"{temp_repo.name}/"
        assert lines[1] == "├── docs/"
        assert lines[-1] == "└── package.json"
        assert "│   └── guide.md" in lines

    def test_tree_depth_limit(self, temp_repo):
        """Test that tree respects depth limit."""
        tree = generate_tree(temp_repo, max_depth=1)

        assert "src/" in tree
        assert "main/" not in tree
        assert "app.py" not in tree

    def test_tree_uses_ignore_predicate(self, temp_repo):
        scanner = FileScanner(temp_repo)
        tree = generate_tree(temp_repo, is_ignored=scanner.is_ignored)

        assert "node_modules" not in tree
        assert "src/" in tree


class TestScanProject:
    """Tests for scan_project convenience function."""

    def test_scan_project_returns_files_and_stats(self, temp_repo):
        """Test that scan_project returns both files and stats."""
        files, stats = scan_project(temp_repo)

        assert isinstance(files, list)
        assert len(files) > 0
        assert stats.files_included == len(files)
