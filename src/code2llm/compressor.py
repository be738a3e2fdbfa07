"""
Code compression for code2llm.

Pipeline for one file: protect literals → strip comments → normalize whitespace →
standard or ultra compression → final cleanup → restore literals. Every stage is a pure
function of its input and never raises, whatever the input looks like.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from .grammar import LanguageGrammar, get_grammar
from .literals import CompressionContext, protect, restore

# Standard mode: an isolated `{` joins the previous line, and continuation keywords join
# the line of the closing brace before them. One combined pass, so pattern order is moot.
_STANDARD_JOINS = re.compile(
    r"(?P<brace>\})[ \t]*\n\s*(?=(?:else|catch|finally|elif|except)\b)"
    r"|[ \t]*\n\s*(?=\{)"
)
_BLANK_RUNS = re.compile(r"\n{3,}")
_NEWLINE_RUNS = re.compile(r"\n+")
_WHITESPACE_RUNS = re.compile(r"\s+")

# Longest operators first so `===` is never read as `==` followed by `=`
_OPERATORS = sorted(
    [
        "===", "!==", "==", "!=", "<=", ">=", "=>", ":=", "&&", "||",
        "+=", "-=", "*=", "/=", "%=", "&=", "|=", "^=", "<<", ">>",
        "=", "<", ">", "&", "|", "^",
    ],
    key=len,
    reverse=True,
)
_OPERATOR_SPACING = re.compile(" (" + "|".join(re.escape(op) for op in _OPERATORS) + ") ")

_PUNCTUATION_SPACING: tuple[tuple[str, str], ...] = (
    (" {", "{"),
    (" }", "}"),
    (" (", "("),
    (" )", ")"),
    ("( ", "("),
    (") ", ")"),
    (" [", "["),
    (" ]", "]"),
    ("[ ", "["),
    ("] ", "]"),
    (" ;", ";"),
    (" ,", ","),
    (", ", ","),
    (" :", ":"),
    (": ", ":"),
)

# Only for languages where a line break carries no meaning
_NEWLINE_ELISION: tuple[tuple[str, str], ...] = (
    ("\n{", "{"),
    ("}\n", "}"),
    ("{\n", "{"),
    ("\n}", "}"),
    (",\n", ","),
    ("\n,", ","),
    ("\n;", ";"),
)
_SEMICOLON_NEWLINE: tuple[tuple[str, str], ...] = ((";\n", ";"),)

ULTRA_MAX_PASSES = 3

JS_STATEMENT_KEYWORDS: tuple[str, ...] = (
    "import", "export", "class", "function", "const", "let", "var",
    "if", "else", "for", "while", "switch", "case", "return",
    "break", "continue", "try", "catch", "finally", "async", "await",
)
_GO_PACKAGE_GAP = re.compile(r"(\bpackage\s+\w+)\n+")
_GO_SHORT_FUNC = re.compile(r"(\bfunc\b[^\n{]*)\{\n(return\b[^\n{}]*)\n\}")


def compress(content: str, language: str, ultra: bool = False) -> str:
    """Compress one file's content.

    Args:
        content: Original file text.
        language: Language tag of the file.
        ultra: Use ultra mode instead of standard mode.

    Returns:
        Compressed text ending with exactly one newline (empty input stays empty;
        languages without a grammar get `basic_compress` output).
    """
    if not content:
        return content

    context = CompressionContext(language, ultra=ultra)
    if context.grammar is None:
        return basic_compress(content)

    text, tokens = protect(content, context.language, context)
    text = strip_comments(text, context.language)
    text = normalize_whitespace(text)
    if context.ultra:
        text = ultra_compress(text, context.language)
    else:
        text = standard_compress(text)
    text = restore(final_cleanup(text), tokens)
    # A literal left open at end of input carries the last newline itself
    return text.rstrip("\n") + "\n"


def basic_compress(content: str) -> str:
    """Drop blank lines and trailing whitespace; used for non-code files."""
    lines = [line.rstrip(" \t") for line in content.split("\n") if line.strip()]
    return "\n".join(lines)


def strip_comments(text: str, language: str) -> str:
    """Remove line and block comments from protected text.

    Expects literals to be protected already. A line marker is skipped when it is
    backslash-escaped or when the unescaped quotes before it on the same line are
    unbalanced, which catches markers inside quotes the protector did not claim.

    Args:
        text: Protected text.
        language: Language tag selecting the comment grammar.

    Returns:
        Text with comments removed; line breaks ending line comments are kept.
    """
    grammar = get_grammar(language)
    if grammar is None or not text:
        return text
    pattern = _comment_pattern(grammar)
    if pattern is None:
        return text
    # Single quotes are lifetimes, not string delimiters, where char literals exist
    quotes = tuple(q for q in grammar.quotes if not (grammar.char_literals and q == "'"))

    pieces: list[str] = []
    pos = 0
    search_from = 0
    while True:
        match = pattern.search(text, search_from)
        if match is None:
            break
        start = match.start()
        if match.lastgroup == "line":
            # Text of comments already removed on this line does not count
            line_start = max(text.rfind("\n", 0, start) + 1, pos)
            prefix = text[line_start:start]
            if prefix.endswith("\\") or _inside_quotes(prefix, quotes):
                search_from = start + 1
                continue
            pieces.append(text[pos:start])
        else:
            # A block comment still separates the tokens around it
            pieces.append(text[pos:start] + " ")
        pos = search_from = match.end()
    pieces.append(text[pos:])
    return "".join(pieces)


def _comment_pattern(grammar: LanguageGrammar) -> re.Pattern[str] | None:
    parts = []
    if grammar.block_comment:
        opener, closer = (re.escape(d) for d in grammar.block_comment)
        parts.append(f"(?P<block>{opener}[\\s\\S]*?(?:{closer}|\\Z))")
    if grammar.line_comment:
        parts.append(f"(?P<line>{re.escape(grammar.line_comment)}[^\\n]*)")
    if not parts:
        return None
    return re.compile("|".join(parts))


def _inside_quotes(prefix: str, quotes: tuple[str, ...] = ('"', "'")) -> bool:
    """Heuristic: True when `prefix` holds an odd number of unescaped quotes of a kind."""
    if not any(q in prefix for q in quotes):
        return False
    counts = dict.fromkeys(quotes, 0)
    backslashes = 0
    for ch in prefix:
        if ch == "\\":
            backslashes += 1
            continue
        if ch in counts and backslashes % 2 == 0:
            counts[ch] += 1
        backslashes = 0
    return any(count % 2 for count in counts.values())


def normalize_whitespace(text: str) -> str:
    """Trim every line, drop empty lines, and collapse inner whitespace runs."""
    lines = []
    for line in text.split("\n"):
        stripped = line.strip()
        if stripped:
            lines.append(_WHITESPACE_RUNS.sub(" ", stripped))
    return "\n".join(lines)


def standard_compress(text: str) -> str:
    """Join isolated braces and `else`-style continuations, then limit blank lines."""
    text = _STANDARD_JOINS.sub(lambda m: "} " if m.group("brace") else " ", text)
    return _BLANK_RUNS.sub("\n\n", text)


def ultra_compress(text: str, language: str) -> str:
    """Standard mode plus operator/punctuation whitespace elision.

    Args:
        text: Protected, normalized text.
        language: Language tag selecting newline handling and family passes.

    Returns:
        Compressed text with single newlines only.
    """
    grammar = get_grammar(language)
    text = standard_compress(text)

    table = list(_PUNCTUATION_SPACING)
    if grammar is not None and not grammar.newline_sensitive:
        table.extend(_NEWLINE_ELISION)
        if grammar.family != "javascript":
            table.extend(_SEMICOLON_NEWLINE)

    for _ in range(ULTRA_MAX_PASSES):
        before = text
        text = _OPERATOR_SPACING.sub(r"\1", text)
        for old, new in table:
            if old in text:
                text = text.replace(old, new)
        if text == before:
            break

    family = grammar.family if grammar is not None else None
    if family == "javascript":
        text = _merge_javascript_statements(text)
    elif family == "go":
        text = _compact_go(text)

    return _NEWLINE_RUNS.sub("\n", text)


def starts_with_keyword(line: str, keywords: tuple[str, ...] = JS_STATEMENT_KEYWORDS) -> bool:
    """Check whether `line` begins with one of `keywords` as a whole word."""
    for keyword in keywords:
        if line.startswith(keyword):
            rest = line[len(keyword):]
            if not rest or not (rest[0].isalnum() or rest[0] in "_$"):
                return True
    return False


def _merge_javascript_statements(text: str) -> str:
    lines = text.split("\n")
    merged: list[str] = []
    for line in lines:
        if (
            merged
            and merged[-1].rstrip().endswith(";")
            and not starts_with_keyword(line.strip())
        ):
            merged[-1] += line
        else:
            merged.append(line)
    return "\n".join(merged)


def _compact_go(text: str) -> str:
    text = _GO_PACKAGE_GAP.sub(r"\1\n", text)
    return _GO_SHORT_FUNC.sub(r"\1{\2}", text)


def final_cleanup(text: str) -> str:
    """Trim, end with one newline, cap blank lines, and strip trailing whitespace."""
    text = text.strip() + "\n"
    text = _BLANK_RUNS.sub("\n\n", text)
    return "\n".join(line.rstrip() for line in text.split("\n"))


@dataclass
class CompressionStats:
    """Size comparison between original and compressed content."""

    original_size: int
    compressed_size: int
    original_lines: int
    compressed_lines: int

    @property
    def savings(self) -> int:
        return self.original_size - self.compressed_size

    @property
    def ratio(self) -> float:
        """Percentage of characters removed."""
        if self.original_size == 0:
            return 0.0
        return self.savings / self.original_size * 100

    @property
    def lines_removed(self) -> int:
        return self.original_lines - self.compressed_lines

    def to_dict(self) -> dict[str, Any]:
        return {
            "compressed_lines": self.compressed_lines,
            "compressed_size": self.compressed_size,
            "compression_ratio": round(self.ratio, 2),
            "lines_removed": self.lines_removed,
            "original_lines": self.original_lines,
            "original_size": self.original_size,
            "savings": self.savings,
        }


def compression_stats(original: str, compressed: str) -> CompressionStats:
    """Compute size and line statistics for a compression result."""
    return CompressionStats(
        original_size=len(original),
        compressed_size=len(compressed),
        original_lines=original.count("\n") + 1,
        compressed_lines=compressed.count("\n") + 1,
    )


def validate_compression(original: str, compressed: str, language: str) -> list[str]:
    """Look for signs that compression damaged a file.

    Args:
        original: Uncompressed content.
        compressed: Output of `compress`.
        language: Language tag of the file.

    Returns:
        Human-readable warnings; empty when nothing looks wrong.
    """
    warnings: list[str] = []
    if not original:
        return warnings

    if len(compressed) > len(original):
        warnings.append("compressed output is larger than the original")
    if len(compressed) / len(original) < 0.3:
        warnings.append("compression ratio is very high; output may be hard to read")

    language = language.lower()
    if language == "python" and "\n" in original.strip() and "\n" not in compressed.strip():
        warnings.append("all line breaks were removed from Python code")
    if language == "go" and "package " in original and "package " not in compressed:
        warnings.append("Go package clause was lost")

    for opener, closer in ("()", "[]", "{}"):
        before = original.count(opener) - original.count(closer)
        after = compressed.count(opener) - compressed.count(closer)
        if before != after:
            warnings.append(
                f"bracket balance changed for {opener}{closer}: {before} -> {after}"
            )
    return warnings


_FORMATTER_HINTS: dict[str, tuple[str, ...]] = {
    "javascript": ("Prettier: npx prettier --write <file>", "ESLint: npx eslint --fix <file>"),
    "typescript": ("Prettier: npx prettier --write <file>", "ESLint: npx eslint --fix <file>"),
    "python": ("Black: black <file>", "autopep8: autopep8 --in-place <file>"),
    "go": ("gofmt: gofmt -w <file>", "goimports: goimports -w <file>"),
    "rust": ("rustfmt: rustfmt <file>",),
    "java": ("google-java-format: google-java-format -i <file>",),
    "c": ("clang-format: clang-format -i <file>",),
    "cpp": ("clang-format: clang-format -i <file>",),
}


def decompress_hint(language: str, ultra: bool = False) -> str:
    """Suggest formatters that make compressed code readable again."""
    hints = ["Reformat compressed code with a formatter:"]
    hints.extend(f"  - {hint}" for hint in _FORMATTER_HINTS.get(language.lower(), ()))
    if ultra:
        hints.append("")
        hints.append("Note: ultra mode was used; format the code before reading it.")
    return "\n".join(hints)
