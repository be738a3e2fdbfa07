"""
Literal protection for code2llm.

Before comments and whitespace are touched, every string-like literal (quoted strings,
template strings, triple-quoted strings, raw strings, regex and char literals) is swapped
out for a placeholder and remembered as a `Token`. After compression the placeholders are
replaced by the original spans, byte for byte.

Placeholders are built from two private-use characters around the token index. Any stray
occurrence of those characters in the source is protected as a token of its own, so a
placeholder can never be confused with source text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import NamedTuple

from .grammar import LanguageGrammar, get_grammar

PLACEHOLDER_OPEN = "\ue000"
PLACEHOLDER_CLOSE = "\ue001"
PLACEHOLDER_PATTERN = re.compile(f"{PLACEHOLDER_OPEN}(\\d+){PLACEHOLDER_CLOSE}")

# Rust-style char literal: 'a', '\n', '\x7f', '\u{1F600}'
_CHAR_LITERAL = re.compile(r"'(?:\\(?:x[0-9A-Fa-f]{2}|u\{[0-9A-Fa-f]{1,6}\}|.)|[^\\'\n])'")

# A `/` after one of these starts a regex literal rather than a division
_REGEX_PRECEDERS = frozenset("(,=:[!&|?{};+-*%<>~^")
_REGEX_KEYWORDS = frozenset(
    {
        "return",
        "typeof",
        "instanceof",
        "case",
        "do",
        "else",
        "in",
        "of",
        "void",
        "yield",
        "delete",
        "throw",
        "new",
        "await",
    }
)
_TRAILING_WORD = re.compile(r"[A-Za-z_$][\w$]*$")
_TAIL_SIZE = 32


class Token(NamedTuple):
    """A protected literal span and its position in the token list."""

    index: int
    span: str


def make_placeholder(index: int) -> str:
    """Build the placeholder text for a token index."""
    return f"{PLACEHOLDER_OPEN}{index}{PLACEHOLDER_CLOSE}"


@dataclass
class CompressionContext:
    """Per-file compression state.

    One context is created for each file being compressed and discarded afterwards; it is
    never shared between files.

    Attributes:
        language: Lower-case language tag of the file.
        ultra: Whether ultra compression is requested.
        tokens: Protected spans in the order they were found.
    """

    language: str
    ultra: bool = False
    tokens: list[Token] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.language = self.language.lower()

    @property
    def grammar(self) -> LanguageGrammar | None:
        return get_grammar(self.language)

    def add_token(self, span: str) -> str:
        """Record a protected span and return its placeholder."""
        token = Token(len(self.tokens), span)
        self.tokens.append(token)
        return make_placeholder(token.index)


class _LiteralScanner:
    """Single forward scan that swaps literals for placeholders.

    Comments are recognised so that quote characters inside them never open a string,
    but they are emitted unchanged; removing them is the comment stripper's job.
    """

    def __init__(self, text: str, context: CompressionContext, grammar: LanguageGrammar):
        self.text = text
        self.context = context
        self.grammar = grammar
        self._out: list[str] = []
        stops = grammar.specials + PLACEHOLDER_OPEN + PLACEHOLDER_CLOSE
        self._stop = re.compile("[" + re.escape(stops) + "]")

    def run(self) -> str:
        text = self.text
        pos = 0
        while pos < len(text):
            match = self._stop.search(text, pos)
            if match is None:
                self._out.append(text[pos:])
                break
            start = match.start()
            if start > pos:
                self._out.append(text[pos:start])
            pos = self._dispatch(start)
        return "".join(self._out)

    def _dispatch(self, i: int) -> int:
        """Handle the interesting character at `i` and return where to resume."""
        text = self.text
        grammar = self.grammar
        ch = text[i]

        if ch in (PLACEHOLDER_OPEN, PLACEHOLDER_CLOSE):
            return self._protect(i, i + 1)

        if grammar.block_comment and text.startswith(grammar.block_comment[0], i):
            opener, closer = grammar.block_comment
            end = text.find(closer, i + len(opener))
            return self._emit(i, len(text) if end == -1 else end + len(closer))

        if grammar.line_comment and text.startswith(grammar.line_comment, i):
            end = text.find("\n", i)
            return self._emit(i, len(text) if end == -1 else end)

        if grammar.triple_quotes and ch in grammar.quotes and text.startswith(ch * 3, i):
            return self._protect(i, self._scan_triple(i, ch * 3))

        if ch == grammar.template_quote:
            return self._protect(i, self._scan_template(i))

        if ch == grammar.raw_quote:
            end = text.find(ch, i + 1)
            return self._protect(i, len(text) if end == -1 else end + 1)

        if ch in grammar.quotes:
            if grammar.char_literals and ch == "'":
                literal = _CHAR_LITERAL.match(text, i)
                if literal is None:
                    # Lifetime or label, not a literal
                    return self._emit(i, i + 1)
                return self._protect(i, literal.end())
            return self._protect(i, self._scan_quoted(i, ch))

        if ch == "/" and grammar.regex_literals and self._regex_allowed():
            end = self._scan_regex(i)
            if end is not None:
                return self._protect(i, end)

        return self._emit(i, i + 1)

    def _emit(self, start: int, end: int) -> int:
        self._out.append(self.text[start:end])
        return end

    def _protect(self, start: int, end: int) -> int:
        self._out.append(self.context.add_token(self.text[start:end]))
        return end

    def _scan_quoted(self, i: int, quote: str) -> int:
        text = self.text
        n = len(text)
        j = i + 1
        while j < n:
            ch = text[j]
            if ch == "\\":
                j += 2
                continue
            if ch == quote:
                return j + 1
            if ch == "\n" and not self.grammar.multiline_quotes:
                return j
            j += 1
        return n

    def _scan_triple(self, i: int, delimiter: str) -> int:
        text = self.text
        n = len(text)
        j = i + len(delimiter)
        while j < n:
            if text[j] == "\\":
                j += 2
                continue
            if text.startswith(delimiter, j):
                return j + len(delimiter)
            j += 1
        return n

    def _scan_template(self, i: int) -> int:
        text = self.text
        n = len(text)
        depth = 0
        j = i + 1
        while j < n:
            ch = text[j]
            if ch == "\\":
                j += 2
                continue
            if depth == 0:
                if ch == "`":
                    return j + 1
                if text.startswith("${", j):
                    depth = 1
                    j += 2
                    continue
            # Strings and templates nested in an interpolation are skipped whole
            elif ch == "`":
                j = self._scan_template(j)
                continue
            elif ch in self.grammar.quotes:
                j = self._scan_quoted(j, ch)
                continue
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
            j += 1
        return n

    def _scan_regex(self, i: int) -> int | None:
        text = self.text
        n = len(text)
        j = i + 1
        if j < n and text[j] in "/*":
            return None
        in_class = False
        while j < n:
            ch = text[j]
            if ch == "\\":
                j += 2
                continue
            if ch == "\n":
                return None
            if in_class:
                if ch == "]":
                    in_class = False
            elif ch == "[":
                in_class = True
            elif ch == "/":
                j += 1
                while j < n and text[j].isalpha():
                    j += 1
                return j
            j += 1
        return None

    def _regex_allowed(self) -> bool:
        tail = self._tail()
        if not tail:
            return True
        if tail[-1] in _REGEX_PRECEDERS:
            return True
        word = _TRAILING_WORD.search(tail)
        return word is not None and word.group() in _REGEX_KEYWORDS

    def _tail(self) -> str:
        """Return the last few emitted characters, without trailing whitespace."""
        pieces: list[str] = []
        size = 0
        seen_code = False
        for chunk in reversed(self._out):
            pieces.append(chunk)
            size += len(chunk)
            seen_code = seen_code or bool(chunk.strip())
            if seen_code and size >= _TAIL_SIZE:
                break
        return "".join(reversed(pieces)).rstrip()


def protect(
    content: str,
    language: str,
    context: CompressionContext | None = None,
) -> tuple[str, list[Token]]:
    """Replace every literal in `content` with a placeholder.

    Never fails: unterminated literals are protected up to the end of the line (plain
    strings in single-line languages) or the end of input.

    Args:
        content: Source text.
        language: Language tag selecting the grammar.
        context: Optional per-file context to append tokens to.

    Returns:
        A tuple `(protected_text, tokens)`.
    """
    if context is None:
        context = CompressionContext(language)
    grammar = get_grammar(language)
    if grammar is None or not content:
        return content, context.tokens
    protected = _LiteralScanner(content, context, grammar).run()
    return protected, context.tokens


def restore(text: str, tokens: list[Token]) -> str:
    """Put the original spans back in place of their placeholders.

    Uses one linear substitution over the indexed token list; restored spans are never
    rescanned, so a span that happens to contain placeholder-like text is left alone.

    Args:
        text: Text containing placeholders.
        tokens: Tokens produced by `protect` for the same text.

    Returns:
        Text with every placeholder replaced by its original span.
    """
    if not tokens:
        return text
    return PLACEHOLDER_PATTERN.sub(lambda m: tokens[int(m.group(1))].span, text)


def count_placeholders(text: str) -> int:
    """Count placeholders remaining in `text`."""
    return len(PLACEHOLDER_PATTERN.findall(text))
