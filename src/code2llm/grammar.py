"""
Per-language comment and literal grammar for code2llm.

Each supported language maps to a `LanguageGrammar` record describing how comments and
string literals look. The compressor consults this table instead of branching on
language names, so adding a language is a single table entry.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping


@dataclass(frozen=True)
class LanguageGrammar:
    """Comment and literal capabilities of one language.

    Attributes:
        name: Normalized language tag (e.g., `"python"`).
        line_comment: Marker that starts a comment running to end of line.
        block_comment: Opening/closing delimiter pair for block comments.
        quotes: Quote characters delimiting ordinary strings.
        multiline_quotes: Whether ordinary strings may span lines.
        triple_quotes: Whether tripled quote characters open a long string.
        template_quote: Delimiter of template strings with `${...}` interpolation.
        raw_quote: Delimiter of raw strings (no escapes, may span lines).
        regex_literals: Whether `/.../flags` regex literals exist.
        char_literals: Whether `'` only delimits short char literals (lifetimes otherwise).
        newline_sensitive: Whether line breaks are significant to the parser.
        family: Ultra-mode pass family (`"javascript"`, `"go"`, or None).
    """

    name: str
    line_comment: str | None = "//"
    block_comment: tuple[str, str] | None = ("/*", "*/")
    quotes: tuple[str, ...] = ('"', "'")
    multiline_quotes: bool = False
    triple_quotes: bool = False
    template_quote: str | None = None
    raw_quote: str | None = None
    regex_literals: bool = False
    char_literals: bool = False
    newline_sensitive: bool = False
    family: str | None = None

    @property
    def specials(self) -> str:
        """Characters at which the literal scanner has to stop and look."""
        chars = set(self.quotes)
        for delimiter in (self.template_quote, self.raw_quote):
            if delimiter:
                chars.add(delimiter)
        if self.line_comment:
            chars.add(self.line_comment[0])
        if self.block_comment:
            chars.add(self.block_comment[0][0])
        if self.regex_literals:
            chars.add("/")
        return "".join(sorted(chars))


_C_STYLE = ("c", "cpp", "java", "csharp", "kotlin", "scala", "swift", "dart", "objc")

_GRAMMARS: dict[str, LanguageGrammar] = {
    name: LanguageGrammar(name=name) for name in _C_STYLE
}
_GRAMMARS.update(
    {
        "javascript": LanguageGrammar(
            name="javascript",
            template_quote="`",
            regex_literals=True,
            family="javascript",
        ),
        "typescript": LanguageGrammar(
            name="typescript",
            template_quote="`",
            regex_literals=True,
            family="javascript",
        ),
        "go": LanguageGrammar(
            name="go",
            raw_quote="`",
            newline_sensitive=True,
            family="go",
        ),
        "rust": LanguageGrammar(name="rust", char_literals=True),
        "php": LanguageGrammar(name="php", multiline_quotes=True),
        "python": LanguageGrammar(
            name="python",
            line_comment="#",
            block_comment=None,
            triple_quotes=True,
            newline_sensitive=True,
        ),
        "ruby": LanguageGrammar(
            name="ruby",
            line_comment="#",
            block_comment=None,
            multiline_quotes=True,
            newline_sensitive=True,
        ),
    }
)

# Immutable, process-wide lookup keyed by language tag
GRAMMARS: Mapping[str, LanguageGrammar] = MappingProxyType(_GRAMMARS)

# Languages the compressor treats as code; everything else gets basic cleanup only
CODE_LANGUAGES: frozenset[str] = frozenset(GRAMMARS)


def get_grammar(language: str) -> LanguageGrammar | None:
    """Look up the grammar for a language tag.

    Args:
        language: Language tag in any case (e.g., `"Python"`).

    Returns:
        The matching `LanguageGrammar`, or None for languages without code grammar.
    """
    return GRAMMARS.get(language.lower())
