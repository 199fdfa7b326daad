"""Language classifier — map file paths to languages and extraction support.

Classification looks at the file extension only. Adding a language or
toggling what can be extracted from it means editing the tables below;
nothing else needs to change.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from enum import Enum


class Language(Enum):
    """Languages the extractors know about."""

    TYPESCRIPT = "typescript"
    JAVASCRIPT = "javascript"
    MARKDOWN = "markdown"
    CPP = "cpp"
    RUST = "rust"
    PYTHON = "python"
    OTHER = "other"


# File extensions (lower-case, with dot) mapped to language
EXTENSION_MAP: dict[str, Language] = {
    # TypeScript
    ".ts": Language.TYPESCRIPT,
    ".tsx": Language.TYPESCRIPT,
    ".mts": Language.TYPESCRIPT,
    ".cts": Language.TYPESCRIPT,
    # JavaScript
    ".js": Language.JAVASCRIPT,
    ".jsx": Language.JAVASCRIPT,
    ".mjs": Language.JAVASCRIPT,
    ".cjs": Language.JAVASCRIPT,
    # Markdown
    ".md": Language.MARKDOWN,
    ".mdx": Language.MARKDOWN,
    # C / C++
    ".c": Language.CPP,
    ".cc": Language.CPP,
    ".cpp": Language.CPP,
    ".cxx": Language.CPP,
    ".h": Language.CPP,
    ".hh": Language.CPP,
    ".hpp": Language.CPP,
    ".hxx": Language.CPP,
    # Rust
    ".rs": Language.RUST,
    # Python
    ".py": Language.PYTHON,
    ".pyi": Language.PYTHON,
}

# Languages with a symbol-level extractor
SYMBOL_LANGUAGES: frozenset[Language] = frozenset(
    {Language.TYPESCRIPT, Language.JAVASCRIPT, Language.CPP, Language.RUST}
)

# Languages with a document-structure extractor (headings, code blocks)
STRUCTURE_LANGUAGES: frozenset[Language] = frozenset({Language.MARKDOWN})


@dataclass(frozen=True)
class FileClass:
    """Classification of a single discovered file."""

    path: str
    language: Language
    can_extract_symbols: bool
    can_extract_structure: bool

    @property
    def extractable(self) -> bool:
        return self.can_extract_symbols or self.can_extract_structure


def detect_language(path: str) -> Language:
    """Return the language for a path based on its extension.

    Never touches the filesystem and never raises; unknown extensions map
    to ``Language.OTHER``.
    """
    name = posixpath.basename(str(path).replace("\\", "/"))
    _, ext = posixpath.splitext(name)
    return EXTENSION_MAP.get(ext.lower(), Language.OTHER)


def can_extract_symbols(language: Language | str) -> bool:
    """Whether a symbol extractor exists for the language."""
    return _coerce(language) in SYMBOL_LANGUAGES


def can_extract_structure(language: Language | str) -> bool:
    """Whether a structure extractor exists for the language."""
    return _coerce(language) in STRUCTURE_LANGUAGES


def classify_file(path: str) -> FileClass:
    """Detect the language of a path and bundle its capability flags."""
    language = detect_language(path)
    return FileClass(
        path=path,
        language=language,
        can_extract_symbols=can_extract_symbols(language),
        can_extract_structure=can_extract_structure(language),
    )


def _coerce(language: Language | str) -> Language | None:
    if isinstance(language, Language):
        return language
    try:
        return Language(language)
    except ValueError:
        return None
