"""Source normalization and tokenization.

Two strengths of normalization feed the similarity signals:

* ``normalize`` removes cosmetic noise (comments, whitespace, literal values)
  but keeps identifiers, so it is still sensitive to renaming.
* ``deep_normalize`` additionally folds every non-keyword identifier into
  ``VAR`` so renamed copies collapse onto the same text.
"""
from __future__ import annotations

import re

BLOCK_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
LINE_COMMENT_RE = re.compile(r"//.*")
HASH_COMMENT_RE = re.compile(r"#.*")
WHITESPACE_RE = re.compile(r"\s+")
STRING_LITERAL_RE = re.compile(r"['\"]([^'\"]*)['\"]")
INTEGER_RE = re.compile(r"\b\d+\b")
NUMBER_RE = re.compile(r"\b\d+\.?\d*\b")
IDENTIFIER_RE = re.compile(r"\b[a-zA-Z_][a-zA-Z0-9_]*\b")
TOKEN_SPLIT_RE = re.compile(r"[\s()\[\]{};,.]+")

BRACE_LANGUAGES = frozenset({"javascript", "typescript", "java", "c", "cpp", "csharp"})

KEYWORDS = frozenset({
    "function", "var", "let", "const", "if", "else", "for", "while",
    "return", "class", "def", "import", "from", "public", "private",
    "int", "float", "double", "void", "string", "bool", "true", "false",
})

MIN_TOKEN_LENGTH = 3


def strip_comments(text: str) -> str:
    text = BLOCK_COMMENT_RE.sub("", text)
    text = LINE_COMMENT_RE.sub("", text)
    return HASH_COMMENT_RE.sub("", text)


def normalize(text: str, language: str) -> str:
    normalized = strip_comments(text)
    normalized = WHITESPACE_RE.sub(" ", normalized)
    normalized = STRING_LITERAL_RE.sub("STRING", normalized)
    normalized = INTEGER_RE.sub("NUM", normalized).strip()

    if language in BRACE_LANGUAGES:
        normalized = normalized.replace("{", " { ").replace("}", " } ")
    return normalized


def _fold_identifier(match: re.Match) -> str:
    word = match.group(0)
    return word if word.lower() in KEYWORDS else "VAR"


def deep_normalize(text: str, language: str) -> str:
    normalized = strip_comments(text)
    normalized = IDENTIFIER_RE.sub(_fold_identifier, normalized)
    normalized = STRING_LITERAL_RE.sub("STR", normalized)
    normalized = NUMBER_RE.sub("NUM", normalized)
    return WHITESPACE_RE.sub(" ", normalized).strip()


def tokenize(text: str) -> list[str]:
    return [t for t in TOKEN_SPLIT_RE.split(text) if len(t) >= MIN_TOKEN_LENGTH]
