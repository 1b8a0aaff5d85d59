"""Free-text search query tokenizer."""

from __future__ import annotations

from .base import SearchToken

TAG_PREFIX = "tag:"


def _classify(fragment: str) -> SearchToken:
    if fragment.startswith("@"):
        return SearchToken("user", fragment[1:].lower(), fragment)
    if fragment.startswith("#"):
        return SearchToken("project", fragment[1:].lower(), fragment)
    if fragment.lower().startswith(TAG_PREFIX):
        return SearchToken("tag", fragment[len(TAG_PREFIX):].lower(), fragment)
    return SearchToken("keyword", fragment.lower(), fragment)


def parse_search_tokens(query: str) -> list[SearchToken]:
    """Split ``query`` on whitespace into typed tokens.

    ``@name`` is a user, ``#id`` a project, ``tag:value`` a tag and anything
    else a keyword. Tokens left empty by prefix stripping are dropped and
    duplicates by (type, value) keep their first position.
    """
    tokens: list[SearchToken] = []
    seen: set[tuple[str, str]] = set()
    for fragment in (query or "").split():
        token = _classify(fragment)
        if not token.value:
            continue
        key = (token.type, token.value)
        if key in seen:
            continue
        seen.add(key)
        tokens.append(token)
    return tokens
