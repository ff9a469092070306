from __future__ import annotations
import re

_UNSAFE_IDENTIFIER_CHARS = re.compile(r"[^A-Za-z0-9_]+")


def sanitize_sql_identifier(unquoted_identifier: str) -> str:
    """Strip every character that is not a letter, digit or underscore.

    Characters are removed rather than replaced, so ``orders-2024`` becomes ``orders2024``.
    """
    return _UNSAFE_IDENTIFIER_CHARS.sub("", unquoted_identifier)
