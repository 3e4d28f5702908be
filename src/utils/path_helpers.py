import re


def normalize_path(path: str) -> str:
    """Drop a trailing slash so "/health/" and "/health" compare equal."""
    return path.rstrip("/") or "/"


def path_matches(path: str, allowed_paths: set[str]) -> bool:
    """True if ``path`` is one of ``allowed_paths``, ignoring trailing slashes."""
    normalized = normalize_path(path)
    return any(normalize_path(allowed) == normalized for allowed in allowed_paths)


def path_matches_pattern(
    path: str, patterns: list[tuple[str | None, str]], method: str | None = None
) -> bool:
    """True if ``path`` matches a ``(method, regex)`` pair.

    A ``None`` method in a pattern matches any HTTP method.
    """
    for allowed_method, pattern in patterns:
        if allowed_method and method and allowed_method.upper() != method.upper():
            continue
        if re.match(pattern, path):
            return True
    return False
