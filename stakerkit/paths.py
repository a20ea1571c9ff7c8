"""File-system helpers for locating and normalising staker paths."""

from __future__ import annotations

import os
import sys

_SHELL_SPECIAL = set("*#$@!?-0123456789")


def _home_dir() -> str:
    home = os.path.expanduser("~")
    if home == "~":
        return os.environ.get("HOME", "")
    return home


def app_data_dir(app_name: str) -> str:
    """Return the per-user, non-roaming data directory for ``app_name``."""
    if app_name in ("", "."):
        return "."
    if app_name.startswith("."):
        app_name = app_name[1:]
    if not app_name:
        return "."
    upper = app_name[0].upper() + app_name[1:]
    lower = app_name[0].lower() + app_name[1:]
    home = _home_dir()

    if sys.platform == "win32":
        app_data = os.environ.get("LOCALAPPDATA", "") or os.environ.get("APPDATA", "")
        if app_data:
            return os.path.join(app_data, upper)
    elif sys.platform == "darwin":
        if home:
            return os.path.join(home, "Library", "Application Support", upper)
    elif home:
        return os.path.join(home, "." + lower)
    return "."


def file_exists(name: str) -> bool:
    """Report whether the named file or directory exists.

    Only a definite "not found" counts as absent.
    """
    try:
        os.stat(name)
    except FileNotFoundError:
        return False
    except OSError:
        return True
    return True


def _shell_name(s: str):
    if s[0] == "{":
        if len(s) > 2 and s[1] in _SHELL_SPECIAL and s[2] == "}":
            return s[1], 3
        closing = s.find("}", 1)
        if closing == 1:
            return "", 2
        if closing < 0:
            return "", 1
        return s[1:closing], closing + 1
    if s[0] in _SHELL_SPECIAL:
        return s[0], 1
    i = 0
    while i < len(s) and (s[i] == "_" or (s[i].isascii() and s[i].isalnum())):
        i += 1
    return s[:i], i


def _expand_env(s: str) -> str:
    out = []
    start = 0
    j = 0
    while j < len(s):
        if s[j] == "$" and j + 1 < len(s):
            out.append(s[start:j])
            name, width = _shell_name(s[j + 1:])
            if name:
                out.append(os.environ.get(name, ""))
            elif width == 0:
                out.append("$")
            j += width
            start = j + 1
        j += 1
    if not out:
        return s
    return "".join(out) + s[start:]


def _clean(path: str) -> str:
    if os.sep != "/":
        return os.path.normpath(path) if path else "."
    if not path:
        return "."
    rooted = path.startswith("/")
    parts = []
    for part in path.split("/"):
        if part in ("", "."):
            continue
        if part == "..":
            if parts and parts[-1] != "..":
                parts.pop()
            elif not rooted:
                parts.append("..")
            continue
        parts.append(part)
    joined = "/".join(parts)
    if rooted:
        return "/" + joined
    return joined or "."


def clean_and_expand_path(path: str) -> str:
    """Expand a leading ``~`` and ``$VAR`` references, then clean the path.

    Undefined variables expand to nothing.
    """
    if not path:
        return ""
    if path.startswith("~"):
        path = path.replace("~", _home_dir(), 1)
    return _clean(_expand_env(path))