"""Mapping between working directories and the log store's project directory names.

The assistant names each project directory after the session's working
directory with every path separator and every dot replaced by a dash::

    /Users/jane/Projects/acme/web.app  ->  -Users-jane-Projects-acme-web-app

Decoding is best effort. A dash inside a directory name is indistinguishable
from a separator, so ``acme-labs/api`` and ``acme/labs-api`` encode to the same
key and both decode as ``acme/labs-api``.
"""

from __future__ import annotations

import os

FILLER = "-"
PROJECTS_MARKER = "-Projects-"


def encode_project_path(path: str) -> str:
    """Convert a filesystem path to the encoded directory name format."""
    encoded = path.replace("/", FILLER)
    if os.sep != "/":
        encoded = encoded.replace(os.sep, FILLER)
    return encoded.replace(".", FILLER)


def decode_project_name(name: str) -> str:
    """Convert an encoded directory name to a readable ``org/project`` label."""
    if name.startswith(FILLER):
        name = name[1:]

    idx = name.find(PROJECTS_MARKER)
    if idx != -1:
        return format_project_path(name[idx + len(PROJECTS_MARKER):])

    parts = name.split(FILLER, 2)
    if len(parts) == 3 and parts[0] == "Users":
        return format_project_path(parts[2])

    return name.replace(FILLER, "/")


def format_project_path(path: str) -> str:
    """Split on the first dash only: ``org-rest-of-name`` -> ``org/rest-of-name``."""
    org, sep, rest = path.partition(FILLER)
    if sep:
        return f"{org}/{rest}"
    return path
