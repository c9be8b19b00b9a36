"""HTML directory index."""

import html
import os
from pathlib import Path
from urllib.parse import quote


def list_children(directory: Path) -> list[str]:
    """Immediate children of a directory, sorted, directories suffixed with '/'."""
    names = []
    with os.scandir(directory) as it:
        for entry in it:
            names.append(entry.name + "/" if entry.is_dir() else entry.name)
    return sorted(names)


def render_listing(directory: Path, url_path: str) -> str:
    """Render the index page for a directory.

    Args:
        directory: Filesystem directory to enumerate
        url_path: Path of the directory relative to the document root (e.g. /sub/)

    Returns:
        HTML document with a parent link followed by one link per child
    """
    title = html.escape(f"Index of {url_path}")
    lines = [
        "<!DOCTYPE html>",
        "<html>",
        f"<head><title>{title}</title></head>",
        "<body>",
        f"<h1>{title}</h1>",
        "<ul>",
        '<li><a href="../">../</a></li>',
    ]
    for name in list_children(directory):
        # names that are not valid UTF-8 come back with surrogate escapes
        raw = os.fsencode(name)
        text = raw.decode("utf-8", "replace")
        lines.append(f'<li><a href="{quote(raw)}">{html.escape(text)}</a></li>')
    lines.extend(["</ul>", "</body>", "</html>", ""])
    return "\n".join(lines)
