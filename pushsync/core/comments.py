"""
Comment injection for downloaded files.

The comment marks deployed copies (for instance "Deployed from GitHub, do
not edit"). Whether and where it goes depends on the file extension:

- ``.php``: after the opening ``<?php`` tag, only when the file starts with it
- ``.css`` / ``.js``: prepended as a block comment

Every other file is left untouched.
"""

from pathlib import Path
from typing import Union


def _block_comment(comment: str) -> bytes:
    return f"/* {comment} */".encode("utf-8")


def apply_comment(path: Union[str, Path], comment: str) -> list[str]:
    """
    Inject ``comment`` into the file at ``path``.

    The extension checks are independent of each other.

    Returns:
        Labels of the comments that were added ("PHP", "CSS", "JS").
    """
    path = Path(path)
    lower_name = path.name.lower()
    added = []

    if lower_name.endswith(".php"):
        content = path.read_bytes()
        if content[:5] == b"<?php":
            path.write_bytes(b"<?php\r\n" + _block_comment(comment) + content[5:])
            added.append("PHP")

    if lower_name.endswith(".css"):
        content = path.read_bytes()
        path.write_bytes(_block_comment(comment) + b"\r\n" + content)
        added.append("CSS")

    if lower_name.endswith(".js"):
        content = path.read_bytes()
        path.write_bytes(_block_comment(comment) + b"\r\n" + content)
        added.append("JS")

    return added
