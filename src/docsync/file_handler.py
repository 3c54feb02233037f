"""Local file helpers shared by the notes vault adapter and the JSON store.

- ``resolve_within``: keep a vault or state path inside its root.
- ``read_text_file`` / ``write_text_file``: markdown files of unknown
  encoding in, UTF-8 out.
- ``write_json_atomic``: store state files without partial writes.
- ``text_revision``: revision id of a note, stable across line endings.
"""

import hashlib
import json
import os
import tempfile
from pathlib import Path
from typing import Any

from charset_normalizer import from_bytes

_BOM = "\ufeff"


def resolve_within(base_dir: Path, relative: str) -> Path:
    """Resolve *relative* under *base_dir*, refusing to escape it.

    Symlinks are followed before the check, so a link pointing out of
    the vault is rejected like a ``..`` segment.

    Raises:
        ValueError: If the path is empty, absolute, or lands outside
            base_dir.
    """
    if not relative or Path(relative).is_absolute():
        raise ValueError(f"Path must be relative: {relative!r}")
    root = base_dir.resolve()
    target = (root / relative).resolve()
    if target != root and root not in target.parents:
        raise ValueError(
            f"Path is outside base directory: {target} not under {root}"
        )
    return target


def read_text_file(path: Path) -> tuple[str, str]:
    """Decode a note written in whatever encoding its editor chose.

    charset-normalizer guesses the encoding; an undetectable file is
    decoded as UTF-8 with replacement characters.  Plain ASCII is
    reported as ``utf-8``.

    Returns:
        ``(text, encoding)``.
    """
    data = path.read_bytes()
    if not data:
        return "", "utf-8"

    match = from_bytes(data).best()
    if match is None:
        return data.decode("utf-8", errors="replace"), "utf-8"
    encoding = "utf-8" if match.encoding == "ascii" else match.encoding
    return str(match), encoding


def write_text_file(path: Path, text: str) -> int:
    """Write *text* as UTF-8, creating missing folders; returns byte count."""
    data = text.encode("utf-8")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return len(data)


def write_json_atomic(path: Path, data: Any) -> None:
    """Persist *data* as JSON so readers never observe a partial file.

    Writes to a temporary file in the target directory then atomically
    replaces the target.  Creates the directory if it does not exist.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2, ensure_ascii=False)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def text_revision(text: str) -> str:
    """SHA-256 of *text* after normalising editor noise.

    A leading BOM, CRLF line endings, trailing whitespace on each line
    and trailing blank lines do not change the revision.
    """
    if text.startswith(_BOM):
        text = text[len(_BOM):]
    lines = [line.rstrip() for line in text.replace("\r\n", "\n").split("\n")]
    normalised = "\n".join(lines).rstrip("\n")
    return hashlib.sha256(normalised.encode("utf-8")).hexdigest()
