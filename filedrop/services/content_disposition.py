"""
Content-Disposition header values for uploaded files.

Storage replays the header signed into the presigned PUT on every download,
so browsers save the file under its original name.
"""
import re
from urllib.parse import quote_plus

FALLBACK_BASENAME = "file"

_SAFE_EXTENSION = re.compile(r"\.[A-Za-z0-9]+")


def file_extension(filename: str) -> str:
    """
    Extension of the last path element, dot included ("" if none).

    "a/b.tar.gz" -> ".gz", ".bashrc" -> ".bashrc", "README" -> "".
    """
    base = filename.rsplit("/", 1)[-1]
    dot = base.rfind(".")
    if dot < 0:
        return ""
    return base[dot:]


def encode_content_disposition(filename: str) -> str:
    """
    Build an attachment disposition for a client-supplied filename.

    Legacy clients get a plain ASCII name made of a fixed base plus the
    original extension. Modern clients read filename*, which carries the
    full UTF-8 name percent-encoded. Query-style encoding turns spaces into
    "+", which is not valid there, so they are rewritten to %20.
    """
    ext = file_extension(filename)
    if not _SAFE_EXTENSION.fullmatch(ext):
        ext = ""

    escaped = quote_plus(filename, safe="").replace("+", "%20")
    return f"attachment; filename=\"{FALLBACK_BASENAME}{ext}\"; filename*=UTF-8''{escaped}"
