from __future__ import annotations

import sys
import urllib.error
import urllib.request
from pathlib import Path

from llm_prepare import __version__
from llm_prepare.exceptions import InvalidPathError, SourceReadError
from llm_prepare.logging import logger

STDIN_REF = "-"
DEFAULT_TIMEOUT = 30.0


def is_url(ref: str) -> bool:
    return ref.startswith(("http://", "https://"))


def fetch_url(url: str, *, timeout: float = DEFAULT_TIMEOUT) -> str:
    """Download a URL as text.

    Args:
        url (str): http(s) URL
        timeout (float): socket timeout in seconds

    Raises:
        SourceReadError: on network or HTTP errors

    Returns:
        str: the body, decoded with the charset announced by the server (UTF-8 otherwise)
    """
    request = urllib.request.Request(url, headers={"User-Agent": f"llm-prepare/{__version__}"})  # noqa: S310
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:  # noqa: S310
            charset = response.headers.get_content_charset() or "utf-8"
            body = response.read()
    except (urllib.error.URLError, OSError, ValueError) as e:
        raise SourceReadError(source=url, message=f"cannot fetch url ({e})") from e
    logger.debug("url_fetched", url=url, bytes=len(body))
    return body.decode(charset, errors="replace")


def read_source(ref: str | None, *, timeout: float = DEFAULT_TIMEOUT) -> str:
    """Read text from stdin, a URL or a file.

    Args:
        ref (str | None): None or "-" for stdin, an http(s) URL, or a file path
        timeout (float): network timeout for URLs

    Raises:
        InvalidPathError: when a file path does not exist
        SourceReadError: when the source cannot be read

    Returns:
        str: the text
    """
    if ref is None or ref == STDIN_REF:
        try:
            return sys.stdin.read()
        except (OSError, UnicodeDecodeError) as e:
            raise SourceReadError(source="stdin") from e
    if is_url(ref):
        return fetch_url(ref, timeout=timeout)
    path = Path(ref)
    if not path.is_file():
        raise InvalidPathError(path=path, message="invalid input")
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise SourceReadError(source=ref) from e
