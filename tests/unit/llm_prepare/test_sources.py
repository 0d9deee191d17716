from __future__ import annotations

import io
import urllib.error
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from llm_prepare.exceptions import InvalidPathError, SourceReadError
from llm_prepare.sources import is_url, read_source

if TYPE_CHECKING:
    from pytest_mock import MockerFixture


@pytest.mark.unit
def test_read_source_from_file(tmp_path: Path) -> None:
    source = tmp_path / "in.txt"
    source.write_text("file text", encoding="utf-8")

    assert read_source(str(source)) == "file text"


@pytest.mark.unit
def test_read_source_missing_file(tmp_path: Path) -> None:
    with pytest.raises(InvalidPathError):
        read_source(str(tmp_path / "missing.txt"))


@pytest.mark.unit
@pytest.mark.parametrize("ref", [None, "-"])
def test_read_source_from_stdin(ref: str | None, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("sys.stdin", io.StringIO("piped text"))

    assert read_source(ref) == "piped text"


@pytest.mark.unit
def test_read_source_from_url(mocker: MockerFixture) -> None:
    response = mocker.MagicMock()
    response.__enter__.return_value = response
    response.read.return_value = "café".encode("latin-1")
    response.headers.get_content_charset.return_value = "latin-1"
    urlopen = mocker.patch("llm_prepare.sources.urllib.request.urlopen", return_value=response)

    assert read_source("https://example.com/page") == "café"
    assert urlopen.call_args.kwargs["timeout"] == 30.0


@pytest.mark.unit
def test_url_failure_is_a_source_error(mocker: MockerFixture) -> None:
    mocker.patch(
        "llm_prepare.sources.urllib.request.urlopen",
        side_effect=urllib.error.URLError("down"),
    )

    with pytest.raises(SourceReadError) as exc_info:
        read_source("http://example.com")

    assert exc_info.value.source == "http://example.com"


@pytest.mark.unit
def test_is_url() -> None:
    assert is_url("https://x.org")
    assert not is_url("ftp://x.org")
    assert not is_url("./notes.txt")
