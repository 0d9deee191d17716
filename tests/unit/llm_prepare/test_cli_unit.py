from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from llm_prepare import __version__, cli
from llm_prepare.exceptions import InvalidParameterError
from llm_prepare.ignore import DEFAULT_IGNORE_PATTERNS
from llm_prepare.truncation import TruncationStrategy

if TYPE_CHECKING:
    from pytest_mock import MockerFixture


@pytest.mark.unit
def test_parse_args_parses_modes_and_limits() -> None:
    max_tokens = 100
    settings = cli.parse_args(
        [
            "--path",
            "proj",
            "-f",
            "*.py",
            "-m",
            str(max_tokens),
            "-t",
            "middle",
            "--chunk-size",
            "5",
            "--custom-ignore-filename",
            "a.ignore",
            "--custom-ignore-filename",
            "b.ignore",
        ],
    )

    assert settings.path == Path("proj")
    assert settings.file_pattern == "*.py"
    assert settings.max_tokens == max_tokens
    assert settings.truncate is TruncationStrategy.MIDDLE
    assert settings.chunk_size == 5
    assert settings.custom_ignore_filename == [Path("a.ignore"), Path("b.ignore")]


@pytest.mark.unit
def test_parse_args_version_flag(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc_info:
        cli.parse_args(["--version"])

    assert exc_info.value.code == 0
    assert __version__ in capsys.readouterr().out


@pytest.mark.unit
@pytest.mark.parametrize(
    "argv",
    [
        ["-m", "abc"],
        ["-t", "sideways"],
        ["-p", "a", "-i", "b"],
    ],
)
def test_parse_args_rejects_malformed_command_lines(argv: list[str]) -> None:
    with pytest.raises(SystemExit) as exc_info:
        cli.parse_args(argv)

    assert exc_info.value.code == 2


@pytest.mark.unit
def test_config_values_are_overridden_by_command_line(tmp_path: Path) -> None:
    config = tmp_path / "llm.yaml"
    config.write_text(
        "args:\n  max-tokens: 50\n  truncate: start\n  file_pattern: '*.md'\ninclude:\n  - docs\n  - src\n",
        encoding="utf-8",
    )

    settings = cli.parse_args(["--config", str(config), "-t", "end"])

    assert settings.max_tokens == 50
    assert settings.truncate is TruncationStrategy.END
    assert settings.file_pattern == "*.md"
    assert settings.include == [Path("docs"), Path("src")]
    assert settings.directory_mode is True


@pytest.mark.unit
def test_empty_config_is_accepted(tmp_path: Path) -> None:
    config = tmp_path / "empty.yaml"
    config.write_text("", encoding="utf-8")

    assert cli.load_config(config) == ({}, [])


@pytest.mark.unit
@pytest.mark.parametrize("content", ["args: [unclosed", "- just\n- a list\n", "args: [1, 2]\n"])
def test_invalid_config_is_rejected(tmp_path: Path, content: str) -> None:
    config = tmp_path / "bad.yaml"
    config.write_text(content, encoding="utf-8")

    with pytest.raises(InvalidParameterError) as exc_info:
        cli.load_config(config)

    assert exc_info.value.parameter == "config"


@pytest.mark.unit
def test_main_show_default_ignore(capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = cli.main(["--show-default-ignore"])

    assert exit_code == 0
    assert capsys.readouterr().out.splitlines() == list(DEFAULT_IGNORE_PATTERNS)


@pytest.mark.unit
def test_main_reports_missing_path(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = cli.main(["--path", str(tmp_path / "missing")])

    assert exit_code == 1
    assert "error: invalid path" in capsys.readouterr().err


@pytest.mark.unit
def test_main_reports_bad_config_value(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    config = tmp_path / "llm.yaml"
    config.write_text("args:\n  truncate: sideways\n", encoding="utf-8")

    exit_code = cli.main(["--config", str(config), "--path", str(tmp_path)])

    assert exit_code == 1
    assert "truncate" in capsys.readouterr().err


@pytest.mark.unit
def test_main_reports_validation_error(capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = cli.main(["-m", "0", "-i", "-"])

    assert exit_code == 1
    assert "error: invalid value for max_tokens" in capsys.readouterr().err


@pytest.mark.unit
def test_main_folder_level_without_output(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = cli.main(["--path", str(tmp_path), "--folder-output-level", "1"])

    assert exit_code == 1
    assert "requires --output" in capsys.readouterr().err


@pytest.mark.unit
def test_main_missing_config_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = cli.main(["--config", str(tmp_path / "nope.yaml")])

    assert exit_code == 1
    assert "cannot read config" in capsys.readouterr().err


@pytest.mark.unit
def test_main_sets_up_debug_logging(tmp_path: Path, mocker: MockerFixture) -> None:
    source = tmp_path / "in.txt"
    source.write_text("hello", encoding="utf-8")
    setup = mocker.patch.object(cli, "setup_logging")

    exit_code = cli.main(["-i", str(source), "--debug", "-o", str(tmp_path / "out.txt")])

    assert exit_code == 0
    assert setup.call_args.kwargs["force"] is True
    assert (tmp_path / "out.txt").read_text(encoding="utf-8") == "hello"


@pytest.mark.unit
def test_ignore_options_adds_extra_patterns(tmp_path: Path) -> None:
    settings = cli.parse_args(["-p", str(tmp_path), "--custom-ignore-string", "*.log"])

    options = cli.ignore_options(settings, tmp_path, ["ctx.txt"])

    assert options.custom_ignore_string == "*.log,ctx.txt"
    assert options.root == tmp_path


@pytest.mark.unit
def test_main_passes_log_file_path(tmp_path: Path, mocker: MockerFixture) -> None:
    source = tmp_path / "in.txt"
    source.write_text("hello", encoding="utf-8")
    setup = mocker.patch.object(cli, "setup_logging")
    log_file = tmp_path / "run.log"

    exit_code = cli.main(["-i", str(source), "--log-file", str(log_file), "-o", str(tmp_path / "out.txt")])

    assert exit_code == 0
    assert setup.call_args.args[0] == log_file
