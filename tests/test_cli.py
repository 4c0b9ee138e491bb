"""Tests for the command-line interface."""

import pytest
from click.testing import CliRunner

from machcopy.cli import main


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def binary_path(tmp_path, sample_builder):
    path = tmp_path / "sample"
    path.write_bytes(sample_builder.build())
    return path


class TestExtractCommand:
    """Tests for `machcopy extract`."""

    def test_extract_segment(self, runner, binary_path, tmp_path):
        out = tmp_path / "text.bin"

        result = runner.invoke(main, ["extract", str(binary_path), str(out), "-s", "__TEXT"])

        assert result.exit_code == 0, result.output
        assert "0x1000" in result.output
        data = out.read_bytes()
        assert data[:0x10] == bytes(range(0x10))
        assert data[0x20:0x28] == b"hello\x00\x00\x00"

    def test_extract_repeated_sections(self, runner, binary_path, tmp_path):
        out = tmp_path / "mixed.bin"

        result = runner.invoke(
            main,
            ["extract", str(binary_path), str(out), "-j", "__text", "--section", "__data"],
        )

        assert result.exit_code == 0, result.output
        data = out.read_bytes()
        assert len(data) == 0x1004
        assert data[0x1000:] == b"\xaa\xbb\xcc\xdd"

    def test_extract_requires_names(self, runner, binary_path, tmp_path):
        out = tmp_path / "none.bin"

        result = runner.invoke(main, ["extract", str(binary_path), str(out)])

        assert result.exit_code == 1
        assert "no selection" in result.output
        assert not out.exists()

    def test_extract_invalid_magic(self, runner, tmp_path):
        bad = tmp_path / "bad"
        bad.write_bytes(b"\x7fELF" + bytes(60))

        result = runner.invoke(main, ["extract", str(bad), str(tmp_path / "o"), "-s", "__TEXT"])

        assert result.exit_code == 1
        assert "invalid magic" in result.output
        assert "7f454c46" in result.output

    def test_verbose_logs_commands(self, runner, binary_path, tmp_path):
        result = runner.invoke(
            main, ["-v", "extract", str(binary_path), str(tmp_path / "o"), "-j", "__text"]
        )

        assert result.exit_code == 0, result.output
        assert "LC_SEGMENT_64" in result.output


class TestInfoCommand:
    """Tests for `machcopy info`."""

    def test_info_lists_sections(self, runner, binary_path):
        result = runner.invoke(main, ["info", str(binary_path)])

        assert result.exit_code == 0, result.output
        assert "64-bit" in result.output
        assert "__PAGEZERO" in result.output
        assert "__cstring" in result.output
        assert "zerofill" in result.output
        assert "LC_UUID" in result.output

    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])

        assert result.exit_code == 0
        assert "0.1.0" in result.output
