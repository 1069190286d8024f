"""
Tests for the local pix2tex backend.
"""

import os
import subprocess
from unittest.mock import patch

import pytest

from core.converters.pix2tex import INSTALL_COMMAND, RECOGNITION_SCRIPT, Pix2TexConverter, find_python
from core.errors import BackendError, ConverterError, ErrorKind

from fakes import make_image


@pytest.fixture
def python_exe(tmp_path):
    """An executable file standing in for a Python interpreter."""
    path = tmp_path / "python3"
    path.write_text("#!/bin/sh\n")
    path.chmod(0o755)
    return str(path)


def completed(returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


class TestFindPython:
    def test_first_executable_wins(self, tmp_path, python_exe):
        missing = str(tmp_path / "nope")
        assert find_python([missing, python_exe]) == python_exe

    def test_non_executable_is_skipped(self, tmp_path):
        plain = tmp_path / "python3"
        plain.write_text("")
        plain.chmod(0o644)
        assert find_python([str(plain)]) is None

    def test_empty_candidates(self):
        assert find_python([]) is None


class TestPix2TexConverter:
    def test_runtime_missing_without_interpreter(self):
        converter = Pix2TexConverter(search_paths=[])
        assert converter.python_path is None

        with patch("core.converters.pix2tex.subprocess.run") as mock_run:
            with pytest.raises(ConverterError) as exc_info:
                converter.convert(make_image())

        assert exc_info.value.kind is ErrorKind.RUNTIME_MISSING
        mock_run.assert_not_called()

    def test_configured_path_is_preferred(self, tmp_path, python_exe):
        other = tmp_path / "other-python"
        other.write_text("")
        other.chmod(0o755)

        converter = Pix2TexConverter(python_path=python_exe, search_paths=[str(other)])
        assert converter.python_path == python_exe

    def test_invalid_configured_path_falls_back_to_search(self, tmp_path, python_exe):
        converter = Pix2TexConverter(python_path=str(tmp_path / "missing"), search_paths=[python_exe])
        assert converter.python_path == python_exe

    def test_successful_recognition(self, python_exe):
        converter = Pix2TexConverter(search_paths=[python_exe])
        seen = {}

        def fake_run(cmd, **kwargs):
            seen["cmd"] = cmd
            seen["kwargs"] = kwargs
            seen["image_existed"] = os.path.exists(cmd[3])
            return completed(stdout="  E = mc^2\n")

        with patch("core.converters.pix2tex.subprocess.run", side_effect=fake_run):
            assert converter.convert(make_image()) == "E = mc^2"

        cmd = seen["cmd"]
        assert cmd[0] == python_exe
        assert cmd[1] == "-c"
        assert cmd[2] == RECOGNITION_SCRIPT
        assert cmd[3].endswith(".png")
        assert seen["image_existed"]
        # Temporary image is removed afterwards
        assert not os.path.exists(cmd[3])
        assert seen["kwargs"]["timeout"] == converter.timeout

    def test_temp_file_removed_on_failure(self, python_exe):
        converter = Pix2TexConverter(search_paths=[python_exe])
        paths = []

        def fake_run(cmd, **kwargs):
            paths.append(cmd[3])
            return completed(returncode=1, stderr="RuntimeError: boom\n")

        with patch("core.converters.pix2tex.subprocess.run", side_effect=fake_run):
            with pytest.raises(BackendError):
                converter.convert(make_image())

        assert paths and not os.path.exists(paths[0])

    def test_missing_module_is_dependency_missing(self, python_exe):
        converter = Pix2TexConverter(search_paths=[python_exe])
        stderr = "Traceback (most recent call last):\nModuleNotFoundError: No module named 'pix2tex'\n"

        with patch("core.converters.pix2tex.subprocess.run", return_value=completed(returncode=1, stderr=stderr)):
            with pytest.raises(ConverterError) as exc_info:
                converter.convert(make_image())

        assert exc_info.value.kind is ErrorKind.DEPENDENCY_MISSING
        assert exc_info.value.requires_setup

    def test_other_failures_are_backend_errors(self, python_exe):
        converter = Pix2TexConverter(search_paths=[python_exe])
        stderr = "Traceback (most recent call last):\n  ...\nRuntimeError: CUDA out of memory\n"

        with patch("core.converters.pix2tex.subprocess.run", return_value=completed(returncode=2, stderr=stderr)):
            with pytest.raises(BackendError) as exc_info:
                converter.convert(make_image())

        assert exc_info.value.code == 2
        assert exc_info.value.message == "RuntimeError: CUDA out of memory"

    def test_timeout(self, python_exe):
        converter = Pix2TexConverter(search_paths=[python_exe], timeout=1.0)
        timeout = subprocess.TimeoutExpired(cmd="python3", timeout=1.0)

        with patch("core.converters.pix2tex.subprocess.run", side_effect=timeout):
            with pytest.raises(ConverterError) as exc_info:
                converter.convert(make_image())

        assert exc_info.value.kind is ErrorKind.TIMEOUT

    def test_launch_failure(self, python_exe):
        converter = Pix2TexConverter(search_paths=[python_exe])

        with patch("core.converters.pix2tex.subprocess.run", side_effect=PermissionError("denied")):
            with pytest.raises(BackendError) as exc_info:
                converter.convert(make_image())

        assert exc_info.value.code == -1

    def test_blank_output_is_no_formula(self, python_exe):
        converter = Pix2TexConverter(search_paths=[python_exe])

        with patch("core.converters.pix2tex.subprocess.run", return_value=completed(stdout="\n  \n")):
            with pytest.raises(ConverterError) as exc_info:
                converter.convert(make_image())

        assert exc_info.value.kind is ErrorKind.NO_FORMULA_DETECTED

    def test_install_command(self):
        assert INSTALL_COMMAND == "pip3 install pix2tex pillow"
