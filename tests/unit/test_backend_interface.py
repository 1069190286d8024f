"""
Tests for converter construction and the conversion dispatcher.
"""

import threading

import pytest

from core.backend_interface import ConversionDispatcher, create_converter
from core.conversion_config import BackendConfig, BackendKind
from core.converters import ClaudeConverter, Pix2TexConverter, SimpleTexConverter
from core.errors import ConverterError, ErrorKind

from fakes import StubConverter, make_image


class TestCreateConverter:
    def test_claude(self):
        assert isinstance(create_converter(BackendConfig(BackendKind.CLAUDE, "sk")), ClaudeConverter)

    def test_simpletex(self):
        assert isinstance(create_converter(BackendConfig(BackendKind.SIMPLETEX, "tok")), SimpleTexConverter)

    def test_pix2tex_uses_credential_as_python_path(self, tmp_path):
        python = tmp_path / "python3"
        python.write_text("")
        python.chmod(0o755)

        converter = create_converter(BackendConfig(BackendKind.PIX2TEX, str(python)))
        assert isinstance(converter, Pix2TexConverter)
        assert converter.python_path == str(python)

    def test_missing_credentials_surface_on_convert(self):
        converter = create_converter(BackendConfig(BackendKind.CLAUDE))
        with pytest.raises(ConverterError) as exc_info:
            converter.convert(make_image())
        assert exc_info.value.kind is ErrorKind.CREDENTIALS_MISSING


class TestConversionDispatcher:
    def test_no_converter(self):
        dispatcher = ConversionDispatcher()
        assert dispatcher.converter is None
        with pytest.raises(RuntimeError):
            dispatcher.convert(make_image())

    def test_set_backend_records_config(self):
        config = BackendConfig(BackendKind.SIMPLETEX, "tok")
        dispatcher = ConversionDispatcher(config)
        assert dispatcher.backend_config == config
        assert isinstance(dispatcher.converter, SimpleTexConverter)

    def test_set_converter_clears_config(self):
        dispatcher = ConversionDispatcher(BackendConfig(BackendKind.CLAUDE, "sk"))
        stub = StubConverter()
        dispatcher.set_converter(stub)
        assert dispatcher.backend_config is None
        assert dispatcher.converter is stub

    def test_errors_propagate_unchanged(self):
        error = ConverterError(ErrorKind.RATE_LIMITED)
        dispatcher = ConversionDispatcher(converter=StubConverter(error=error))
        with pytest.raises(ConverterError) as exc_info:
            dispatcher.convert(make_image())
        assert exc_info.value is error

    def test_swap_affects_only_later_calls(self):
        gate = threading.Event()
        first = StubConverter("first", gate=gate)
        second = StubConverter("second")
        dispatcher = ConversionDispatcher(converter=first)

        results = []
        thread = threading.Thread(target=lambda: results.append(dispatcher.convert(make_image())))
        thread.start()
        assert first.started.wait(5)

        # Swap while the first conversion is in flight
        dispatcher.set_converter(second)
        gate.set()
        thread.join(5)

        assert results == ["first"]
        assert dispatcher.convert(make_image()) == "second"
        assert first.calls == 1
        assert second.calls == 1
