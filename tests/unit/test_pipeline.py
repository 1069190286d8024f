"""
Tests for the pipeline coordinator.

The watcher is polled by hand; the fake settings use a long polling interval
so the timer never races the test.
"""

import threading
from unittest.mock import Mock

import pytest

from core.backend_interface import ConversionDispatcher
from core.conversion_config import BackendConfig, BackendKind, ConversionResult
from core.conversion_state import PipelineState
from core.converters import ClaudeConverter, Pix2TexConverter, SimpleTexConverter
from core.errors import ConverterError, ErrorKind
from core.pipeline import PipelineCoordinator, backend_config_for

from fakes import FakeClipboard, FakeSettings, RecordingPresenter, StubConverter, make_image


@pytest.fixture
def events():
    return []


@pytest.fixture
def clipboard(events):
    return FakeClipboard(events)


@pytest.fixture
def presenter(events):
    return RecordingPresenter(events)


@pytest.fixture
def settings():
    return FakeSettings()


@pytest.fixture
def make_coordinator(qtbot, settings, clipboard, presenter):
    created = []

    def factory(converter, resume_delay=0.01):
        coordinator = PipelineCoordinator(
            settings,
            clipboard,
            presenter,
            ConversionDispatcher(converter=converter),
            resume_delay=resume_delay,
        )
        created.append(coordinator)
        coordinator.start()
        return coordinator

    yield factory

    for coordinator in created:
        coordinator.shutdown()


def copy_image_and_settle(qtbot, coordinator, clipboard):
    """Put an image on the clipboard and wait until the pipeline is watching again."""
    with qtbot.waitSignal(coordinator.conversionSettled, timeout=5000) as blocker:
        clipboard.put_image(make_image())
        coordinator.watcher.poll()
    qtbot.waitUntil(lambda: coordinator.state is PipelineState.IDLE, timeout=5000)
    return blocker.args[0]


class TestBackendConfigFor:
    def test_reads_selected_credential(self):
        settings = FakeSettings(backend=BackendKind.SIMPLETEX, credentials={BackendKind.SIMPLETEX: "tok"})
        assert backend_config_for(settings) == BackendConfig(BackendKind.SIMPLETEX, "tok")


class TestLifecycle:
    def test_start_respects_enabled(self, qtbot, settings, make_coordinator):
        coordinator = make_coordinator(StubConverter())
        assert coordinator.state is PipelineState.IDLE
        assert coordinator.watcher.is_running()

        settings.enabled = False
        disabled = make_coordinator(StubConverter())
        assert not disabled.watcher.is_running()

    def test_set_enabled_while_idle(self, qtbot, make_coordinator):
        coordinator = make_coordinator(StubConverter())

        coordinator.set_enabled(False)
        assert not coordinator.watcher.is_running()

        coordinator.set_enabled(True)
        assert coordinator.watcher.is_running()

    def test_default_dispatcher_built_from_settings(self, qtbot, settings, clipboard, presenter):
        settings.credentials[BackendKind.CLAUDE] = "sk-test"
        coordinator = PipelineCoordinator(settings, clipboard, presenter)
        assert coordinator.dispatcher.backend_config == BackendConfig(BackendKind.CLAUDE, "sk-test")
        assert isinstance(coordinator.dispatcher.converter, ClaudeConverter)

    def test_apply_settings_swaps_backend_and_interval(self, qtbot, settings, clipboard, presenter):
        coordinator = PipelineCoordinator(settings, clipboard, presenter)

        settings.selected_backend = BackendKind.SIMPLETEX
        settings.credentials[BackendKind.SIMPLETEX] = "tok"
        settings.polling_interval = 1.5
        coordinator.apply_settings()

        assert coordinator.watcher.interval == 1.5
        assert coordinator.dispatcher.backend_config.backend is BackendKind.SIMPLETEX
        assert isinstance(coordinator.dispatcher.converter, SimpleTexConverter)

    def test_apply_settings_keeps_unchanged_converter(self, qtbot, settings, clipboard, presenter):
        coordinator = PipelineCoordinator(settings, clipboard, presenter)
        converter = coordinator.dispatcher.converter
        coordinator.apply_settings()
        assert coordinator.dispatcher.converter is converter

    def test_resume_delay_read_from_settings(self, qtbot, clipboard, presenter):
        coordinator = PipelineCoordinator(FakeSettings(resume_delay=0.25), clipboard, presenter)
        assert coordinator.resume_delay == 0.25

    def test_apply_settings_reapplies_resume_delay(self, qtbot, settings, clipboard, presenter):
        coordinator = PipelineCoordinator(settings, clipboard, presenter)

        settings.resume_delay = 2.0
        coordinator.apply_settings()

        assert coordinator.resume_delay == 2.0

    def test_resume_delay(self, qtbot, make_coordinator):
        coordinator = make_coordinator(StubConverter(), resume_delay=0.5)
        assert coordinator.resume_delay == 0.5
        coordinator.set_resume_delay(-1)
        assert coordinator.resume_delay == 0.0


class TestConversionFlow:
    def test_success_writes_then_notifies_then_resumes(self, qtbot, clipboard, presenter, events, make_coordinator):
        coordinator = make_coordinator(StubConverter("  \\int_0^1 x\\,dx "))
        states = []
        coordinator.stateChanged.connect(states.append)

        result = copy_image_and_settle(qtbot, coordinator, clipboard)

        assert result.success
        assert clipboard.text == "\\int_0^1 x\\,dx"
        assert events == [("write", "\\int_0^1 x\\,dx"), ("success", "\\int_0^1 x\\,dx")]
        assert states == [PipelineState.CONVERTING, PipelineState.SUSPENDED, PipelineState.IDLE]
        assert coordinator.watcher.is_running()

    def test_own_write_back_is_not_converted(self, qtbot, clipboard, make_coordinator):
        converter = StubConverter()
        coordinator = make_coordinator(converter)
        copy_image_and_settle(qtbot, coordinator, clipboard)

        with qtbot.assertNotEmitted(coordinator.stateChanged):
            coordinator.watcher.poll()
        assert converter.calls == 1

    def test_text_changes_are_ignored(self, qtbot, clipboard, make_coordinator):
        converter = StubConverter()
        coordinator = make_coordinator(converter)

        clipboard.put_text("plain text")
        with qtbot.assertNotEmitted(coordinator.stateChanged):
            coordinator.watcher.poll()
        assert converter.calls == 0

    def test_image_while_busy_is_dropped(self, qtbot, clipboard, make_coordinator):
        gate = threading.Event()
        converter = StubConverter("a", gate=gate)
        coordinator = make_coordinator(converter)

        clipboard.put_image(make_image())
        coordinator.watcher.poll()
        assert coordinator.state is PipelineState.CONVERTING
        assert converter.started.wait(5)

        clipboard.put_image(make_image(color="black"))
        with qtbot.waitSignal(coordinator.imageDropped, timeout=1000) as dropped:
            coordinator.watcher.poll()
        assert dropped.args == [clipboard.count]
        assert coordinator.state is PipelineState.CONVERTING

        with qtbot.waitSignal(coordinator.conversionSettled, timeout=5000):
            gate.set()
        qtbot.waitUntil(lambda: coordinator.state is PipelineState.IDLE, timeout=5000)

        assert converter.calls == 1
        assert clipboard.text == "a"

    def test_disabled_during_conversion_does_not_resume(self, qtbot, settings, clipboard, make_coordinator):
        gate = threading.Event()
        coordinator = make_coordinator(StubConverter("b", gate=gate))

        clipboard.put_image(make_image())
        coordinator.watcher.poll()

        settings.enabled = False
        coordinator.set_enabled(False)
        assert coordinator.state is PipelineState.CONVERTING

        with qtbot.waitSignal(coordinator.conversionSettled, timeout=5000):
            gate.set()
        qtbot.waitUntil(lambda: coordinator.state is PipelineState.IDLE, timeout=5000)

        assert clipboard.text == "b"
        assert not coordinator.watcher.is_running()

    def test_watcher_suspended_until_resume_delay(self, qtbot, clipboard, make_coordinator):
        coordinator = make_coordinator(StubConverter(), resume_delay=0.3)

        with qtbot.waitSignal(coordinator.conversionSettled, timeout=5000):
            clipboard.put_image(make_image())
            coordinator.watcher.poll()

        assert coordinator.state is PipelineState.SUSPENDED
        assert not coordinator.watcher.is_running()

        qtbot.waitUntil(lambda: coordinator.state is PipelineState.IDLE, timeout=5000)
        assert coordinator.watcher.is_running()

    def test_stale_result_is_ignored(self, qtbot, clipboard, presenter, make_coordinator):
        coordinator = make_coordinator(StubConverter())

        with qtbot.assertNotEmitted(coordinator.conversionSettled):
            coordinator._on_conversion_settled(ConversionResult(99, formula="stale"))

        assert clipboard.text == ""
        assert presenter.events == []

    def test_presenter_exception_does_not_stall_pipeline(self, qtbot, settings, clipboard):
        presenter = Mock()
        presenter.notify_success.side_effect = RuntimeError("tray gone")
        coordinator = PipelineCoordinator(
            settings, clipboard, presenter, ConversionDispatcher(converter=StubConverter("c")), resume_delay=0.01
        )
        coordinator.start()

        copy_image_and_settle(qtbot, coordinator, clipboard)

        assert clipboard.text == "c"
        assert coordinator.watcher.is_running()
        coordinator.shutdown()


class TestFailureRouting:
    def test_no_formula_is_notified(self, qtbot, clipboard, presenter, make_coordinator):
        coordinator = make_coordinator(StubConverter(error=ConverterError(ErrorKind.NO_FORMULA_DETECTED)))
        result = copy_image_and_settle(qtbot, coordinator, clipboard)

        assert not result.success
        assert presenter.calls("failure") == [ErrorKind.NO_FORMULA_DETECTED]
        assert clipboard.text == ""
        assert coordinator.watcher.is_running()

    def test_clipboard_write_failure_is_notified(self, qtbot, clipboard, presenter, make_coordinator):
        coordinator = make_coordinator(StubConverter("x^2"))
        clipboard.write_text = Mock(side_effect=RuntimeError("clipboard locked"))

        result = copy_image_and_settle(qtbot, coordinator, clipboard)

        assert result.success
        assert presenter.calls("failure") == [ErrorKind.CLIPBOARD_WRITE_FAILED]
        assert presenter.calls("success") == []
        qtbot.waitUntil(lambda: coordinator.state is PipelineState.IDLE, timeout=1000)

    def test_missing_credentials_prompt_setup(self, qtbot, clipboard, presenter, make_coordinator):
        coordinator = make_coordinator(ClaudeConverter(None))
        copy_image_and_settle(qtbot, coordinator, clipboard)
        assert presenter.calls("setup") == [ErrorKind.CREDENTIALS_MISSING]

    def test_runtime_missing_prompts_install(self, qtbot, clipboard, presenter, make_coordinator):
        coordinator = make_coordinator(Pix2TexConverter(search_paths=[]))
        result = copy_image_and_settle(qtbot, coordinator, clipboard)

        assert result.error.kind is ErrorKind.RUNTIME_MISSING
        assert presenter.events == [("runtime_missing", None)]
        assert clipboard.text == ""
        assert coordinator.watcher.is_running()

    def test_rate_limited_reply(self, qtbot, clipboard, presenter, make_coordinator):
        session = Mock()
        session.post.return_value = Mock(status_code=429, text="")
        coordinator = make_coordinator(ClaudeConverter("sk-test", session=session))

        copy_image_and_settle(qtbot, coordinator, clipboard)

        assert presenter.calls("failure") == [ErrorKind.RATE_LIMITED]
        assert clipboard.text == ""

    def test_simpletex_nested_latex(self, qtbot, clipboard, presenter, make_coordinator):
        session = Mock()
        session.post.return_value = Mock(status_code=200, text="", json=Mock(return_value={"res": {"latex": "x^2"}}))
        coordinator = make_coordinator(SimpleTexConverter("tok", session=session))

        copy_image_and_settle(qtbot, coordinator, clipboard)

        assert clipboard.text == "x^2"
        assert presenter.calls("success") == ["x^2"]
