import glob
import io
import os
import signal
import sys
import tempfile
import threading
import time
import unittest
from unittest.mock import Mock, patch

from core.contracts import CaptureInitError
from core.runtime import DISABLE_ENV, ServiceBuildConfig, build_service
from trigger import FaultListener, create_trigger


class _BrokenPipeStream(io.StringIO):
    def write(self, _text):
        raise BrokenPipeError(32, "Broken pipe")


def _make_error(message="uncaught"):
    try:
        raise ValueError(message)
    except ValueError as e:
        return e


class _ServiceCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.tmp = self._tmp.name

        self._saved_hooks = (sys.excepthook, threading.excepthook)
        self.addCleanup(self._restore_hooks)

        self.abort = Mock()
        self.heap_writer = Mock()
        self.service = build_service(
            ServiceBuildConfig(
                directory=self.tmp, timeout_ms=500, heap_signal=False, trace_heap=False
            ),
            heap_writer=self.heap_writer,
            abort=self.abort,
            stream=io.StringIO(),
        )
        self.addCleanup(self.service.close)

    def _restore_hooks(self):
        sys.excepthook, threading.excepthook = self._saved_hooks

    def _records(self):
        return glob.glob(os.path.join(self.tmp, "exceptions", "*.json"))


class TestFaultListener(_ServiceCase):
    def test_listen_installs_and_close_restores_hooks(self):
        before = (sys.excepthook, threading.excepthook)
        listener = FaultListener(self.service).listen()
        self.assertNotEqual(sys.excepthook, before[0])
        self.assertNotEqual(threading.excepthook, before[1])
        listener.close()
        self.assertEqual((sys.excepthook, threading.excepthook), before)

    def test_first_fault_captured_later_faults_forwarded(self):
        prev = Mock()
        sys.excepthook = prev
        with FaultListener(self.service):
            first = _make_error("first")
            sys.excepthook(type(first), first, first.__traceback__)
            self.abort.assert_called_once_with()
            prev.assert_not_called()
            self.assertEqual(len(self._records()), 1)

            second = _make_error("second")
            sys.excepthook(type(second), second, second.__traceback__)
            prev.assert_called_once_with(type(second), second, second.__traceback__)
            self.abort.assert_called_once_with()
            self.assertEqual(len(self._records()), 1)

    def test_thread_fault_is_captured(self):
        with FaultListener(self.service):
            worker = threading.Thread(target=lambda: 1 / 0)
            worker.start()
            worker.join(5.0)
        self.abort.assert_called_once_with()
        records = self._records()
        self.assertEqual(len(records), 1)
        with open(records[0], "r", encoding="utf-8") as f:
            self.assertIn("ZeroDivisionError", f.read())

    def test_thread_fault_with_broken_console_still_aborts(self):
        self.service.sink._stream = _BrokenPipeStream()
        with FaultListener(self.service):
            worker = threading.Thread(target=lambda: 1 / 0)
            worker.start()
            worker.join(5.0)
        self.abort.assert_called_once_with()
        self.assertEqual(len(self._records()), 1)

    def test_keyboard_interrupt_passes_through(self):
        prev = Mock()
        sys.excepthook = prev
        with FaultListener(self.service):
            exc = KeyboardInterrupt()
            sys.excepthook(KeyboardInterrupt, exc, None)
        prev.assert_called_once_with(KeyboardInterrupt, exc, None)
        self.abort.assert_not_called()
        self.assertEqual(self._records(), [])

    def test_env_toggle_disables_capture(self):
        before = sys.excepthook
        with patch.dict(os.environ, {DISABLE_ENV: "1"}):
            listener = FaultListener(self.service).listen()
        self.assertIs(sys.excepthook, before)
        self.assertEqual(listener.triggers, [])

    def test_disabled_by_config(self):
        self.service.config.enabled = False
        listener = FaultListener(self.service).listen()
        self.assertEqual(listener.triggers, [])

    def test_capture_failure_falls_back_to_previous_hook(self):
        prev = Mock()
        sys.excepthook = prev
        exc = _make_error()
        with patch.object(
            self.service, "capture", side_effect=CaptureInitError("no dir")
        ), FaultListener(self.service):
            with self.assertLogs("crash_capture.trigger.uncaught", level="ERROR"):
                sys.excepthook(type(exc), exc, exc.__traceback__)
        prev.assert_called_once_with(type(exc), exc, exc.__traceback__)
        self.abort.assert_not_called()

    def test_custom_completion_replaces_termination(self):
        on_complete = Mock()
        with FaultListener(self.service, on_complete=on_complete):
            exc = _make_error()
            sys.excepthook(type(exc), exc, exc.__traceback__)
        on_complete.assert_called_once_with(None)
        self.abort.assert_not_called()
        self.heap_writer.assert_called_once()


@unittest.skipUnless(hasattr(signal, "SIGUSR1"), "SIGUSR1 not available")
class TestHeapSignalTrigger(_ServiceCase):
    def test_signal_writes_heap_dump_only(self):
        trigger = create_trigger("heap_signal", self.service)
        trigger.start()
        self.addCleanup(trigger.stop)
        self.assertTrue(trigger.installed)

        os.kill(os.getpid(), signal.SIGUSR1)
        deadline = time.monotonic() + 2.0
        while not self.heap_writer.called and time.monotonic() < deadline:
            time.sleep(0.01)

        self.heap_writer.assert_called_once()
        path = self.heap_writer.call_args[0][0]
        self.assertTrue(path.endswith(".heapsnapshot"))
        self.assertEqual(os.path.dirname(path), os.path.join(self.tmp, "exceptions"))
        self.abort.assert_not_called()
        self.assertEqual(self._records(), [])

    def test_signal_while_allocator_busy_does_not_block(self):
        trigger = create_trigger("heap_signal", self.service)
        trigger.start()
        self.addCleanup(trigger.stop)

        with self.service.allocator._lock:
            os.kill(os.getpid(), signal.SIGUSR1)
            time.sleep(0.1)
            self.heap_writer.assert_not_called()

        deadline = time.monotonic() + 2.0
        while not self.heap_writer.called and time.monotonic() < deadline:
            time.sleep(0.01)
        self.heap_writer.assert_called_once()

    def test_stop_restores_previous_handler(self):
        before = signal.getsignal(signal.SIGUSR1)
        trigger = create_trigger("heap_signal", self.service)
        trigger.start()
        self.assertNotEqual(signal.getsignal(signal.SIGUSR1), before)
        trigger.stop()
        self.assertEqual(signal.getsignal(signal.SIGUSR1), before)
        self.assertFalse(trigger.installed)


if __name__ == "__main__":
    unittest.main()
