"""Device state controller: the single owner of camera state.

DeviceStateController wraps a CaptureSource and guards every hardware
transition with an explicit state machine:

    STOPPED  --start-->  STARTING  --ack-->       ACTIVE
    ACTIVE   --stop-->   STOPPING  --ack-->       STOPPED
    STOPPING --refused-->                         ACTIVE
    any      --force_stop exhausted-->            FAILED
    FAILED   --reset-->                           STOPPED

Reset is refused while ACTIVE; stop or force stop the camera first.

``is_active`` is True only in ACTIVE, and ACTIVE is entered or left only
after the hardware call has returned. Requests arriving while a transition
is in flight are rejected without touching the hardware.

Hardware calls can block, so the event router uses the ``submit_*``
variants: the transitional state is claimed synchronously under the lock,
the hardware call runs on a daemon worker thread, and the outcome is
reported to the listener.

Example:
    controller = DeviceStateController(source, listener=router.post_device_result)
    controller.submit_start()
    ...
    controller.shutdown(timeout=2.0)
"""

from __future__ import annotations

import queue
import threading
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass
from enum import Enum

from glyphcam.devices.capture import (
    DEFAULT_FORCE_STOP_RETRIES,
    DEFAULT_RETRY_DELAY_S,
    CaptureFaultError,
    CaptureSource,
    CaptureStopError,
)
from glyphcam.drivers.cameras import CaptureError, DeviceUnavailableError
from glyphcam.observability import get_logger

logger = get_logger(__name__)

__all__ = [
    "CameraState",
    "DeviceStateController",
    "Operation",
    "TransitionResult",
]


class CameraState(Enum):
    """Authoritative camera state."""

    STOPPED = "stopped"
    STARTING = "starting"
    ACTIVE = "active"
    STOPPING = "stopping"
    FAILED = "failed"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class Operation(Enum):
    """Lifecycle request kinds."""

    START = "start"
    STOP = "stop"
    FORCE_STOP = "force_stop"
    RESET = "reset"
    SELECT = "select_camera"


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of one lifecycle request.

    Attributes:
        operation: Which request this answers.
        ok: True if the requested transition completed.
        state: Controller state after the request.
        message: Short status text for the status line.
        rejected: True if the request was refused without a hardware call.
        pending: True if the hardware call was handed to the worker and the
            final result will follow through the listener.
    """

    operation: Operation
    ok: bool
    state: CameraState
    message: str
    rejected: bool = False
    pending: bool = False


ResultListener = Callable[[TransitionResult], None]

_TRANSITIONAL = (CameraState.STARTING, CameraState.STOPPING)


class _DeviceWorker:
    """Single daemon thread executing hardware calls in submission order.

    Daemon so that a device stuck in a blocking call cannot keep the
    interpreter alive after the UI has exited.
    """

    def __init__(self, name: str = "glyphcam-device") -> None:
        self._queue: queue.Queue[
            tuple[Callable[[], TransitionResult], Future[TransitionResult]] | None
        ] = queue.Queue()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._started = False
        self._closed = False
        self._lock = threading.Lock()

    def submit(self, fn: Callable[[], TransitionResult]) -> Future[TransitionResult]:
        future: Future[TransitionResult] = Future()
        with self._lock:
            if self._closed:
                raise RuntimeError("Device worker is shut down")
            if not self._started:
                self._thread.start()
                self._started = True
            self._queue.put((fn, future))
        return future

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            if self._started:
                self._queue.put(None)

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is None:
                return
            fn, future = item
            if not future.set_running_or_notify_cancel():
                continue
            try:
                future.set_result(fn())
            except Exception as e:
                logger.error("Device worker task failed", error=str(e))
                future.set_exception(e)


class DeviceStateController:
    """State machine guarding the camera lifecycle.

    Owns the CaptureSource exclusively; nothing else starts or stops it.

    Thread Safety:
        State reads and transitions are serialised by an internal lock.
        Hardware calls run outside the lock so that state queries never
        block on a slow device.
    """

    def __init__(
        self,
        source: CaptureSource,
        force_stop_retries: int = DEFAULT_FORCE_STOP_RETRIES,
        retry_delay_s: float = DEFAULT_RETRY_DELAY_S,
        listener: ResultListener | None = None,
    ) -> None:
        """Create a controller in the STOPPED state.

        Args:
            source: Capture source to manage.
            force_stop_retries: Attempts made by force_stop().
            retry_delay_s: Pause between force_stop() attempts.
            listener: Receives every completed TransitionResult, including
                those produced on the worker thread.
        """
        self._source = source
        self._force_stop_retries = force_stop_retries
        self._retry_delay_s = retry_delay_s
        self._listener = listener
        self._lock = threading.Lock()
        self._state = CameraState.STOPPED
        self._failure_reason: str | None = None
        self._worker = _DeviceWorker()

    def __repr__(self) -> str:
        return f"DeviceStateController(state={self._state.value})"

    # --- State queries ---

    @property
    def state(self) -> CameraState:
        with self._lock:
            return self._state

    @property
    def is_active(self) -> bool:
        """True if and only if the state is ACTIVE."""
        with self._lock:
            return self._state is CameraState.ACTIVE

    @property
    def failure_reason(self) -> str | None:
        """Why the controller entered FAILED, or None."""
        with self._lock:
            return self._failure_reason

    @property
    def camera_index(self) -> int:
        return self._source.camera_index

    def set_listener(self, listener: ResultListener | None) -> None:
        self._listener = listener

    # --- Synchronous API ---

    def start(self) -> TransitionResult:
        """Start the camera, blocking until the hardware answers."""
        claim = self._claim(Operation.START)
        if claim is not None:
            return claim
        return self._report(self._finish_start())

    def stop(self) -> TransitionResult:
        """Stop the camera, blocking until the hardware answers.

        A second stop while already STOPPED is rejected as a no-op and makes
        no hardware call.
        """
        claim = self._claim(Operation.STOP)
        if claim is not None:
            return claim
        return self._report(self._finish_stop())

    def force_stop(self) -> TransitionResult:
        """Emergency stop with bounded retries; FAILED if they run out."""
        claim = self._claim(Operation.FORCE_STOP)
        if claim is not None:
            return claim
        return self._report(self._finish_force_stop())

    def reset(self) -> TransitionResult:
        """Tear down device resources and return to STOPPED.

        Accepted from FAILED and STOPPED only; an ACTIVE camera must be
        stopped (or force stopped) first.
        """
        claim = self._claim(Operation.RESET)
        if claim is not None:
            return claim
        return self._report(self._finish_reset())

    def select_camera(self, camera_index: int) -> TransitionResult:
        """Choose the device used by the next start. Only while STOPPED."""
        with self._lock:
            if self._state is not CameraState.STOPPED:
                return self._reject(
                    Operation.SELECT, "Stop the camera before switching devices"
                )
            try:
                self._source.select_camera(camera_index)
            except CaptureError as e:
                return self._reject(Operation.SELECT, str(e))
            result = TransitionResult(
                Operation.SELECT, True, self._state, f"Camera {camera_index} selected"
            )
        return self._report(result)

    # --- Fire-and-report API ---

    def submit_start(self) -> TransitionResult:
        """Claim STARTING and run the hardware start on the worker."""
        return self._submit(Operation.START, self._finish_start)

    def submit_stop(self) -> TransitionResult:
        """Claim STOPPING and run the hardware stop on the worker."""
        return self._submit(Operation.STOP, self._finish_stop)

    def submit_force_stop(self) -> TransitionResult:
        return self._submit(Operation.FORCE_STOP, self._finish_force_stop)

    def submit_reset(self) -> TransitionResult:
        return self._submit(Operation.RESET, self._finish_reset)

    def submit_toggle(self) -> TransitionResult:
        """Start when stopped, stop when active, reject otherwise."""
        state = self.state
        if state is CameraState.ACTIVE:
            return self.submit_stop()
        return self.submit_start()

    def shutdown(self, timeout: float = 2.0) -> TransitionResult | None:
        """Best-effort final stop used on process exit.

        Waits at most ``timeout`` seconds for the hardware. Falls back to a
        force stop when the regular stop is refused. Never raises.

        Returns:
            The final result, or None if the hardware did not answer in time.
        """
        result: TransitionResult | None = None
        try:
            state = self.state
            if state is CameraState.ACTIVE or state in _TRANSITIONAL:
                future = self._worker.submit(self._shutdown_stop)
                result = future.result(timeout=timeout)
        except TimeoutError:
            logger.error("Camera did not stop before shutdown timeout", timeout_s=timeout)
        except Exception as e:
            logger.error("Shutdown stop failed", error=str(e))
        finally:
            self._worker.close()
        return result

    # --- Transition internals ---

    def _claim(self, operation: Operation) -> TransitionResult | None:
        """Validate a request and enter the transitional state.

        Returns:
            None if the caller may proceed with the hardware call, otherwise
            the rejection result.
        """
        with self._lock:
            state = self._state
            if state in _TRANSITIONAL:
                return self._reject(operation, f"Camera busy ({state.label})")

            if operation is Operation.START:
                if state is CameraState.FAILED:
                    return self._reject(
                        operation, "Camera fault: press r to reset before starting"
                    )
                if state is CameraState.ACTIVE:
                    return self._reject(operation, "Camera already running")
                self._state = CameraState.STARTING
            elif operation is Operation.STOP:
                if state is not CameraState.ACTIVE:
                    return self._reject(operation, "Camera already stopped")
                self._state = CameraState.STOPPING
            elif operation is Operation.FORCE_STOP:
                if state is CameraState.FAILED:
                    return self._reject(operation, "Camera fault: reset required")
                self._state = CameraState.STOPPING
            elif operation is Operation.RESET:
                if state is CameraState.ACTIVE:
                    return self._reject(operation, "Stop the camera before resetting")
                self._state = CameraState.STOPPING
            return None

    def _reject(self, operation: Operation, message: str) -> TransitionResult:
        logger.info(
            "Camera request rejected",
            operation=operation.value,
            state=self._state.value,
            reason=message,
        )
        return TransitionResult(operation, False, self._state, message, rejected=True)

    def _submit(
        self,
        operation: Operation,
        finish: Callable[[], TransitionResult],
    ) -> TransitionResult:
        claim = self._claim(operation)
        if claim is not None:
            return claim
        self._worker.submit(lambda: self._report(finish()))
        state = self.state
        message = {
            Operation.START: "Starting camera...",
            Operation.STOP: "Stopping camera...",
            Operation.FORCE_STOP: "Force stopping camera...",
            Operation.RESET: "Resetting camera...",
        }[operation]
        return TransitionResult(operation, True, state, message, pending=True)

    def _set_state(self, state: CameraState, reason: str | None = None) -> None:
        with self._lock:
            previous = self._state
            self._state = state
            self._failure_reason = reason if state is CameraState.FAILED else None
        if previous is not state:
            logger.info(
                "Camera state changed", previous=previous.value, state=state.value
            )

    def _finish_start(self) -> TransitionResult:
        try:
            self._source.start()
        except DeviceUnavailableError as e:
            self._set_state(CameraState.STOPPED)
            return TransitionResult(
                Operation.START, False, CameraState.STOPPED, f"Camera unavailable: {e}"
            )
        except Exception as e:
            self._set_state(CameraState.STOPPED)
            logger.error("Camera start failed", error=str(e))
            return TransitionResult(
                Operation.START, False, CameraState.STOPPED, f"Camera start failed: {e}"
            )
        self._set_state(CameraState.ACTIVE)
        return TransitionResult(Operation.START, True, CameraState.ACTIVE, "Camera started")

    def _finish_stop(self) -> TransitionResult:
        try:
            self._source.stop()
        except CaptureStopError as e:
            self._set_state(CameraState.ACTIVE)
            return TransitionResult(
                Operation.STOP,
                False,
                CameraState.ACTIVE,
                f"Stop failed, camera still running: {e}",
            )
        except Exception as e:
            self._set_state(CameraState.ACTIVE)
            logger.error("Unexpected error stopping camera", error=str(e))
            return TransitionResult(
                Operation.STOP, False, CameraState.ACTIVE, f"Stop failed: {e}"
            )
        self._set_state(CameraState.STOPPED)
        return TransitionResult(Operation.STOP, True, CameraState.STOPPED, "Camera stopped")

    def _finish_force_stop(self) -> TransitionResult:
        try:
            self._source.force_stop(self._force_stop_retries, self._retry_delay_s)
        except CaptureFaultError as e:
            self._set_state(CameraState.FAILED, str(e))
            return TransitionResult(
                Operation.FORCE_STOP,
                False,
                CameraState.FAILED,
                "Camera fault: press r to reset",
            )
        except Exception as e:
            self._set_state(CameraState.FAILED, str(e))
            logger.error("Unexpected error force stopping camera", error=str(e))
            return TransitionResult(
                Operation.FORCE_STOP, False, CameraState.FAILED, f"Camera fault: {e}"
            )
        self._set_state(CameraState.STOPPED)
        return TransitionResult(
            Operation.FORCE_STOP, True, CameraState.STOPPED, "Camera force stopped"
        )

    def _finish_reset(self) -> TransitionResult:
        try:
            self._source.reset()
        except Exception as e:
            logger.error("Camera reset raised", error=str(e))
        self._set_state(CameraState.STOPPED)
        return TransitionResult(Operation.RESET, True, CameraState.STOPPED, "Camera reset")

    def _shutdown_stop(self) -> TransitionResult:
        # Waits out a transition already queued on the worker.
        if self.state is not CameraState.ACTIVE:
            return TransitionResult(Operation.STOP, True, self.state, "Camera idle")
        result = self.stop()
        if result.ok:
            return result
        return self.force_stop()

    def _report(self, result: TransitionResult) -> TransitionResult:
        level = logger.info if result.ok else logger.warning
        level(
            "Camera request finished",
            operation=result.operation.value,
            ok=result.ok,
            state=result.state.value,
            detail=result.message,
        )
        listener = self._listener
        if listener is not None:
            listener(result)
        return result
