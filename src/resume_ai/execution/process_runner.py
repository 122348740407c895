"""Child-process execution with a hard deadline and cooperative cancellation.

A :class:`ProcessHandle` owns everything tied to one spawned process: the
``asyncio`` process object, the stdout/stderr buffers, the deadline timer, the
SIGKILL escalation timer and the cancellation subscription.  All of it is
released by ``_teardown()``, which runs exactly once on every exit path
(normal exit, timeout, cancellation, or the awaiting task being cancelled).

Termination escalates the same way for a timeout and for a cancellation:
SIGTERM first, then SIGKILL if the process is still alive after the grace
period.  Whichever of the two triggers is recorded first decides the outcome.
"""
import asyncio
import logging
import signal
from typing import Dict, List, Optional, Sequence, Set

from resume_ai.domain.contracts import CancellationSource, CommandResult
from resume_ai.observability.structured_log import log_json

logger = logging.getLogger(__name__)

KILL_GRACE_SEC = 1.0
REAP_TIMEOUT_SEC = 5.0
_READ_CHUNK = 64 * 1024

# Strong references to background reapers of children killed on task cancellation.
_REAPERS: Set["asyncio.Task[None]"] = set()


class ProcessHandle:
    def __init__(self, proc: asyncio.subprocess.Process, grace_sec: float = KILL_GRACE_SEC, label: str = ""):
        self._proc = proc
        self._grace_sec = grace_sec
        self._label = label
        self._stdout = bytearray()
        self._stderr = bytearray()
        self._deadline_timer: Optional[asyncio.TimerHandle] = None
        self._kill_timer: Optional[asyncio.TimerHandle] = None
        # Loop time by which SIGKILL has been sent, once termination started.
        self._hard_stop: Optional[float] = None
        self._cancel_token: Optional[CancellationSource] = None
        self._exited = False
        self._torn_down = False
        self.timed_out = False
        self.cancelled = False

    @property
    def pid(self) -> int:
        return self._proc.pid

    def arm_deadline(self, timeout_sec: float) -> None:
        loop = asyncio.get_running_loop()
        self._deadline_timer = loop.call_later(max(0.0, timeout_sec), self._on_deadline)

    def bind_cancellation(self, token: CancellationSource) -> None:
        self._cancel_token = token
        token.add_callback(self.cancel)

    def cancel(self) -> None:
        if self._exited or self.timed_out or self.cancelled:
            return
        self.cancelled = True
        self._disarm_deadline()
        log_json(logger, "process.cancelled", pid=self.pid, label=self._label)
        self._terminate()

    async def communicate(self, stdin_text: str) -> CommandResult:
        readers = [
            asyncio.ensure_future(_pump(self._proc.stdout, self._stdout)),
            asyncio.ensure_future(_pump(self._proc.stderr, self._stderr)),
        ]
        writer = asyncio.ensure_future(self._feed(stdin_text))
        try:
            returncode = await self._proc.wait()
            self._exited = True
            # Grandchildren may keep the pipes open; bound the final drain.
            await asyncio.wait(readers, timeout=self._drain_budget())
        finally:
            self._teardown()
            for task in (writer, *readers):
                if not task.done():
                    task.cancel()
        return CommandResult(
            returncode=returncode,
            stdout=self._stdout.decode("utf-8", errors="replace"),
            stderr=self._stderr.decode("utf-8", errors="replace"),
            timed_out=self.timed_out,
            cancelled=self.cancelled,
            signal_name=_signal_name(returncode),
        )

    # ------------------------------------------------------------------
    # Termination
    # ------------------------------------------------------------------

    def _on_deadline(self) -> None:
        self._deadline_timer = None
        if self._exited or self.cancelled:
            return
        self.timed_out = True
        log_json(logger, "process.timeout", pid=self.pid, label=self._label)
        self._terminate()

    def _terminate(self) -> None:
        try:
            self._proc.terminate()
        except ProcessLookupError:
            return
        loop = asyncio.get_running_loop()
        if self._hard_stop is None:
            self._hard_stop = loop.time() + self._grace_sec
        self._kill_timer = loop.call_later(self._grace_sec, self._on_grace_expired)

    def _drain_budget(self) -> float:
        if self._hard_stop is None:
            return self._grace_sec
        return max(0.0, self._hard_stop - asyncio.get_running_loop().time())

    def _on_grace_expired(self) -> None:
        self._kill_timer = None
        if self._exited:
            return
        log_json(logger, "process.force_kill", pid=self.pid, label=self._label, level=logging.WARNING)
        self._kill()

    def _kill(self) -> None:
        try:
            self._proc.kill()
        except ProcessLookupError:
            pass

    def _disarm_deadline(self) -> None:
        if self._deadline_timer is not None:
            self._deadline_timer.cancel()
            self._deadline_timer = None

    def _teardown(self) -> None:
        if self._torn_down:
            return
        self._torn_down = True
        self._disarm_deadline()
        if self._kill_timer is not None:
            self._kill_timer.cancel()
            self._kill_timer = None
        if self._cancel_token is not None:
            self._cancel_token.remove_callback(self.cancel)
            self._cancel_token = None
        if not self._exited and self._proc.returncode is None:
            # Awaiting task was cancelled while the child was still running.
            self._kill()
            reaper = asyncio.ensure_future(self._reap())
            _REAPERS.add(reaper)
            reaper.add_done_callback(_REAPERS.discard)
        self._exited = True

    async def _reap(self) -> None:
        try:
            await asyncio.wait_for(self._proc.wait(), timeout=REAP_TIMEOUT_SEC)
        except asyncio.TimeoutError:
            log_json(logger, "process.reap_timeout", pid=self.pid, label=self._label, level=logging.WARNING)

    async def _feed(self, text: str) -> None:
        stdin = self._proc.stdin
        if stdin is None:
            return
        try:
            if text:
                stdin.write(text.encode("utf-8"))
                await stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            # Child closed its stdin early; the exit status reports the outcome.
            logger.debug("stdin closed before prompt was fully written (pid=%s)", self.pid)
        finally:
            stdin.close()


class ProcessRunner:
    """Spawns executables and collects their output under a deadline."""

    def __init__(self, grace_sec: float = KILL_GRACE_SEC):
        self._grace_sec = grace_sec

    async def run(
        self,
        argv: Sequence[str],
        stdin_text: str = "",
        timeout_sec: float = 120.0,
        cancel_token: Optional[CancellationSource] = None,
        env: Optional[Dict[str, str]] = None,
        cwd: Optional[str] = None,
    ) -> CommandResult:
        """Run ``argv`` to completion.

        Raises ``OSError`` (typically ``FileNotFoundError``) when the process
        cannot be spawned; every other outcome is reported in the result.
        """
        if cancel_token is not None and cancel_token.cancelled:
            return CommandResult(returncode=None, stdout="", stderr="", cancelled=True)
        args: List[str] = [str(part) for part in argv]
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=env,
            cwd=cwd,
        )
        handle = ProcessHandle(proc, grace_sec=self._grace_sec, label=args[0])
        handle.arm_deadline(timeout_sec)
        if cancel_token is not None:
            handle.bind_cancellation(cancel_token)
        return await handle.communicate(stdin_text)


async def _pump(stream: Optional[asyncio.StreamReader], sink: bytearray) -> None:
    if stream is None:
        return
    while True:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            return
        sink.extend(chunk)


def _signal_name(returncode: Optional[int]) -> Optional[str]:
    if returncode is None or returncode >= 0:
        return None
    try:
        return signal.Signals(-returncode).name
    except ValueError:
        return f"SIG{-returncode}"
