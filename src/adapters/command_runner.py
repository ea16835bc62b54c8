"""Subprocess adapter for side-effect commands.

Commands are fire-and-forget: the notifier never waits for them and their
failures are only logged. Running tasks are tracked so shutdown can give
them a grace period.
"""

from __future__ import annotations

import asyncio
import logging
import shlex
from typing import Optional

from core.config import CommandConfig

LOGGER = logging.getLogger(__name__)


class SubprocessCommandRunner:
    """CommandRunner backed by ``asyncio.create_subprocess_exec``."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()
        self._processes: set[asyncio.subprocess.Process] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def launch(self, command: CommandConfig, args: list[str]) -> None:
        """Start the command in the background and return immediately."""

        task = asyncio.get_running_loop().create_task(self._run(command, args))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, command: CommandConfig, args: list[str]) -> None:
        command_line = shlex.join([command.name, *args])
        LOGGER.info("Command start: %s (cwd=%s)", command_line, command.working_directory)
        stderr: Optional[int] = asyncio.subprocess.PIPE if command.capture_stderr else None
        try:
            process = await asyncio.create_subprocess_exec(
                command.name,
                *args,
                cwd=command.working_directory,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=stderr,
            )
        except OSError as exc:
            LOGGER.error("Command exec error: %s: %s", command_line, exc)
            return

        self._processes.add(process)
        try:
            _, err = await process.communicate()
        except asyncio.CancelledError:
            if process.returncode is None:
                process.kill()
            raise
        finally:
            self._processes.discard(process)

        err_text = err.decode("utf-8", errors="replace") if err else ""
        if process.returncode != 0:
            LOGGER.error("Command failed: %s (code=%s) stderr=%s", command_line, process.returncode, err_text)
            return
        LOGGER.info("Command completed: %s (code=%s)", command_line, process.returncode)

    async def drain(self, timeout: float) -> None:
        """Wait up to ``timeout`` seconds for running commands, then kill the rest."""

        if not self._tasks:
            return
        LOGGER.info("Waiting for %s running command(s)", len(self._tasks))
        _, still_running = await asyncio.wait(set(self._tasks), timeout=timeout)
        if not still_running:
            return
        LOGGER.warning("Terminating %s command(s) after %ss grace period", len(still_running), timeout)
        for process in list(self._processes):
            if process.returncode is None:
                process.terminate()
        _, stuck = await asyncio.wait(still_running, timeout=timeout)
        for task in stuck:
            task.cancel()
        await asyncio.gather(*stuck, return_exceptions=True)
