# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Owner of one spawned bridge server process.

An :class:`Environment` writes the generated source into a private working
directory, spawns ``python -m mcpbridge.server`` on it with ``stderr`` merged
into ``stdout``, and multiplexes requests over the resulting single stream.
Used as ``async with`` it runs its own reader task; a bare :meth:`start` takes
the caller's task group instead.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from contextlib import AsyncExitStack
import os
from pathlib import Path
import shutil
import subprocess
import tempfile
from typing import Any

import anyio
from anyio.abc import Process, TaskGroup
from mcp import types
from mcp.shared.exceptions import McpError

from .multiplexer import LogSink, StreamMultiplexer
from .session import BridgeClient
from ..config import BridgeSettings
from ..errors import BridgeError, EnvironmentNotRunningError
from ..introspection import detect_language
from ..registry import SourceLanguage
from ..utils import get_logger


SpawnFunction = Callable[..., Awaitable[Process]]

_SOURCE_FILENAMES: dict[str, str] = {"python": "server.py", "typescript": "server.ts"}
_PACKAGE_ROOT = Path(__file__).resolve().parents[2]


def _child_environment() -> dict[str, str]:
    env = dict(os.environ)
    env["PYTHONUNBUFFERED"] = "1"
    env["NO_COLOR"] = "1"
    existing = env.get("PYTHONPATH")
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(_PACKAGE_ROOT), existing]))
    return env


class Environment:
    """Spawned server process plus the multiplexer talking to it.

    Args:
        source_text: Generated server source.
        language: Source language; detected when omitted.
        api_base_url: Overrides the base URL found in the source.
        settings: Timeouts and interpreter; :meth:`BridgeSettings.from_env` by default.
        spawn: ``anyio.open_process``-compatible coroutine used to start the server.
        log_sink: Receives each diagnostic line the server prints.
    """

    def __init__(
        self,
        source_text: str,
        *,
        language: SourceLanguage | None = None,
        api_base_url: str | None = None,
        settings: BridgeSettings | None = None,
        spawn: SpawnFunction | None = None,
        log_sink: LogSink | None = None,
    ) -> None:
        self.source_text = source_text
        self.language: SourceLanguage = language or detect_language(source_text)
        self.api_base_url = api_base_url
        self.settings = settings or BridgeSettings.from_env()
        self._spawn = spawn or anyio.open_process
        self._log_sink = log_sink
        self._logger = get_logger("mcpbridge.environment")
        self._process: Process | None = None
        self._multiplexer: StreamMultiplexer | None = None
        self._stack: AsyncExitStack | None = None
        self._pump_scope: anyio.CancelScope | None = None
        self._workdir: Path | None = None
        self._client: BridgeClient | None = None

    # ------------------------------------------------------------------
    # Async context manager
    # ------------------------------------------------------------------

    async def __aenter__(self) -> Environment:
        stack = AsyncExitStack()
        task_group = await stack.enter_async_context(anyio.create_task_group())
        try:
            await self.start(task_group)
        except BaseException:
            await stack.aclose()
            raise
        self._stack = stack
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        stack, self._stack = self._stack, None
        try:
            await self.stop()
        finally:
            if stack is not None:
                await stack.aclose()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def command(self, source_path: Path) -> list[str]:
        args = [
            self.settings.python_executable,
            "-m",
            "mcpbridge.server",
            str(source_path),
            "--language",
            self.language,
        ]
        if self.api_base_url:
            args += ["--api-base-url", self.api_base_url]
        return args

    async def start(self, task_group: TaskGroup) -> None:
        """Spawn the server and run the output reader in ``task_group``.

        The reader ends when :meth:`stop` is called, so ``task_group`` may
        outlive this environment.
        """
        if self._process is not None:
            return

        workdir = Path(tempfile.mkdtemp(prefix="mcpbridge-"))
        source_path = workdir / _SOURCE_FILENAMES[self.language]
        source_path.write_text(self.source_text, encoding="utf-8")

        try:
            process = await self._spawn(
                self.command(source_path),
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                cwd=str(workdir),
                env=_child_environment(),
            )
        except OSError as exc:
            shutil.rmtree(workdir, ignore_errors=True)
            raise EnvironmentNotRunningError(f"Failed to spawn bridge server: {exc}") from exc

        if process.stdin is None or process.stdout is None:
            shutil.rmtree(workdir, ignore_errors=True)
            raise EnvironmentNotRunningError("Spawned process has no stdin/stdout pipes")

        multiplexer = StreamMultiplexer(
            process.stdin,
            process.stdout,
            request_timeout=self.settings.request_timeout,
            log_history=self.settings.log_history,
            log_sink=self._log_sink,
        )
        pump_scope = anyio.CancelScope()
        task_group.start_soon(self._pump, multiplexer, pump_scope)

        self._workdir = workdir
        self._process = process
        self._multiplexer = multiplexer
        self._pump_scope = pump_scope
        self._logger.info("Started bridge server (pid %s, %s source)", process.pid, self.language)

    async def stop(self) -> None:
        """Reject pending work, stop the process and remove the working directory."""
        process, multiplexer, pump_scope = self._process, self._multiplexer, self._pump_scope
        self._process = self._multiplexer = self._pump_scope = None
        self._client = None

        try:
            if multiplexer is not None:
                await multiplexer.aclose()
            if process is not None:
                await self._terminate(process)
        finally:
            if pump_scope is not None:
                pump_scope.cancel()
            if self._workdir is not None:
                shutil.rmtree(self._workdir, ignore_errors=True)
                self._workdir = None

    @staticmethod
    async def _pump(multiplexer: StreamMultiplexer, scope: anyio.CancelScope) -> None:
        with scope:
            await multiplexer.pump()

    async def _terminate(self, process: Process) -> None:
        with anyio.move_on_after(self.settings.shutdown_grace):
            await process.wait()
        if process.returncode is None:
            self._logger.info("Terminating bridge server (pid %s)", process.pid)
            try:
                process.terminate()
            except ProcessLookupError:
                pass
            with anyio.move_on_after(self.settings.shutdown_grace):
                await process.wait()
        if process.returncode is None:
            self._logger.warning("Killing unresponsive bridge server (pid %s)", process.pid)
            try:
                process.kill()
            except ProcessLookupError:
                pass
        with anyio.CancelScope(shield=True):
            await process.aclose()
        self._logger.info("Bridge server exited with code %s", process.returncode)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return (
            self._process is not None
            and self._process.returncode is None
            and self._multiplexer is not None
            and not self._multiplexer.closed
        )

    @property
    def server_logs(self) -> list[str]:
        return list(self._multiplexer.recent_logs) if self._multiplexer is not None else []

    @property
    def multiplexer(self) -> StreamMultiplexer:
        if self._multiplexer is None:
            raise EnvironmentNotRunningError("Environment is not running; call start() first")
        return self._multiplexer

    @property
    def client(self) -> BridgeClient:
        if self._client is None:
            self._client = BridgeClient(self)
        return self._client

    async def send(self, method: str, params: Mapping[str, Any] | None = None, *, timeout: float | None = None) -> Any:
        return await self.multiplexer.send(method, params, timeout=timeout)

    async def notify(self, method: str, params: Mapping[str, Any] | None = None) -> None:
        await self.multiplexer.notify(method, params)

    async def test_connection(self) -> bool:
        """Run the ``initialize`` handshake; ``False`` instead of raising."""
        try:
            await self.send(
                "initialize",
                {
                    "protocolVersion": types.LATEST_PROTOCOL_VERSION,
                    "capabilities": {},
                    "clientInfo": {"name": "mcpbridge-connection-test", "version": "1.0.0"},
                },
            )
        except (BridgeError, McpError) as exc:
            self._logger.warning("Connection test failed: %s", exc)
            return False
        return True


__all__ = ["Environment", "SpawnFunction"]
