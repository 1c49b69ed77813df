"""External volume-bot process handoff.

The launcher only calls ``launch(config) -> handle`` and ``terminate(handle)``;
lifetime (forced SIGTERM after ``lifetime_sec``) is owned here.
"""

from __future__ import annotations

import asyncio
import shlex
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

TERMINATE_GRACE_SEC = 10.0


def update_env_file(path: Path, key: str, value: str) -> None:
    """Replace ``KEY=...`` in a dotenv file, appending it if absent."""
    lines = path.read_text(encoding="utf-8").split("\n") if path.exists() else []
    found = False
    for i, line in enumerate(lines):
        if line.startswith(f"{key}="):
            lines[i] = f"{key}={value}"
            found = True
    if not found:
        if lines and lines[-1] == "":
            lines.insert(len(lines) - 1, f"{key}={value}")
        else:
            lines.append(f"{key}={value}")
    path.write_text("\n".join(lines), encoding="utf-8")


@dataclass(frozen=True)
class ProcessConfig:
    workdir: Path
    command: str
    env_file: str = ".env"
    env_key: str = "TOKEN_MINT"
    mint: str | None = None
    lifetime_sec: float | None = None


@dataclass
class ProcessHandle:
    name: str
    process: asyncio.subprocess.Process
    watchdog: asyncio.Task | None = field(default=None, repr=False)

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def running(self) -> bool:
        return self.process.returncode is None


class ProcessLauncher:
    async def launch(self, config: ProcessConfig) -> ProcessHandle:
        if config.mint:
            env_path = config.workdir / config.env_file
            update_env_file(env_path, config.env_key, config.mint)
            logger.info(f"[VOLBOT] Updated {env_path} with {config.env_key}={config.mint}")

        argv = shlex.split(config.command)
        process = await asyncio.create_subprocess_exec(*argv, cwd=str(config.workdir))
        handle = ProcessHandle(name=config.command, process=process)
        logger.info(f"[VOLBOT] Started '{config.command}' in {config.workdir} (pid={process.pid})")

        if config.lifetime_sec:
            handle.watchdog = asyncio.create_task(self._expire(handle, config.lifetime_sec))
        return handle

    async def _expire(self, handle: ProcessHandle, lifetime_sec: float) -> None:
        try:
            await asyncio.wait_for(handle.process.wait(), timeout=lifetime_sec)
        except asyncio.TimeoutError:
            logger.info(f"[VOLBOT] {lifetime_sec:.0f}s passed — terminating '{handle.name}'")
            await self.terminate(handle)

    async def terminate(self, handle: ProcessHandle) -> int | None:
        if handle.running:
            handle.process.terminate()
            try:
                await asyncio.wait_for(handle.process.wait(), timeout=TERMINATE_GRACE_SEC)
            except asyncio.TimeoutError:
                logger.warning(f"[VOLBOT] '{handle.name}' ignored SIGTERM, killing")
                handle.process.kill()
                await handle.process.wait()
        logger.info(f"[VOLBOT] '{handle.name}' exited with code {handle.process.returncode}")
        return handle.process.returncode

    async def wait(self, handle: ProcessHandle) -> int | None:
        """Block until the process exits (on its own or via the watchdog)."""
        await handle.process.wait()
        if handle.watchdog is not None and not handle.watchdog.done():
            handle.watchdog.cancel()
        return handle.process.returncode
