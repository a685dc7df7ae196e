"""Process invoker: run an external executable and collect its output.

The invoker starts one child process per call with asyncio, drains stdout
and stderr concurrently into independent buffers, and resolves once the
process has exited and both streams reached EOF. Callers see either an
InvocationResult or an InvocationError, never a partial result.
"""

import asyncio
import codecs
import contextlib
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence, Tuple

from .errors import NonZeroExit, SpawnFailed

# Bytes requested per read from each pipe
CHUNK_SIZE = 4096

ChunkCallback = Callable[[str], None]


@dataclass(frozen=True)
class InvocationRequest:
    """An executable and its ordered arguments."""
    executable_path: str
    arguments: Tuple[str, ...] = ()

    @property
    def argv(self) -> Tuple[str, ...]:
        return (self.executable_path,) + self.arguments


@dataclass(frozen=True)
class InvocationResult:
    """Output of a process that exited with status 0.

    stdout is the authoritative result; stderr is kept for diagnostics.
    """
    stdout: str
    stderr: str
    returncode: int = 0


async def _drain(
    stream: asyncio.StreamReader,
    on_chunk: Optional[ChunkCallback] = None,
) -> str:
    """Read a pipe to EOF, decoding chunks as they arrive.

    An incremental decoder keeps multi-byte UTF-8 sequences that straddle
    a chunk boundary intact.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    chunks = []
    while True:
        data = await stream.read(CHUNK_SIZE)
        if not data:
            break
        text = decoder.decode(data)
        if text:
            chunks.append(text)
            if on_chunk is not None:
                on_chunk(text)
    tail = decoder.decode(b"", final=True)
    if tail:
        chunks.append(tail)
        if on_chunk is not None:
            on_chunk(tail)
    return "".join(chunks)


async def _reap(process: asyncio.subprocess.Process, drains: Sequence["asyncio.Future[str]"]) -> None:
    """Kill a child that is still running, wait for it and collect the readers."""
    for task in drains:
        task.cancel()
    if process.returncode is None:
        with contextlib.suppress(ProcessLookupError):
            process.kill()
        await process.wait()
    # Retrieve every reader outcome so none is reported as unhandled
    await asyncio.gather(*drains, return_exceptions=True)


async def invoke(
    executable_path: str,
    arguments: Sequence[str] = (),
    *,
    env: Optional[Dict[str, str]] = None,
    cwd: Optional[str] = None,
    on_stdout: Optional[ChunkCallback] = None,
    on_stderr: Optional[ChunkCallback] = None,
) -> InvocationResult:
    """Run an executable to completion and return its output.

    Args:
        executable_path: Name or path of the executable. Must be non-empty.
        arguments: Arguments passed verbatim (no shell interpretation).
        env: Environment for the child. Defaults to the current environment.
        cwd: Working directory for the child.
        on_stdout: Called with each decoded stdout chunk, in arrival order.
        on_stderr: Called with each decoded stderr chunk, in arrival order.

    Returns:
        InvocationResult with the complete stdout and stderr buffers.

    Raises:
        ValueError: If executable_path is empty.
        SpawnFailed: If the process could not be started.
        NonZeroExit: If the process exited with a non-zero status.
    """
    if not executable_path:
        raise ValueError("executable_path must be a non-empty string")

    request = InvocationRequest(executable_path, tuple(arguments))

    try:
        process = await asyncio.create_subprocess_exec(
            *request.argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=env,
            cwd=cwd,
        )
    except (OSError, ValueError) as exc:
        raise SpawnFailed(request, exc) from exc

    drains = [
        asyncio.ensure_future(_drain(process.stdout, on_stdout)),
        asyncio.ensure_future(_drain(process.stderr, on_stderr)),
    ]
    try:
        stdout, stderr = await asyncio.gather(*drains)
        returncode = await process.wait()
    except BaseException:
        # Cancellation or a failing callback: don't leave the child behind
        await asyncio.shield(_reap(process, drains))
        raise

    if returncode != 0:
        raise NonZeroExit(request, returncode, stdout, stderr)

    return InvocationResult(stdout=stdout, stderr=stderr, returncode=returncode)
