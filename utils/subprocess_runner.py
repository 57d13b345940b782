import asyncio
from typing import Optional

from exceptions import ToolExecutionError, ToolTimeoutError


async def run_tool(
    cmd: list[str],
    input_data: bytes,
    timeout: Optional[float] = None,
) -> bytes:
    """Run a CLI tool with stdin/stdout piping.

    Codec processes read the source image from stdin and write the result
    to stdout; nothing touches disk.

    Args:
        cmd: Command and arguments (e.g., ["convert", "-", "-resize", "300", "webp:-"]).
        input_data: Raw bytes to pipe to stdin.
        timeout: Seconds before killing the process. None waits forever.

    Returns:
        stdout bytes.

    Raises:
        ToolTimeoutError: If the process exceeds the timeout.
        ToolExecutionError: If the process can't be started or exits non-zero.
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise ToolExecutionError(f"Could not start {cmd[0]}: {e}", tool=cmd[0])

    try:
        stdout, stderr = await asyncio.wait_for(
            proc.communicate(input=input_data),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        raise ToolTimeoutError(
            f"Tool {cmd[0]} timed out after {timeout}s",
            tool=cmd[0],
            timeout=timeout,
        )

    if proc.returncode != 0:
        raise ToolExecutionError(
            f"{cmd[0]} failed with exit code {proc.returncode}: "
            f"{stderr.decode(errors='replace')[:500]}",
            tool=cmd[0],
            exit_code=proc.returncode,
        )

    return stdout
