"""Running helper scripts with a time limit."""

from __future__ import annotations

import logging
import os
import signal
import subprocess

__all__ = ["ScriptError", "cmd_run", "DEFAULT_TIMEOUT"]

DEFAULT_TIMEOUT = 3

logger = logging.getLogger(__name__)


class ScriptError(RuntimeError):
    """A script exited unsuccessfully."""


def cmd_run(script_path: str, timeout: float = 0) -> None:
    """Run a script, killing it after ``timeout`` seconds, and print its output.

    A non-positive timeout means the default of three seconds. Raises
    ScriptError if the script finishes with a failure status.
    """
    if timeout <= 0:
        timeout = DEFAULT_TIMEOUT
    posix = os.name != "nt"

    with subprocess.Popen(
        [script_path.rstrip("\n")],
        stdout=subprocess.PIPE,
        env=os.environ.copy(),
        start_new_session=posix,
    ) as process:
        try:
            output, _ = process.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            if posix:
                os.killpg(os.getpgid(process.pid), signal.SIGTERM)
            else:
                process.kill()
            print(f"Process killed as timeout({timeout}) reached")
            output, _ = process.communicate()
        else:
            if process.returncode != 0:
                raise ScriptError(
                    f"process finished with error = {_describe_exit(process.returncode)}"
                )
            logger.info("Process finished successfully")

    for line in output.decode("utf-8", errors="replace").splitlines():
        print(line)


def _describe_exit(returncode: int) -> str:
    if returncode < 0:
        name = signal.strsignal(-returncode) or str(-returncode)
        return f"signal: {name.lower()}"
    return f"exit status {returncode}"