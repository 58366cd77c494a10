import asyncio
from typing import List, Optional

from ..config import PICKER_COMMAND, PICKER_ARGS, PICKER_PROMPT_FLAG
from ..utils.logger import get_logger

logger = get_logger(__name__)

class PickerError(Exception):
    """The picker program could not be started."""

class Picker:
    """dmenu-style selector: lines go in on stdin, the chosen line comes back on stdout."""

    def __init__(self, command: Optional[List[str]] = None, args: Optional[List[str]] = None,
                 prompt_flag: Optional[str] = None):
        self.command = list(command or PICKER_COMMAND)
        self.args = list(PICKER_ARGS if args is None else args)
        self.prompt_flag = PICKER_PROMPT_FLAG if prompt_flag is None else prompt_flag

    async def choose(self, lines: List[str], prompt: Optional[str] = None) -> Optional[str]:
        """Returns the chosen line, or None when the user cancelled."""
        cmd = [*self.command, *self.args]
        if prompt and self.prompt_flag:
            cmd += [self.prompt_flag, prompt]

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise PickerError(f"Could not start picker '{self.command[0]}': {e}") from e

        stdout, _ = await process.communicate("\n".join(lines).encode("utf-8"))
        choice = stdout.decode("utf-8", errors="replace").strip()
        logger.debug(f"Picker exited with {process.returncode}, choice: {choice!r}")
        return choice or None
