"""
Build Agent Installer: Runs external executables.
Copyright (C) 2003-2026 ITRS Group Ltd. All rights reserved
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from gevent import subprocess
from gevent.subprocess import PIPE, STDOUT

from .helpers import mask_args, working_directory

if TYPE_CHECKING:
    from typing import Optional, Sequence

logger = logging.getLogger(__name__)


class CommandRunner(ABC):

    @abstractmethod
    def run(self, path: str, args: Sequence[str], working_dir: str) -> tuple[int, Optional[Exception]]:
        """
        Runs the executable at path with args from within working_dir.
        Returns the exit code and the error that prevented the executable from running (if any).
        """


class SubprocessCommandRunner(CommandRunner):
    """Runs executables as child processes, relaying their output to the log"""

    EXIT_CODE_NOT_RUN = -1

    def __init__(self, secret_flags: Sequence[str] = ()):
        self._secret_flags = tuple(secret_flags)

    def run(self, path: str, args: Sequence[str], working_dir: str) -> tuple[int, Optional[Exception]]:
        command = [path, *args]
        logger.debug("Executing %s in '%s'", mask_args(command, self._secret_flags), working_dir)
        try:
            with working_directory(working_dir):
                proc = subprocess.Popen(command, stdout=PIPE, stderr=STDOUT, shell=False)
                for raw_line in proc.stdout:
                    line = raw_line.decode('utf-8', errors='replace').rstrip()
                    if line:
                        logger.info("%s", line)
                exit_code = proc.wait()
        except OSError as ex:
            logger.error("Unable to run '%s': %s", path, ex)
            return self.EXIT_CODE_NOT_RUN, ex
        logger.debug("'%s' exited with code %d", path, exit_code)
        return exit_code, None
