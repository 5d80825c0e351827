"""
PHP Syntax Checker

Runs an external linter (default "php -l") on a temporary copy of the
code. Exit code 0 means valid; anything else rejects the input with the
linter output attached. When the linter binary is not installed the
check is skipped with a warning.
"""
import asyncio
import logging
import os
import shlex
import shutil
import tempfile
from typing import List, Optional

from core.exceptions import AnalysisError, InvalidCodeError

logger = logging.getLogger(__name__)

_OPEN_TAGS = ("<?php", "<?=")


class SyntaxChecker:
    """Subprocess based syntax pre-check"""

    def __init__(self, command: str = "php -l", timeout: float = 10.0, enabled: bool = True):
        """
        Args:
            command: Linter command; the temp file path is appended
            timeout: Seconds before the linter is killed
            enabled: False turns check() into a no-op
        """
        self.argv: List[str] = shlex.split(command)
        self.timeout = timeout
        self.enabled = enabled and bool(self.argv)
        self._missing_logged = False

    @staticmethod
    def prepare_code(code: str) -> str:
        """Prepend an open tag so bare snippets lint as PHP"""
        if any(tag in code for tag in _OPEN_TAGS):
            return code
        return "<?php\n" + code

    def is_installed(self) -> bool:
        return bool(self.argv) and shutil.which(self.argv[0]) is not None

    async def check(self, code: str, filename: str = "") -> Optional[str]:
        """
        Lint the code

        Args:
            code: Source code
            filename: Used in error messages instead of the temp path

        Returns:
            Linter output, or None when the check was skipped

        Raises:
            InvalidCodeError: Non-zero exit code
            AnalysisError: Linter timed out
        """
        if not self.enabled:
            return None

        if not self.is_installed():
            if not self._missing_logged:
                logger.warning("Syntax checker '%s' not found, skipping syntax checks", self.argv[0])
                self._missing_logged = True
            return None

        fd, path = tempfile.mkstemp(suffix=".php", prefix="ai_dev_assistant_")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(self.prepare_code(code))

            process = await asyncio.create_subprocess_exec(
                *self.argv,
                path,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
            try:
                stdout, _ = await asyncio.wait_for(process.communicate(), self.timeout)
            except asyncio.TimeoutError:
                process.kill()
                await process.wait()
                raise AnalysisError.timeout(self.timeout, filename)

            output = stdout.decode("utf-8", errors="replace").replace(path, filename or "code")

            if process.returncode != 0:
                logger.info("Syntax check failed for %s: %s", filename or "<inline>", output.strip())
                raise InvalidCodeError.invalid_syntax(output, filename)

            return output
        finally:
            try:
                os.unlink(path)
            except FileNotFoundError:
                pass
