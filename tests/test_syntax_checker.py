"""Tests for the external syntax pre-check (subprocess mocked)."""

import asyncio
import os
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from core.exceptions import AnalysisError, InvalidCodeError
from services.syntax_checker import SyntaxChecker


def fake_process(returncode: int, output: bytes = b"", hang: bool = False):
    process = MagicMock()
    process.returncode = returncode
    if hang:
        async def communicate():
            await asyncio.sleep(10)
        process.communicate = communicate
    else:
        process.communicate = AsyncMock(return_value=(output, None))
    process.wait = AsyncMock(return_value=returncode)
    return process


@pytest.fixture
def installed():
    with patch("services.syntax_checker.shutil.which", return_value="/usr/bin/php"):
        yield


class TestSyntaxChecker:
    def test_prepare_code_adds_open_tag(self):
        assert SyntaxChecker.prepare_code("echo 1;") == "<?php\necho 1;"
        assert SyntaxChecker.prepare_code("<?php echo 1;") == "<?php echo 1;"

    async def test_disabled_is_noop(self):
        with patch("services.syntax_checker.asyncio.create_subprocess_exec") as spawn:
            assert await SyntaxChecker(enabled=False).check("<?php broken(") is None

        spawn.assert_not_called()

    async def test_missing_binary_skips_check(self):
        with patch("services.syntax_checker.shutil.which", return_value=None):
            assert await SyntaxChecker().check("<?php broken(") is None

    async def test_valid_code(self, installed):
        process = fake_process(0, b"No syntax errors detected in /tmp/x.php")

        with patch(
            "services.syntax_checker.asyncio.create_subprocess_exec",
            AsyncMock(return_value=process),
        ) as spawn:
            output = await SyntaxChecker().check("<?php echo 1;", "a.php")

        argv = spawn.call_args.args
        assert argv[:2] == ("php", "-l")
        assert argv[2].endswith(".php")
        assert not os.path.exists(argv[2])
        assert "No syntax errors" in output

    async def test_invalid_code_rejected(self, installed):
        process = fake_process(255, b"PHP Parse error: syntax error in /tmp/x.php on line 2")

        with patch(
            "services.syntax_checker.asyncio.create_subprocess_exec",
            AsyncMock(return_value=process),
        ):
            with pytest.raises(InvalidCodeError) as exc_info:
                await SyntaxChecker().check("<?php function (", "a.php")

        assert exc_info.value.http_status == 422
        assert "PHP Parse error" in str(exc_info.value)

    async def test_timeout(self, installed):
        process = fake_process(0, hang=True)

        with patch(
            "services.syntax_checker.asyncio.create_subprocess_exec",
            AsyncMock(return_value=process),
        ):
            with pytest.raises(AnalysisError, match="timed out"):
                await SyntaxChecker(timeout=0.01).check("<?php echo 1;")

        process.kill.assert_called_once()
