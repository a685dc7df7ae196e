"""Tests for the capture adapter."""

import asyncio
import importlib
import os
import sys
from unittest.mock import patch

import pytest

from rmshot.plugins.remarkable.capture import (
    RESNAP_EXECUTABLE,
    CaptureResult,
    build_arguments,
    capture,
    derive_relative_reference,
    strip_trailing_newline,
)
from rmshot.plugins.remarkable.config_loader import CaptureConfig
from rmshot.plugins.remarkable.errors import (
    CaptureError,
    NonZeroExit,
    PathDerivationFailed,
    SpawnFailed,
    UnsupportedStorage,
)
from rmshot.plugins.remarkable.process import InvocationRequest, InvocationResult
from rmshot.plugins.remarkable.storage import FileSystemStorage

# The package namespace re-exports the capture() function under the module's name
capture_module = importlib.import_module("rmshot.plugins.remarkable.capture")

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="fake tool relies on a shebang script")


def fake_invoker(stdout="", stderr="", error=None):
    """Invoker stand-in that records its calls."""
    calls = []

    async def _invoke(executable, arguments):
        calls.append((executable, list(arguments)))
        if error is not None:
            raise error
        return InvocationResult(stdout=stdout, stderr=stderr)

    _invoke.calls = calls
    return _invoke


class RemoteStorage:
    """Storage without local filesystem access."""

    def read(self, path):
        return b""


class TestBuildArguments:

    def test_arguments_from_config(self):
        config = CaptureConfig(device_address="192.168.1.20", target_directory="sketches")
        assert build_arguments(config, "/vault") == [
            "--ip-address", "192.168.1.20",
            "--directory", os.path.join("/vault", "sketches"),
        ]

    def test_empty_target_directory_joins_empty_segment(self):
        config = CaptureConfig(device_address="10.11.99.1", target_directory="")
        args = build_arguments(config, "/vault")
        assert args[3] == os.path.join("/vault", "")


class TestStripTrailingNewline:

    def test_strips_one_newline(self):
        assert strip_trailing_newline("/vault/a.png\n") == "/vault/a.png"

    def test_only_first_newline_is_stripped(self):
        assert strip_trailing_newline("/vault/a.png\n\n") == "/vault/a.png\n"

    def test_embedded_whitespace_is_preserved(self):
        assert strip_trailing_newline(" /vault/a b.png \n") == " /vault/a b.png "
        assert strip_trailing_newline("line1\nline2") == "line1\nline2"

    def test_no_newline_is_noop_and_idempotent(self):
        once = strip_trailing_newline("/vault/a.png")
        assert once == "/vault/a.png"
        assert strip_trailing_newline(once) == once

    def test_empty_output(self):
        assert strip_trailing_newline("") == ""


class TestDeriveRelativeReference:

    def test_reference_starts_at_target_directory(self):
        ref = derive_relative_reference(
            "/vault/remarkable_screenshots/img001.png", "remarkable_screenshots", "/vault"
        )
        assert ref == "/remarkable_screenshots/img001.png"

    def test_last_occurrence_wins(self):
        path = "/home/me/shots/vault/shots/img.png"
        assert derive_relative_reference(path, "shots", "/home/me/shots/vault") == "/shots/img.png"

    def test_reference_is_suffix_of_absolute_path(self):
        path = "/data/notes/remarkable_screenshots/2024/img.png"
        ref = derive_relative_reference(path, "remarkable_screenshots", "/data/notes")
        assert path.endswith(ref)
        assert ref.startswith("/remarkable_screenshots/")

    def test_missing_segment_fails(self):
        with pytest.raises(PathDerivationFailed) as exc_info:
            derive_relative_reference("/tmp/img001.png", "remarkable_screenshots", "/vault")
        assert exc_info.value.absolute_path == "/tmp/img001.png"
        assert exc_info.value.target_directory == "remarkable_screenshots"

    def test_segment_must_match_whole_directory_name(self):
        with pytest.raises(PathDerivationFailed):
            derive_relative_reference(
                "/vault/remarkable_screenshots_old/img.png", "remarkable_screenshots", "/vault"
            )

    def test_trailing_slash_in_target_directory(self):
        ref = derive_relative_reference("/vault/shots/img.png", "shots/", "/vault")
        assert ref == "/shots/img.png"

    def test_nested_target_directory(self):
        ref = derive_relative_reference("/vault/media/rm/img.png", "media/rm", "/vault")
        assert ref == "/media/rm/img.png"

    def test_backslash_separators(self):
        ref = derive_relative_reference(
            "C:\\vault\\remarkable_screenshots\\img.png", "remarkable_screenshots", "C:\\vault"
        )
        assert ref == "/remarkable_screenshots/img.png"

    def test_empty_target_directory_uses_base_path(self):
        assert derive_relative_reference("/vault/img.png", "", "/vault") == "/img.png"
        assert derive_relative_reference("/vault/img.png", "", "/vault/") == "/img.png"

    def test_empty_target_directory_outside_base_path_fails(self):
        with pytest.raises(PathDerivationFailed):
            derive_relative_reference("/elsewhere/img.png", "", "/vault")


class TestCapture:
    """Tests for capture() with a stand-in invoker."""

    @pytest.mark.asyncio
    async def test_capture_returns_path_and_reference(self):
        invoker = fake_invoker(stdout="/vault/remarkable_screenshots/img001.png\n")
        config = CaptureConfig(device_address="10.11.99.1", target_directory="remarkable_screenshots")

        result = await capture(config, "/vault", invoker=invoker)

        assert result == CaptureResult(
            absolute_path="/vault/remarkable_screenshots/img001.png",
            relative_reference="/remarkable_screenshots/img001.png",
        )
        assert invoker.calls == [(
            RESNAP_EXECUTABLE,
            ["--ip-address", "10.11.99.1",
             "--directory", os.path.join("/vault", "remarkable_screenshots")],
        )]

    @pytest.mark.asyncio
    async def test_stderr_kept_for_diagnostics(self):
        invoker = fake_invoker(stdout="/vault/shots/a.png\n", stderr="slow connection\n")
        config = CaptureConfig(device_address="10.11.99.1", target_directory="shots")

        result = await capture(config, "/vault", invoker=invoker)

        assert result.stderr == "slow connection\n"
        assert result.to_dict() == {"path": "/vault/shots/a.png", "reference": "/shots/a.png"}

    @pytest.mark.asyncio
    async def test_custom_executable(self):
        invoker = fake_invoker(stdout="/vault/shots/a.png")
        config = CaptureConfig(device_address="10.11.99.1", target_directory="shots")

        await capture(config, "/vault", executable="/opt/bin/resnap-rs", invoker=invoker)

        assert invoker.calls[0][0] == "/opt/bin/resnap-rs"

    @pytest.mark.asyncio
    async def test_storage_with_local_access(self, vault):
        stdout = os.path.join(str(vault), "shots", "a.png") + "\n"
        invoker = fake_invoker(stdout=stdout)
        config = CaptureConfig(device_address="10.11.99.1", target_directory="shots")

        result = await capture(config, FileSystemStorage(vault), invoker=invoker)

        assert result.relative_reference == "/shots/a.png"
        assert invoker.calls[0][1][3] == os.path.join(os.path.abspath(vault), "shots")

    @pytest.mark.asyncio
    async def test_unsupported_storage_fails_before_spawning(self):
        invoker = fake_invoker(stdout="/vault/shots/a.png\n")

        with pytest.raises(UnsupportedStorage) as exc_info:
            await capture(CaptureConfig(), RemoteStorage(), invoker=invoker)

        assert isinstance(exc_info.value.storage, RemoteStorage)
        assert invoker.calls == []

    @pytest.mark.asyncio
    async def test_nonzero_exit_propagates_verbatim(self):
        request = InvocationRequest(RESNAP_EXECUTABLE, ())
        error = NonZeroExit(request, 1, "partial", "Error: timeout")
        invoker = fake_invoker(error=error)

        with pytest.raises(NonZeroExit) as exc_info:
            await capture(CaptureConfig(), "/vault", invoker=invoker)

        assert exc_info.value is error
        assert exc_info.value.code == 1
        assert exc_info.value.stderr == "Error: timeout"

    @pytest.mark.asyncio
    async def test_spawn_failure_skips_path_derivation(self):
        request = InvocationRequest(RESNAP_EXECUTABLE, ())
        error = SpawnFailed(request, FileNotFoundError(2, "No such file"))
        invoker = fake_invoker(error=error)

        with patch.object(capture_module, "derive_relative_reference") as derive:
            with pytest.raises(SpawnFailed) as exc_info:
                await capture(CaptureConfig(), "/vault", invoker=invoker)

        assert exc_info.value is error
        derive.assert_not_called()

    @pytest.mark.asyncio
    async def test_nul_byte_in_device_address_is_capture_error(self, vault):
        config = CaptureConfig(device_address="10.11.99.1\0", target_directory="shots")

        with pytest.raises(CaptureError) as exc_info:
            await capture(config, str(vault), executable=sys.executable)

        assert isinstance(exc_info.value, SpawnFailed)

    @pytest.mark.asyncio
    async def test_output_outside_target_directory_fails(self):
        invoker = fake_invoker(stdout="/tmp/img001.png\n")
        config = CaptureConfig(device_address="10.11.99.1", target_directory="remarkable_screenshots")

        with pytest.raises(PathDerivationFailed):
            await capture(config, "/vault", invoker=invoker)


@posix_only
class TestCaptureWithTool:
    """End-to-end tests against a fake resnap-rs script."""

    @pytest.mark.asyncio
    async def test_capture_writes_file_into_vault(self, fake_resnap, vault):
        config = CaptureConfig(device_address="10.11.99.1", target_directory="remarkable_screenshots")
        storage = FileSystemStorage(vault)

        result = await capture(config, storage, executable=fake_resnap)

        assert result.relative_reference == "/remarkable_screenshots/10_11_99_1.png"
        assert result.absolute_path.endswith(result.relative_reference)
        assert os.path.isfile(result.absolute_path)
        assert storage.exists(result.relative_reference)

    @pytest.mark.asyncio
    async def test_failing_tool_raises_nonzero_exit(self, failing_resnap, vault):
        with pytest.raises(NonZeroExit) as exc_info:
            await capture(CaptureConfig(), vault, executable=failing_resnap)

        assert exc_info.value.code == 2
        assert exc_info.value.stdout == "connecting\n"
        assert exc_info.value.stderr == "Error: connection refused\n"

    @pytest.mark.asyncio
    async def test_missing_tool_raises_spawn_failed(self, tmp_path, vault):
        with pytest.raises(SpawnFailed):
            await capture(CaptureConfig(), vault, executable=str(tmp_path / "missing"))

    @pytest.mark.asyncio
    async def test_concurrent_captures_are_independent(self, fake_resnap, vault):
        first = CaptureConfig(device_address="10.0.0.1", target_directory="left")
        second = CaptureConfig(device_address="10.0.0.2", target_directory="right")

        a, b = await asyncio.gather(
            capture(first, vault, executable=fake_resnap),
            capture(second, vault, executable=fake_resnap),
        )

        assert a.relative_reference == "/left/10_0_0_1.png"
        assert b.relative_reference == "/right/10_0_0_2.png"
        assert os.path.isfile(a.absolute_path)
        assert os.path.isfile(b.absolute_path)
