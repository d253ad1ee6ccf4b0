import asyncio
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from mountify.config import SSHFS_WIN_MSI_URL, Settings
from mountify.core.events.event_bus import DomainEventBus
from mountify.core.exceptions import CommandLaunchError, DownloadFailureError
from mountify.models import DependencyStatus
from mountify.services.process_runner import CommandResult, ProcessRunner
from mountify.services.provisioning import (
    DependencyProvisioner,
    InstallerDownloader,
    build_prerequisites,
)
from mountify.services.provisioning.installer_commands import (
    build_install_plan,
    build_uninstall_command,
)


def touch(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"")


@pytest.fixture
def environ(tmp_path):
    return {
        "ProgramFiles(x86)": str(tmp_path / "pf86"),
        "ProgramFiles": str(tmp_path / "pf"),
    }


@pytest.fixture
def winfsp_installed(tmp_path):
    touch(tmp_path / "pf86" / "WinFsp" / "bin" / "launchctl-x64.exe")


@pytest.fixture
def sshfs_installed(tmp_path):
    touch(tmp_path / "pf" / "SSHFS-Win" / "bin" / "sshfs-win.exe")


@pytest.fixture
def downloader() -> AsyncMock:
    mock = AsyncMock(spec=InstallerDownloader)
    mock.download.side_effect = lambda url, destination: destination
    return mock


@pytest.fixture
def runner() -> AsyncMock:
    mock = AsyncMock(spec=ProcessRunner)
    mock.run.return_value = CommandResult(args=(), returncode=0, stdout="", stderr="")
    return mock


@pytest.fixture
def event_bus() -> AsyncMock:
    return AsyncMock(spec=DomainEventBus)


@pytest.fixture
def provisioner(tmp_path, environ, downloader, runner, event_bus) -> DependencyProvisioner:
    return DependencyProvisioner(
        prerequisites=build_prerequisites(Settings()),
        downloader=downloader,
        runner=runner,
        event_bus=event_bus,
        download_directory=str(tmp_path / "downloads"),
        environ=environ,
    )


def statuses(event_bus: AsyncMock):
    return [(c.args[0].status, c.args[0].message) for c in event_bus.publish.await_args_list]


@pytest.mark.asyncio
async def test_check_all_reports_presence(provisioner, runner, winfsp_installed):
    first = await provisioner.check_all()
    second = await provisioner.check_all()

    assert first == {"winfsp": True, "sshfs": False}
    assert second == first
    runner.run.assert_not_awaited()


@pytest.mark.asyncio
async def test_winfsp_falls_back_to_program_files(tmp_path, environ, provisioner):
    touch(tmp_path / "pf" / "WinFsp" / "bin" / "launchctl-x64.exe")
    del environ["ProgramFiles(x86)"]

    assert (await provisioner.check_all())["winfsp"] is True


@pytest.mark.asyncio
async def test_only_missing_prerequisite_is_installed(
    tmp_path, provisioner, downloader, runner, event_bus, winfsp_installed
):
    assert await provisioner.install_missing() is True

    destination = str(tmp_path / "downloads" / "sshfs-win.msi")
    downloader.download.assert_awaited_once_with(SSHFS_WIN_MSI_URL, destination)

    runner.run.assert_awaited_once()
    plan = build_install_plan([destination])
    assert len(plan.directives) == 1
    assert list(runner.run.await_args.args[0]) == plan.args

    assert statuses(event_bus) == [
        (DependencyStatus.DOWNLOADING, "Downloading SSHFS-Win..."),
        (DependencyStatus.INSTALLING, "Installing dependencies (approve UAC prompt)..."),
        (DependencyStatus.COMPLETE, "Installation complete!"),
    ]


@pytest.mark.asyncio
async def test_both_missing_use_one_elevated_session(provisioner, downloader, runner):
    assert await provisioner.install_missing() is True

    assert downloader.download.await_count == 2
    runner.run.assert_awaited_once()


@pytest.mark.asyncio
async def test_nothing_missing_runs_nothing(
    provisioner, downloader, runner, winfsp_installed, sshfs_installed
):
    assert await provisioner.install_missing() is True

    downloader.download.assert_not_awaited()
    runner.run.assert_not_awaited()


@pytest.mark.asyncio
async def test_installer_failure_publishes_error(provisioner, runner, event_bus, winfsp_installed):
    runner.run.return_value = CommandResult(
        args=(), returncode=1603, stdout="", stderr="first\nsecond\n"
    )

    assert await provisioner.install_missing() is False

    status, message = statuses(event_bus)[-1]
    assert status == DependencyStatus.ERROR
    assert message == "Installation failed with code 1603. stderr: first\nsecond"


@pytest.mark.asyncio
async def test_download_failure_skips_installation(
    provisioner, downloader, runner, event_bus, winfsp_installed
):
    downloader.download.side_effect = DownloadFailureError("Download failed with HTTP 404")

    assert await provisioner.install_missing() is False

    runner.run.assert_not_awaited()
    assert statuses(event_bus)[-1] == (DependencyStatus.ERROR, "Download failed with HTTP 404")


@pytest.mark.asyncio
async def test_concurrent_install_is_rejected(provisioner, downloader, event_bus, winfsp_installed):
    release = asyncio.Event()

    async def slow_download(url, destination):
        await release.wait()
        return destination

    downloader.download.side_effect = slow_download

    first = asyncio.create_task(provisioner.install_missing())
    while not provisioner.is_installing():
        await asyncio.sleep(0)
    published_before = event_bus.publish.await_count

    assert await provisioner.install_missing() is False
    assert event_bus.publish.await_count == published_before

    release.set()
    assert await first is True
    assert downloader.download.await_count == 1


@pytest.mark.asyncio
async def test_uninstall_reports_success_whatever_the_exit_code(provisioner, runner, event_bus):
    runner.run.return_value = CommandResult(args=(), returncode=1605, stdout="", stderr="")

    result = await provisioner.uninstall("sshfs")

    assert result.success is True
    assert list(runner.run.await_args.args[0]) == build_uninstall_command("SSHFS-Win")
    assert statuses(event_bus) == [
        (DependencyStatus.UNINSTALLING, "Uninstalling SSHFS-Win..."),
        (DependencyStatus.UNINSTALL_COMPLETE, "SSHFS-Win uninstalled successfully"),
    ]


@pytest.mark.asyncio
async def test_uninstall_accepts_product_name(provisioner, runner):
    result = await provisioner.uninstall("WinFsp")

    assert result.success is True
    assert list(runner.run.await_args.args[0]) == build_uninstall_command("WinFsp")


@pytest.mark.asyncio
async def test_uninstall_unknown_dependency(provisioner, runner, event_bus):
    result = await provisioner.uninstall("notepad")

    assert result.success is False
    assert "notepad" in result.error
    runner.run.assert_not_awaited()
    event_bus.publish.assert_not_awaited()


@pytest.mark.asyncio
async def test_uninstall_that_cannot_start_is_an_error(provisioner, runner, event_bus):
    runner.run.side_effect = CommandLaunchError(["powershell.exe"], "access denied")

    result = await provisioner.uninstall("winfsp")

    assert result.success is False
    assert statuses(event_bus)[-1] == (DependencyStatus.ERROR, "Failed to uninstall WinFsp")


@pytest.mark.asyncio
async def test_unwritable_download_directory_publishes_error(
    tmp_path, environ, runner, event_bus, winfsp_installed
):
    blocker = tmp_path / "blocker"
    blocker.write_text("file", encoding="utf-8")
    provisioner = DependencyProvisioner(
        prerequisites=build_prerequisites(Settings()),
        downloader=InstallerDownloader(timeout_seconds=5),
        runner=runner,
        event_bus=event_bus,
        download_directory=str(blocker / "downloads"),
        environ=environ,
    )

    assert await provisioner.install_missing() is False

    runner.run.assert_not_awaited()
    published = statuses(event_bus)
    assert published[0] == (DependencyStatus.DOWNLOADING, "Downloading SSHFS-Win...")
    assert published[-1][0] == DependencyStatus.ERROR
    assert "Could not write" in published[-1][1]
    assert not provisioner.is_installing()


@pytest.mark.asyncio
async def test_unexpected_error_still_ends_with_error_status(
    provisioner, downloader, event_bus, winfsp_installed
):
    downloader.download.side_effect = RuntimeError("disk vanished")

    assert await provisioner.install_missing() is False

    assert statuses(event_bus)[-1] == (
        DependencyStatus.ERROR,
        "Installation failed: disk vanished",
    )
    assert not provisioner.is_installing()
