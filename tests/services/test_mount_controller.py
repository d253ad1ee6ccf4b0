"""
MountController tests. The OS is replaced by an AsyncMock ProcessRunner whose
answers are keyed on the ``net use`` argument list, so the exact commands the
controller issues are asserted end to end through NetUseClient.
"""

from typing import Callable, List
from unittest.mock import AsyncMock

import pytest

from mountify.core.events.event_bus import DomainEventBus
from mountify.core.events.mount_events import (
    MountResultEvent,
    ServersUpdatedEvent,
    TrayRefreshRequestedEvent,
    UnmountResultEvent,
)
from mountify.core.exceptions import CommandLaunchError
from mountify.core.mount_state_machine import MountStateMachine
from mountify.core.server_registry import ServerRegistry
from mountify.models import MountPhase, ServerProfile
from mountify.services.network_mount import MountController, NetUseClient
from mountify.services.network_mount.mount_controller import (
    MOUNT_VERIFICATION_FAILED,
    UNMOUNT_VERIFICATION_FAILED,
)
from mountify.services.process_runner import CommandResult, ProcessRunner

UNC = "\\\\sshfs\\alice@203.0.113.5!22/home/alice"


def ok(args, stdout=""):
    return CommandResult(args=tuple(args), returncode=0, stdout=stdout, stderr="")


def failed(args, returncode=2, stderr=""):
    return CommandResult(args=tuple(args), returncode=returncode, stdout="", stderr=stderr)


def os_answers(map_result: Callable = ok, query_ok: bool = True):
    """side_effect for ProcessRunner.run simulating net.exe."""

    async def run(args, timeout=None, redact=()):
        args = list(args)
        if "/delete" in args:
            return ok(args)
        if len(args) == 3:
            return ok(args) if query_ok else failed(args)
        return map_result(args)

    return run


@pytest.fixture
def runner() -> AsyncMock:
    mock = AsyncMock(spec=ProcessRunner)
    mock.run.side_effect = os_answers()
    return mock


@pytest.fixture
def event_bus() -> AsyncMock:
    return AsyncMock(spec=DomainEventBus)


@pytest.fixture
def registry(tmp_path) -> ServerRegistry:
    return ServerRegistry(str(tmp_path / "servers.json"))


@pytest.fixture
def state_machine() -> MountStateMachine:
    return MountStateMachine()


@pytest.fixture
def controller(registry, runner, state_machine, event_bus) -> MountController:
    return MountController(
        registry=registry,
        net_use=NetUseClient(runner),
        state_machine=state_machine,
        event_bus=event_bus,
        settle_delay_seconds=0,
    )


def published(event_bus: AsyncMock) -> List:
    return [c.args[0] for c in event_bus.publish.await_args_list]


def commands(runner: AsyncMock) -> List[List[str]]:
    return [list(c.args[0]) for c in runner.run.await_args_list]


@pytest.mark.asyncio
async def test_mount_success_issues_clean_map_verify(
    controller, registry, runner, event_bus, alice_profile
):
    saved = await registry.save(alice_profile)

    result = await controller.mount(saved.id)

    assert result.success is True
    assert result.error is None
    assert commands(runner) == [
        ["net", "use", "S:", "/delete", "/y"],
        ["net", "use", "S:", UNC, "pw"],
        ["net", "use", "S:"],
    ]
    # The password is always passed for redaction when mapping
    assert runner.run.await_args_list[1].kwargs["redact"] == ["pw"]
    assert (await registry.get_by_id(saved.id)).is_mounted is True

    events = published(event_bus)
    assert [type(e) for e in events] == [
        MountResultEvent,
        ServersUpdatedEvent,
        TrayRefreshRequestedEvent,
    ]
    assert events[0].success is True
    assert events[0].drive_letter == "S"
    assert events[1].servers[0]["is_mounted"] is True
    assert "password" not in events[1].servers[0]
    assert controller.current_phase(saved.id) == MountPhase.IDLE


@pytest.mark.asyncio
async def test_mount_without_password_omits_password_argument(controller, registry, runner):
    saved = await registry.save(
        ServerProfile(
            name="Key auth",
            host="203.0.113.5",
            username="alice",
            drive_letter="S",
            remote_path="/home/alice",
        )
    )

    await controller.mount(saved.id)

    assert commands(runner)[1] == ["net", "use", "S:", UNC]
    assert runner.run.await_args_list[1].kwargs["redact"] == [""]


@pytest.mark.asyncio
async def test_mount_unknown_server_does_nothing(controller, runner, event_bus):
    result = await controller.mount("abc")

    assert result.success is False
    assert result.error == "Server not found"
    runner.run.assert_not_awaited()
    event_bus.publish.assert_not_awaited()


@pytest.mark.asyncio
async def test_mount_failure_redacts_password(controller, registry, runner, event_bus):
    password = "p$ss(w)rd+"
    saved = await registry.save(
        ServerProfile(
            name="Bob",
            host="files.example.com",
            username="bob",
            password=password,
            drive_letter="T",
        )
    )
    runner.run.side_effect = os_answers(
        map_result=lambda args: failed(
            args, stderr=f"System error 1326 for {password}\r\n\r\nMore details {password}"
        )
    )

    result = await controller.mount(saved.id)

    assert result.success is False
    assert result.error == "Command failed with exit code 2: System error 1326 for ***"
    assert password not in result.error
    # No verification after a failed map
    assert len(commands(runner)) == 2
    assert (await registry.get_by_id(saved.id)).is_mounted is False

    events = published(event_bus)
    assert len(events) == 1
    assert isinstance(events[0], MountResultEvent)
    assert events[0].error == result.error


@pytest.mark.asyncio
async def test_mount_exit_zero_but_drive_missing_is_a_failure(
    controller, registry, runner, event_bus, alice_profile
):
    saved = await registry.save(alice_profile)
    runner.run.side_effect = os_answers(query_ok=False)

    result = await controller.mount(saved.id)

    assert result.success is False
    assert result.error == MOUNT_VERIFICATION_FAILED
    assert (await registry.get_by_id(saved.id)).is_mounted is False
    assert [type(e) for e in published(event_bus)] == [MountResultEvent]


@pytest.mark.asyncio
async def test_mount_launch_failure_releases_server(
    controller, registry, runner, state_machine, alice_profile
):
    saved = await registry.save(alice_profile)

    async def run(args, timeout=None, redact=()):
        if "/delete" in args:
            return ok(args)
        raise CommandLaunchError(args, "The system cannot find the file specified")

    runner.run.side_effect = run

    result = await controller.mount(saved.id)

    assert result.success is False
    assert result.error == "Could not start net: The system cannot find the file specified"
    assert not state_machine.is_busy(saved.id)


@pytest.mark.asyncio
async def test_overlapping_mount_is_rejected(
    controller, registry, runner, state_machine, event_bus, alice_profile
):
    saved = await registry.save(alice_profile)
    await state_machine.begin(saved.id, MountPhase.FORCE_UNMOUNTING)

    result = await controller.mount(saved.id)

    assert result.success is False
    assert result.error == "Another operation is already in progress for this server"
    runner.run.assert_not_awaited()
    events = published(event_bus)
    assert len(events) == 1 and events[0].success is False
    # The running operation keeps its claim
    assert state_machine.current_phase(saved.id) == MountPhase.FORCE_UNMOUNTING


@pytest.mark.asyncio
async def test_unmount_success(controller, registry, runner, event_bus, alice_profile):
    saved = await registry.save(alice_profile)
    await registry.set_mounted(saved.id, True)
    runner.run.side_effect = os_answers(query_ok=False)

    result = await controller.unmount(saved.id)

    assert result.success is True
    assert commands(runner) == [
        ["net", "use", "S:", "/delete", "/y"],
        ["net", "use", UNC, "/delete", "/y"],
        ["net", "use", "S:"],
    ]
    assert (await registry.get_by_id(saved.id)).is_mounted is False
    events = published(event_bus)
    assert [type(e) for e in events] == [
        UnmountResultEvent,
        ServersUpdatedEvent,
        TrayRefreshRequestedEvent,
    ]


@pytest.mark.asyncio
async def test_unmount_drive_still_present_is_a_failure(
    controller, registry, runner, event_bus, alice_profile
):
    saved = await registry.save(alice_profile)
    await registry.set_mounted(saved.id, True)

    result = await controller.unmount(saved.id)

    assert result.success is False
    assert result.error == UNMOUNT_VERIFICATION_FAILED
    assert (await registry.get_by_id(saved.id)).is_mounted is True
    assert [type(e) for e in published(event_bus)] == [UnmountResultEvent]


@pytest.mark.asyncio
async def test_unmount_unknown_server(controller, runner, event_bus):
    result = await controller.unmount("missing")

    assert result.error == "Server not found"
    runner.run.assert_not_awaited()
    event_bus.publish.assert_not_awaited()


@pytest.mark.asyncio
async def test_profile_removed_mid_mount_is_not_recorded(
    controller, registry, runner, event_bus, alice_profile, caplog
):
    saved = await registry.save(alice_profile)
    answer = os_answers()

    async def run(args, timeout=None, redact=()):
        if len(args) > 3 and "/delete" not in args:
            await registry.remove(saved.id)
        return await answer(args, timeout, redact)

    runner.run.side_effect = run

    with caplog.at_level("WARNING"):
        result = await controller.mount(saved.id)

    assert result.success is True
    assert "mount state not recorded" in caplog.text
    assert await registry.get_by_id(saved.id) is None
    assert [type(e) for e in published(event_bus)] == [MountResultEvent]
