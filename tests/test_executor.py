import asyncio

import pytest

from member_search.config import SearchSettings
from member_search.exceptions import ConnectionLost, ToolFailure
from member_search.executor import Environment, SshExecutor, ToolOutput


class FakeProcess:
    def __init__(self, returncode=0, stdout=b"", stderr=b"", delay=0):
        self.returncode = None
        self._returncode = returncode
        self._stdout = stdout
        self._stderr = stderr
        self._delay = delay
        self.killed = False

    async def communicate(self):
        await asyncio.sleep(self._delay)
        self.returncode = self._returncode
        return self._stdout, self._stderr

    def kill(self):
        self.killed = True
        self.returncode = -9

    async def wait(self):
        return self.returncode


@pytest.fixture
def spawn(monkeypatch):
    """Replace subprocess creation and record the argv of each call."""
    calls = []

    def install(process=None, error=None):
        async def fake_create_subprocess_exec(*argv, **kwargs):
            calls.append(argv)
            if error is not None:
                raise error
            return process

        monkeypatch.setattr(asyncio, "create_subprocess_exec", fake_create_subprocess_exec)
        return calls

    return install


def test_build_argv_for_each_environment():
    executor = SshExecutor("ibmi.example.com", user="dev", port=2222)

    assert executor.build_argv("pfgrep -r 'x' /QSYS.LIB/A.LIB", Environment.pase) == [
        "ssh",
        "-o",
        "BatchMode=yes",
        "-p",
        "2222",
        "dev@ibmi.example.com",
        "pfgrep -r 'x' /QSYS.LIB/A.LIB",
    ]
    assert executor.build_argv("ls /home", Environment.qsh)[-1] == "/usr/bin/qsh -c 'ls /home'"
    assert executor.build_argv("DSPLIBL", Environment.ile)[-1] == (
        "/QOpenSys/usr/bin/system 'DSPLIBL'"
    )


def test_destination_without_user():
    assert SshExecutor("ibmi").destination == "ibmi"


def test_from_settings():
    executor = SshExecutor.from_settings(
        SearchSettings(host="ibmi", user="dev", port=2200, ssh_path="/usr/bin/ssh", timeout=9)
    )
    assert executor.destination == "dev@ibmi"
    assert executor.port == 2200
    assert executor.ssh_path == "/usr/bin/ssh"
    assert executor.timeout == 9


def test_from_settings_requires_host():
    with pytest.raises(ValueError):
        SshExecutor.from_settings(SearchSettings())


@pytest.mark.asyncio
async def test_send_returns_tool_output(spawn):
    calls = spawn(FakeProcess(returncode=0, stdout=b"/QSYS.LIB/A.LIB/F.FILE/M.MBR:1:x\n"))

    output = await SshExecutor("ibmi").send("pfgrep 'x' /QSYS.LIB/A.LIB")

    assert output == ToolOutput(exit_code=0, stdout="/QSYS.LIB/A.LIB/F.FILE/M.MBR:1:x\n", stderr="")
    assert calls[0][-1] == "pfgrep 'x' /QSYS.LIB/A.LIB"


@pytest.mark.asyncio
async def test_send_passes_tool_failures_through(spawn):
    spawn(FakeProcess(returncode=2, stderr=b"Permission denied"))

    output = await SshExecutor("ibmi").send("pfgrep 'x' /QSYS.LIB/A.LIB")

    assert output.exit_code == 2
    assert output.stderr == "Permission denied"


@pytest.mark.asyncio
async def test_ssh_failure_is_connection_lost(spawn):
    spawn(FakeProcess(returncode=255, stderr=b"ssh: connect to host ibmi port 22: Connection refused"))

    with pytest.raises(ConnectionLost):
        await SshExecutor("ibmi").send("pfgrep 'x' /QSYS.LIB/A.LIB")


@pytest.mark.asyncio
async def test_missing_ssh_client_is_connection_lost(spawn):
    spawn(error=FileNotFoundError("ssh"))

    with pytest.raises(ConnectionLost):
        await SshExecutor("ibmi").send("pfgrep 'x' /QSYS.LIB/A.LIB")


@pytest.mark.asyncio
async def test_timeout_kills_process(spawn):
    process = FakeProcess(delay=10)
    spawn(process)

    with pytest.raises(ToolFailure):
        await SshExecutor("ibmi", timeout=0.01).send("pfgrep 'x' /QSYS.LIB/A.LIB")

    assert process.killed


@pytest.mark.asyncio
async def test_cancel_kills_process(spawn):
    process = FakeProcess(delay=10)
    spawn(process)

    task = asyncio.create_task(SshExecutor("ibmi").send("pfgrep 'x' /QSYS.LIB/A.LIB"))
    await asyncio.sleep(0.01)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert process.killed
