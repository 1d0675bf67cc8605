import asyncio
import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass
from logging import getLogger
from typing import List, Optional

from member_search.command import quote_argument
from member_search.config import SearchSettings
from member_search.exceptions import ConnectionLost, ToolFailure

logger = getLogger(__name__)

SSH_CONNECTION_ERROR = 255


class Environment(str, enum.Enum):
    ile = "ile"
    qsh = "qsh"
    pase = "pase"


@dataclass
class ToolOutput:
    exit_code: int
    stdout: str = ""
    stderr: str = ""


class RemoteExecutor(ABC):
    """Runs a command on the IBM i system."""

    @abstractmethod
    async def send(self, command: str, environment: Environment = Environment.pase) -> ToolOutput:
        """Run a command and return its exit code and output.

        Args:
            command: Command line to run
            environment: Where the command runs on the remote system

        Returns:
            The command's exit code, stdout and stderr

        Raises:
            ConnectionLost: If the remote channel itself failed
            asyncio.CancelledError: If the call was cancelled
        """
        pass


class SshExecutor(RemoteExecutor):
    """Runs commands through the local ssh client, which lands in PASE on IBM i."""

    def __init__(
        self,
        host: str,
        user: str = "",
        port: int = 22,
        ssh_path: str = "ssh",
        timeout: Optional[float] = None,
    ) -> None:
        """Initialize the SSH executor.

        Args:
            host: IBM i host name
            user: Optional user profile to log in as
            port: SSH port
            ssh_path: Path to the ssh client
            timeout: Seconds before a command is killed, or None to wait forever
        """
        self.host = host
        self.user = user
        self.port = port
        self.ssh_path = ssh_path
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: SearchSettings) -> "SshExecutor":
        if not settings.host:
            raise ValueError("MEMBER_SEARCH_HOST is not set")
        return cls(
            host=settings.host,
            user=settings.user,
            port=settings.port,
            ssh_path=settings.ssh_path,
            timeout=settings.timeout,
        )

    @property
    def destination(self) -> str:
        return f"{self.user}@{self.host}" if self.user else self.host

    def build_argv(self, command: str, environment: Environment) -> List[str]:
        if environment == Environment.qsh:
            command = f"/usr/bin/qsh -c {quote_argument(command)}"
        elif environment == Environment.ile:
            command = f"/QOpenSys/usr/bin/system {quote_argument(command)}"

        return [
            self.ssh_path,
            "-o",
            "BatchMode=yes",
            "-p",
            str(self.port),
            self.destination,
            command,
        ]

    async def send(self, command: str, environment: Environment = Environment.pase) -> ToolOutput:
        argv = self.build_argv(command, environment)
        logger.debug(f"Running on {self.host}: {command}")

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ConnectionLost(f"Could not start {self.ssh_path}: {e}") from e

        try:
            async with asyncio.timeout(self.timeout):
                stdout, stderr = await process.communicate()
        except asyncio.TimeoutError:
            await self._kill(process)
            raise ToolFailure(f"Command timed out after {self.timeout} seconds")
        except asyncio.CancelledError:
            await self._kill(process)
            raise

        stdout_str = stdout.decode("utf-8", errors="replace") if stdout else ""
        stderr_str = stderr.decode("utf-8", errors="replace") if stderr else ""

        if process.returncode == SSH_CONNECTION_ERROR:
            logger.warning(f"ssh to {self.host} failed: {stderr_str.strip()}")
            raise ConnectionLost(
                f"Connection lost to IBM i system: {stderr_str.strip() or self.host}"
            )

        return ToolOutput(exit_code=process.returncode, stdout=stdout_str, stderr=stderr_str)

    @staticmethod
    async def _kill(process: asyncio.subprocess.Process) -> None:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()
