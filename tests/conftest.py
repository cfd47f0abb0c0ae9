"""Shared fixtures: a scripted executor that records every command it is asked to run."""

import pytest

from print_gateway.config import GatewayConfig
from print_gateway.errors import CommandUnavailable
from print_gateway.executor import CommandResult
from print_gateway.gateway import PrintGateway


class Call:
    def __init__(self, command, args, timeout):
        self.command = command
        self.args = args
        self.timeout = timeout

    def __repr__(self):
        return f"Call({self.command!r}, {self.args!r}, {self.timeout!r})"


class FakeExecutor:
    """Returns scripted output keyed by command name and leading arguments."""

    def __init__(self):
        self.calls = []
        self._responses = []

    def on(self, command, *args_prefix, stdout="", stderr="", error=None, action=None):
        # Later registrations take precedence over earlier ones.
        self._responses.insert(0, (command, list(args_prefix), stdout, stderr, error, action))
        return self

    def run(self, command, args, timeout):
        args = list(args)
        self.calls.append(Call(command, args, timeout))
        for cmd, prefix, stdout, stderr, error, action in self._responses:
            if cmd == command and args[:len(prefix)] == prefix:
                if action is not None:
                    action(args)
                if error is not None:
                    raise error
                return CommandResult(stdout, stderr, 0)
        raise CommandUnavailable(f"{command} is not scripted", command=command)

    def commands(self):
        return [call.command for call in self.calls]


@pytest.fixture
def executor():
    return FakeExecutor()


@pytest.fixture
def config(tmp_path):
    return GatewayConfig(
        storage_root=str(tmp_path / "store"),
        max_content_length=1024 * 1024,
        secret_key="test-secret",
    )


@pytest.fixture
def gateway(config, executor):
    return PrintGateway(config, executor)


PRINTER_LIST = (
    "printer Office_Printer is idle.  enabled since Mon 01 Jan 2024 10:00:00 AM UTC\n"
    "printer Lab-2 now printing Lab-2-17.  enabled since Mon 01 Jan 2024 09:00:00 AM UTC\n"
    "\n"
)

JOB_LISTING = (
    "Office_Printer-40 alice 1024 Mon 01 Jan 2024 09:00:00 AM UTC - completed\n"
    "Office_Printer-41 bob 2048 Mon 01 Jan 2024 09:30:00 AM UTC - cancelled\n"
    "Office_Printer-42 alice 4096 Mon 01 Jan 2024 10:00:00 AM UTC\n"
    "Office_Printer-43 carol 512 Mon 01 Jan 2024 10:05:00 AM UTC - held\n"
    "Lab-2-17 dave 8192 Mon 01 Jan 2024 10:10:00 AM UTC - printing\n"
    "Lab-2-18 dave 100 Mon 01 Jan 2024 10:20:00 AM UTC - aborted\n"
)
