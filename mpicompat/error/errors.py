# BSD 2-Clause License
#
# Copyright (c) 2021-2024, Hewlett Packard Enterprise
# All rights reserved.
#
# Redistribution and use in source and binary forms, with or without
# modification, are permitted provided that the following conditions are met:
#
# 1. Redistributions of source code must retain the above copyright notice, this
#    list of conditions and the following disclaimer.
#
# 2. Redistributions in binary form must reproduce the above copyright notice,
#    this list of conditions and the following disclaimer in the documentation
#    and/or other materials provided with the distribution.
#
# THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS"
# AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO, THE
# IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE ARE
# DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR CONTRIBUTORS BE LIABLE
# FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR CONSEQUENTIAL
# DAMAGES (INCLUDING, BUT NOT LIMITED TO, PROCUREMENT OF SUBSTITUTE GOODS OR
# SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS INTERRUPTION) HOWEVER
# CAUSED AND ON ANY THEORY OF LIABILITY, WHETHER IN CONTRACT, STRICT LIABILITY,
# OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE) ARISING IN ANY WAY OUT OF THE USE
# OF THIS SOFTWARE, EVEN IF ADVISED OF THE POSSIBILITY OF SUCH DAMAGE.

import typing as t

from .._core._install.buildenv import SetupError

# Exceptions


class MPICompatError(Exception):
    """Base mpicompat error"""


class ConfigurationError(MPICompatError):
    """Raised when an input file is malformed or contradictory, e.g. a
    matrix configuration mixing two MPI implementations"""


class CommandError(MPICompatError):
    """Base class for errors raised after running an external command.
    The captured output of the command is kept so that it can be saved
    for post-mortem analysis."""

    def __init__(self, message: str, stdout: str = "", stderr: str = "") -> None:
        super().__init__(message)
        self.stdout = stdout
        self.stderr = stderr


class BuildError(CommandError):
    """Raised when fetching, unpacking, configuring, compiling or
    installing a software package fails"""


class FetchError(BuildError):
    """Raised when the source of a package cannot be retrieved"""


class InconsistentLayoutError(BuildError):
    """Raised when an unpacked archive does not contain exactly one
    top-level entry"""


class UnsupportedFormatError(MPICompatError):
    """Raised when an archive format cannot be detected from its name"""


class ContainerError(CommandError):
    """Raised when a container image cannot be built, pulled, signed,
    pushed or inspected"""


class InvalidTemplateError(ContainerError):
    """Raised when a definition file template lacks a placeholder or
    when a value required to render it is unset"""


class LaunchError(CommandError):
    """Raised when a job cannot be submitted or did not complete"""


class LedgerError(MPICompatError):
    """Raised when a results file is malformed"""


class ShellError(LaunchError):
    """Raised when error arises from function within _core.utils.shell
    Closely related to error from subprocess(Popen) commands"""

    def __init__(
        self,
        message: str,
        command_list: t.Union[str, t.List[str]],
        details: t.Optional[t.Union[Exception, str]] = None,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        msg = self.create_message(message, command_list, details=details)
        super().__init__(msg, stdout=stdout, stderr=stderr or str(details or ""))

    @staticmethod
    def create_message(
        message: str,
        command_list: t.Union[str, t.List[str]],
        details: t.Optional[t.Union[Exception, str]],
    ) -> str:
        if isinstance(command_list, list):
            command_list = " ".join(command_list)
        msg = message + "\n"
        msg += f"\nCommand: {command_list}"
        if details:
            msg += f"\nError from shell: {details}"
        return msg


__all__ = [
    "MPICompatError",
    "ConfigurationError",
    "CommandError",
    "SetupError",
    "BuildError",
    "FetchError",
    "InconsistentLayoutError",
    "UnsupportedFormatError",
    "ContainerError",
    "InvalidTemplateError",
    "LaunchError",
    "LedgerError",
    "ShellError",
]
