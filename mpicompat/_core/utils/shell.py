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
from subprocess import PIPE, TimeoutExpired

import psutil

from ...error import ShellError
from ...log import get_logger
from .helpers import check_dev_log_level

logger = get_logger(__name__)
VERBOSE_SHELL = check_dev_log_level()


def execute_cmd(
    cmd_list: t.List[str],
    shell: bool = False,
    cwd: t.Optional[str] = None,
    env: t.Optional[t.Dict[str, str]] = None,
    proc_input: str = "",
    timeout: t.Optional[int] = None,
) -> t.Tuple[int, str, str]:
    """Execute a command locally

    :param cmd_list: list of command with arguments
    :param shell: run in system shell, defaults to False
    :param cwd: current working directory, defaults to None
    :param env: environment to launcher process with,
                defaults to None (current env)
    :param proc_input: input to the process, defaults to ""
    :param timeout: timeout of the process in seconds, defaults to None
    :raises ShellError: if timeout of process was exceeded, the partial
                        output of the process is attached
    :raises ShellError: if child process raises an error
    :return: returncode, output, and error of the process
    """
    if VERBOSE_SHELL:
        source = "shell" if shell else "Popen"
        logger.debug(f"Executing {source} cmd: {' '.join(cmd_list)}")
        if cwd:
            logger.debug(f"Working directory: {cwd}")

    # spawning the subprocess and connecting to its output
    try:
        proc = psutil.Popen(
            cmd_list,
            stderr=PIPE,
            stdout=PIPE,
            stdin=PIPE,
            cwd=cwd,
            shell=shell,
            env=env,
        )
    except OSError as e:
        raise ShellError(
            "Exception while attempting to start a shell process", cmd_list, details=e
        ) from None

    try:
        proc_bytes = proc_input.encode("utf-8")
        out, err = proc.communicate(input=proc_bytes, timeout=timeout)
    except TimeoutExpired as e:
        proc.kill()
        outs, errs = proc.communicate()
        partial_err = errs.decode("utf-8", errors="replace")
        logger.error(partial_err)
        raise ShellError(
            "Failed to execute command, timeout reached",
            cmd_list,
            details=e,
            stdout=outs.decode("utf-8", errors="replace"),
            stderr=partial_err,
        ) from None

    # decoding the output and err and return as a string tuple
    return (
        proc.returncode,
        out.decode("utf-8", errors="replace"),
        err.decode("utf-8", errors="replace"),
    )
