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

import abc
import time
import typing as t

from .._core.utils.shell import execute_cmd
from ..container import Singularity
from ..error import LaunchError, ShellError
from ..log import get_logger
from .job import JobDescriptor, LaunchCommand

if t.TYPE_CHECKING:
    from .._core.config.sysconfig import SystemConfig

logger = get_logger(__name__)


class JobManager(abc.ABC):
    """Abstract base class of the job managers

    A job manager turns a job descriptor into a launch command, runs
    it with the job timeout and exposes the output of the job.
    """

    kind = ""

    def __init__(self, sysconf: "SystemConfig") -> None:
        self.sysconf = sysconf
        self.engine = Singularity(sysconf)

    @abc.abstractmethod
    def submit(self, job: JobDescriptor) -> LaunchCommand:
        """Prepare the command launching ``job``"""
        raise NotImplementedError

    @abc.abstractmethod
    def get_output(self, job: JobDescriptor) -> t.Tuple[str, str]:
        """Output and error of a completed job, including what the
        launch command printed"""
        raise NotImplementedError

    def environment(self, job: JobDescriptor) -> t.Dict[str, str]:
        """Environment of the job, pointing at the host MPI installation"""
        return job.host_env.environ()

    def mpirun_cmd(self, job: JobDescriptor) -> t.List[str]:
        """mpirun invocation running the application of the container"""
        cmd = [str(job.mpirun), "-np", str(job.ranks)]
        cmd.extend(job.variant.extra_launch_args(self.sysconf))
        cmd.extend(self.engine.exec_cmds(job.container, job.app_exe))
        return cmd

    def run(self, job: JobDescriptor) -> int:
        """Launch a job and wait for its completion

        A job exceeding the job timeout is killed and flagged as timed
        out instead of raising; what it printed until then is kept.

        :param job: the job to run
        :raises LaunchError: if the job cannot be launched
        :returns: exit status of the launch command, -1 on timeout
        """
        launch = self.submit(job)
        timeout = self.sysconf.job_timeout
        logger.info(f"Running {job.name}: {launch}")
        start = time.monotonic()
        try:
            returncode, out, err = execute_cmd(
                launch.cmd_list, env=launch.env or None, timeout=timeout
            )
        except ShellError as e:
            if timeout and time.monotonic() - start >= timeout:
                logger.warning(f"{job.name} timed out after {timeout} seconds")
                job.timed_out = True
                job.returncode = -1
                job.launch_stdout, job.launch_stderr = e.stdout, e.stderr
                job.stdout, job.stderr = self.get_output(job)
                return -1
            raise LaunchError(f"Unable to launch {job.name}", e.stdout, e.stderr) from e

        job.launch_stdout, job.launch_stderr = out, err
        job.returncode = returncode
        job.stdout, job.stderr = self.get_output(job)
        return returncode
