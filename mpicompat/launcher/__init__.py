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

from .._core.utils.sysprobe import detect_slurm
from ..log import get_logger
from .base import JobManager
from .job import JobDescriptor, LaunchCommand
from .native import NativeJobManager
from .slurm import SlurmJobManager

if t.TYPE_CHECKING:
    from .._core.config.sysconfig import SystemConfig

logger = get_logger(__name__)


def detect_job_manager(sysconf: "SystemConfig") -> JobManager:
    """Select the job manager of this host, falling back to a direct
    launch when no batch scheduler is available

    :param sysconf: settings of the run
    :returns: the job manager
    """
    if sysconf.slurm_enabled or detect_slurm():
        if not sysconf.slurm_enabled:
            sysconf.tool.persist(sysconf.tool.SLURM_KEY, True)
        logger.debug("Slurm detected, jobs are submitted with sbatch")
        return SlurmJobManager(sysconf)
    return NativeJobManager(sysconf)
