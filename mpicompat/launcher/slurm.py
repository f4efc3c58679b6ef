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

import tempfile
import typing as t
from pathlib import Path

from .._core.utils.helpers import expand_exe_path
from ..error import LaunchError
from ..log import get_logger
from .base import JobManager
from .job import JobDescriptor, LaunchCommand

logger = get_logger(__name__)

SCRIPT_PREFIX = "sbash-"


class SlurmJobManager(JobManager):
    """Submit jobs as batch scripts with ``sbatch -W``, which blocks
    until the job completes"""

    kind = "slurm"

    def _find_sbatch(self) -> str:
        try:
            return expand_exe_path("sbatch")
        except (TypeError, FileNotFoundError) as e:
            raise LaunchError("Slurm job manager could not find sbatch") from e

    def output_files(self, job: JobDescriptor) -> t.Tuple[Path, Path]:
        return (
            self.sysconf.scratch_dir / f"{job.name}.out",
            self.sysconf.scratch_dir / f"{job.name}.err",
        )

    def script_path(self, job: JobDescriptor) -> Path:
        """Location of the batch script

        Persistent runs keep the script next to the container build
        files and reuse it, other runs write a fresh temporary file.
        """
        if self.sysconf.is_persistent:
            return job.container.build_dir / f"{SCRIPT_PREFIX}{job.name}.sh"
        self.sysconf.scratch_dir.mkdir(parents=True, exist_ok=True)
        fd, path = tempfile.mkstemp(
            prefix=f"{SCRIPT_PREFIX}{job.name}-",
            suffix=".sh",
            dir=self.sysconf.scratch_dir,
        )
        with open(fd, "w", encoding="utf-8"):
            pass
        return Path(path)

    def script_content(self, job: JobDescriptor) -> str:
        out_file, err_file = self.output_files(job)
        environ = self.environment(job)
        lines = ["#!/bin/bash"]
        if self.sysconf.tool.slurm_partition:
            lines.append(f"#SBATCH --partition={self.sysconf.tool.slurm_partition}")
        lines.extend(
            [
                f"#SBATCH --nodes={job.nodes}",
                f"#SBATCH --ntasks={job.ranks}",
                f"#SBATCH --error={err_file}",
                f"#SBATCH --output={out_file}",
                "",
                f"export PATH={environ.get('PATH', '')}",
                f"export LD_LIBRARY_PATH={environ.get('LD_LIBRARY_PATH', '')}",
                "",
                " ".join(self.mpirun_cmd(job)),
            ]
        )
        return "\n".join(lines) + "\n"

    def submit(self, job: JobDescriptor) -> LaunchCommand:
        sbatch = self._find_sbatch()
        script = self.script_path(job)
        if self.sysconf.is_persistent and script.is_file():
            logger.debug(f"Reusing batch script {script}")
        else:
            script.parent.mkdir(parents=True, exist_ok=True)
            script.write_text(self.script_content(job), encoding="utf-8")
            script.chmod(0o755)
        job.batch_script = script
        for output in self.output_files(job):
            output.unlink(missing_ok=True)
        return LaunchCommand(exe=sbatch, args=["-W", str(script)])

    def get_output(self, job: JobDescriptor) -> t.Tuple[str, str]:
        """Output of sbatch followed by the output files of the job"""
        out_file, err_file = self.output_files(job)
        outputs = []
        for output in (out_file, err_file):
            if output.is_file():
                outputs.append(output.read_text(encoding="utf-8", errors="replace"))
            else:
                logger.warning(f"Slurm did not produce {output}")
                outputs.append("")
        return job.launch_stdout + outputs[0], job.launch_stderr + outputs[1]
