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

import os
import sys
from pathlib import Path

import pytest

import mpicompat.launcher
from mpicompat._core._install.builder import BuildEnvironment
from mpicompat.apps import get_app
from mpicompat.container import ContainerDescriptor
from mpicompat.error import LaunchError, ShellError
from mpicompat.launcher import (
    JobDescriptor,
    LaunchCommand,
    NativeJobManager,
    SlurmJobManager,
    detect_job_manager,
)
from mpicompat.launcher import base as base_module
from mpicompat.mpi import ImplementationDescriptor, MPIImplementation, lookup

# The tests in this file belong to the group_a group
pytestmark = pytest.mark.group_a


@pytest.fixture
def job(sysconf, fileutils):
    host = ImplementationDescriptor(
        MPIImplementation.OPENMPI, "3.1.4", fileutils.openmpi_url("3.1.4")
    )
    impl = ImplementationDescriptor(
        MPIImplementation.OPENMPI, "4.0.2", fileutils.openmpi_url("4.0.2")
    )
    app = get_app("helloworld", sysconf.template_dir)
    container = ContainerDescriptor.for_experiment(impl, app, sysconf)
    host_env = BuildEnvironment(
        build_dir=sysconf.scratch_dir / "mpi_build_openmpi-3.1.4",
        install_dir=sysconf.scratch_dir / "mpi_install_openmpi-3.1.4",
        scratch_dir=sysconf.scratch_dir / "host_openmpi-3.1.4",
    )
    variant = lookup(host.id)
    variant.set_environment(host_env)
    return JobDescriptor(
        name="openmpi-3.1.4-openmpi-4.0.2",
        host_impl=host,
        host_env=host_env,
        variant=variant,
        container=container,
        app_exe=container.app_exe,
    )


class PythonJobManager(NativeJobManager):
    """Runs a python snippet in place of mpirun"""

    def __init__(self, sysconf, code):
        super().__init__(sysconf)
        self.code = code

    def submit(self, job):
        return LaunchCommand(sys.executable, ["-c", self.code], dict(os.environ))


def test_launch_command():
    launch = LaunchCommand("sbatch", ["-W", "/tmp/sbash-job.sh"])
    assert launch.cmd_list == ["sbatch", "-W", "/tmp/sbash-job.sh"]
    assert str(launch) == "sbatch -W /tmp/sbash-job.sh"


def test_job_requires_ranks(job):
    with pytest.raises(LaunchError):
        JobDescriptor(
            name=job.name,
            host_impl=job.host_impl,
            host_env=job.host_env,
            variant=job.variant,
            container=job.container,
            app_exe=job.app_exe,
            ranks=0,
        )


def test_job_mpirun(job):
    assert job.mpirun == job.host_env.install_dir / "bin" / "mpirun"
    assert job.returncode is None


def test_native_submit(sysconf, job):
    manager = NativeJobManager(sysconf)
    launch = manager.submit(job)

    assert launch.cmd_list == [
        str(job.mpirun),
        "-np",
        "2",
        manager.engine.exe,
        "exec",
        str(job.container.image_path),
        "/opt/mpitest",
    ]
    bin_dir = str(job.host_env.install_dir / "bin")
    assert launch.env["PATH"].split(":")[0] == bin_dir


def test_intel_launch_args(sysconf, job):
    job.variant = lookup(MPIImplementation.INTEL)
    cmd = NativeJobManager(sysconf).mpirun_cmd(job)
    assert cmd[1:9] == [
        "-np",
        "2",
        "-env",
        "FI_PROVIDER",
        "socket",
        "-env",
        "I_MPI_FABRICS",
        "ofi",
    ]
    assert cmd[0].endswith("intel64/bin/mpiexec")


def test_run_collects_output(sysconf, job):
    manager = PythonJobManager(sysconf, "print('Hello, I am rank 0/2')")
    assert manager.run(job) == 0
    assert not job.timed_out
    assert job.stdout.strip() == "Hello, I am rank 0/2"


def test_run_nonzero_exit(sysconf, job):
    code = "import sys; sys.stderr.write('boom'); sys.exit(3)"
    manager = PythonJobManager(sysconf, code)
    assert manager.run(job) == 3
    assert job.returncode == 3
    assert job.stderr == "boom"


def test_run_timeout(sysconf, job):
    sysconf.job_timeout = 1
    manager = PythonJobManager(sysconf, "import time; time.sleep(30)")
    assert manager.run(job) == -1
    assert job.timed_out
    assert job.returncode == -1


def test_run_timeout_keeps_output(sysconf, job):
    sysconf.job_timeout = 1
    code = "import time; print('Hello, I am rank 0/2', flush=True); time.sleep(30)"
    manager = PythonJobManager(sysconf, code)
    assert manager.run(job) == -1
    assert job.stdout.strip() == "Hello, I am rank 0/2"


def test_run_launch_failure(sysconf, job, monkeypatch):
    def failure(cmd_list, **kwargs):
        raise ShellError("Exception while attempting to start", cmd_list, "ENOENT")

    monkeypatch.setattr(base_module, "execute_cmd", failure)
    with pytest.raises(LaunchError):
        NativeJobManager(sysconf).run(job)
    assert not job.timed_out


def test_slurm_script(sysconf, job):
    sysconf.tool.persist(sysconf.tool.SLURM_PARTITION_KEY, "debug")
    job.nodes = 1
    manager = SlurmJobManager(sysconf)
    content = manager.script_content(job)
    lines = content.splitlines()

    out_file, err_file = manager.output_files(job)
    assert lines[0] == "#!/bin/bash"
    assert "#SBATCH --partition=debug" in lines
    assert "#SBATCH --nodes=1" in lines
    assert "#SBATCH --ntasks=2" in lines
    assert f"#SBATCH --output={out_file}" in lines
    assert f"#SBATCH --error={err_file}" in lines
    assert lines[-1] == " ".join(manager.mpirun_cmd(job))
    assert any(line.startswith("export LD_LIBRARY_PATH=") for line in lines)


def test_slurm_submit(sysconf, job, monkeypatch):
    monkeypatch.setattr(SlurmJobManager, "_find_sbatch", lambda self: "/usr/bin/sbatch")
    manager = SlurmJobManager(sysconf)
    launch = manager.submit(job)

    assert launch.exe == "/usr/bin/sbatch"
    assert launch.args[0] == "-W"
    script = Path(launch.args[1])
    assert script == job.batch_script
    assert script.parent == sysconf.scratch_dir
    assert os.access(script, os.X_OK)
    assert script.read_text(encoding="utf-8") == manager.script_content(job)


def test_slurm_persistent_script_reused(sysconf, job, monkeypatch, test_dir):
    monkeypatch.setattr(SlurmJobManager, "_find_sbatch", lambda self: "sbatch")
    sysconf.persistent = Path(test_dir) / "workspace"
    manager = SlurmJobManager(sysconf)

    script = manager.script_path(job)
    assert script == job.container.build_dir / f"sbash-{job.name}.sh"
    script.parent.mkdir(parents=True)
    script.write_text("#!/bin/bash\necho reused\n", encoding="utf-8")

    launch = manager.submit(job)
    assert launch.args == ["-W", str(script)]
    assert script.read_text(encoding="utf-8") == "#!/bin/bash\necho reused\n"


def test_slurm_output(sysconf, job):
    manager = SlurmJobManager(sysconf)
    out_file, err_file = manager.output_files(job)
    out_file.parent.mkdir(parents=True, exist_ok=True)
    out_file.write_text("Hello, I am rank 1/2\n", encoding="utf-8")

    assert manager.get_output(job) == ("Hello, I am rank 1/2\n", "")


def test_slurm_output_follows_sbatch_output(sysconf, job):
    manager = SlurmJobManager(sysconf)
    out_file, _ = manager.output_files(job)
    out_file.parent.mkdir(parents=True, exist_ok=True)
    out_file.write_text("Hello, I am rank 1/2\n", encoding="utf-8")
    job.launch_stdout = "Submitted batch job 42\n"
    job.launch_stderr = "sbatch: warning: no partition\n"

    assert manager.get_output(job) == (
        "Submitted batch job 42\nHello, I am rank 1/2\n",
        "sbatch: warning: no partition\n",
    )


def test_slurm_keeps_sbatch_errors(sysconf, job, monkeypatch, test_dir):
    sbatch = Path(test_dir) / "sbatch"
    sbatch.write_text(
        f"#!{sys.executable}\n"
        "import sys\n"
        "sys.stderr.write('sbatch: error: invalid partition\\n')\n"
        "sys.exit(1)\n",
        encoding="utf-8",
    )
    sbatch.chmod(0o755)
    monkeypatch.setattr(SlurmJobManager, "_find_sbatch", lambda self: str(sbatch))

    assert SlurmJobManager(sysconf).run(job) == 1
    assert "sbatch: error: invalid partition" in job.stderr


def test_slurm_without_sbatch(sysconf, job, monkeypatch):
    monkeypatch.setenv("PATH", "")
    with pytest.raises(LaunchError):
        SlurmJobManager(sysconf).submit(job)


def test_detect_native(sysconf, monkeypatch):
    monkeypatch.setattr(mpicompat.launcher, "detect_slurm", lambda: False)
    assert isinstance(detect_job_manager(sysconf), NativeJobManager)
    assert not sysconf.tool.has(sysconf.tool.SLURM_KEY)


def test_detect_slurm_persists(sysconf, monkeypatch):
    monkeypatch.setattr(mpicompat.launcher, "detect_slurm", lambda: True)
    assert isinstance(detect_job_manager(sysconf), SlurmJobManager)
    assert sysconf.tool.slurm_enabled
    assert "enable_slurm = true" in sysconf.tool.path.read_text(encoding="utf-8")


def test_detect_configured_slurm(sysconf, monkeypatch):
    monkeypatch.setattr(mpicompat.launcher, "detect_slurm", lambda: False)
    sysconf.tool.persist(sysconf.tool.SLURM_KEY, True)
    assert isinstance(detect_job_manager(sysconf), SlurmJobManager)
