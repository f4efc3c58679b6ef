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
import shutil
import sys
from pathlib import Path

import pytest

from mpicompat import results
from mpicompat.apps import get_app
from mpicompat.container import ContainerDescriptor, MPIModel
from mpicompat.error import BuildError, ConfigurationError, LedgerError
from mpicompat.experiment import Experiment, classify, compile_matrix
from mpicompat.launcher import JobDescriptor, LaunchCommand, NativeJobManager
from mpicompat.matrix import parse_matrix
from mpicompat.results import ExperimentResult, Outcome

# The tests in this file belong to the group_a group
pytestmark = pytest.mark.group_a

HELLO = "print('Hello, I am rank 0/2'); print('Hello, I am rank 1/2')"


class PythonJobManager(NativeJobManager):
    """Runs a python snippet in place of mpirun and keeps the jobs"""

    def __init__(self, sysconf, code=HELLO):
        super().__init__(sysconf)
        self.code = code
        self.jobs = []

    def submit(self, job):
        self.jobs.append(job)
        return LaunchCommand(sys.executable, ["-c", self.code], dict(os.environ))


class FakeEngine:
    def __init__(self, labels=None):
        self.labels = labels or {}
        self.built = []
        self.pulled = []
        self.uploaded = []

    def build(self, container):
        self.built.append(container)
        return container.image_path

    def pull(self, container):
        self.pulled.append(container)
        return container.image_path

    def inspect(self, image):
        pulled = next(c for c in self.pulled if c.image_path == image)
        return ContainerDescriptor.from_labels(
            image, {**pulled.labels(), **self.labels}
        )

    def upload(self, container, registry):
        self.uploaded.append((container, registry))


@pytest.fixture
def matrix(fileutils):
    return parse_matrix(
        [fileutils.openmpi_url("3.1.4"), fileutils.openmpi_url("4.0.2")]
    )


@pytest.fixture
def prepared_hosts():
    return []


@pytest.fixture
def make_experiment(sysconf, matrix, monkeypatch, prepared_hosts):
    def _make(code=HELLO, model=MPIModel.HYBRID, engine=None):
        experiment = Experiment(sysconf, matrix, model, PythonJobManager(sysconf, code))
        experiment.engine = engine or FakeEngine()

        def prepare_host(impl, host_env):
            prepared_hosts.append(impl.version)
            experiment.variant.set_environment(host_env)

        monkeypatch.setattr(experiment, "prepare_host", prepare_host)
        return experiment

    return _make


def _job(returncode=0, stdout="", stderr="", timed_out=False):
    cell = parse_matrix(["https://x.org/openmpi-4.0.2.tar.bz2"]).experiments()[0]
    job = JobDescriptor(
        name=cell.name,
        host_impl=cell.host,
        host_env=None,
        variant=None,
        container=None,
        app_exe="/opt/mpitest",
    )
    job.returncode = returncode
    job.stdout = stdout
    job.stderr = stderr
    job.timed_out = timed_out
    return job


@pytest.mark.parametrize(
    "returncode, stdout, stderr, timed_out, outcome",
    [
        pytest.param(0, "Hello, I am rank 1/2\n", "", False, Outcome.PASS, id="pass"),
        pytest.param(0, "", "Hello, I am rank 0/2\n", False, Outcome.PASS, id="stderr"),
        pytest.param(1, "Hello, I am rank 0/2\n", "", False, Outcome.FAIL, id="exit"),
        pytest.param(0, "Usage: mpirun [OPTION]", "", False, Outcome.FAIL, id="usage"),
        pytest.param(0, "\nUsage: mpiexec", "", False, Outcome.FAIL, id="usage nl"),
        pytest.param(0, "Hello, I am rank 2/4\n", "", False, Outcome.FAIL, id="ranks"),
        pytest.param(-1, "", "", True, Outcome.FAIL, id="timeout"),
    ],
)
def test_classify(sysconf, returncode, stdout, stderr, timed_out, outcome):
    app = get_app("helloworld", sysconf.template_dir)
    job = _job(returncode, stdout, stderr, timed_out)
    assert classify(job, app)[0] == outcome


def test_classify_without_expected_output(sysconf):
    app = get_app("imb", sysconf.template_dir)
    assert classify(_job(stdout="#bytes #repetitions"), app)[0] == (
        Outcome.PASS
    )


def test_run_all_cells(make_experiment, sysconf, prepared_hosts):
    experiment = make_experiment()
    recorded = experiment.run()

    assert [result.key for result in recorded] == [
        ("3.1.4", "3.1.4"),
        ("3.1.4", "4.0.2"),
        ("4.0.2", "3.1.4"),
        ("4.0.2", "4.0.2"),
    ]
    assert all(result.passed for result in recorded)
    assert prepared_hosts == ["3.1.4", "3.1.4", "4.0.2", "4.0.2"]
    assert results.load(experiment.results_path) == recorded
    assert experiment.results_path.name == "openmpi-init-results.txt"
    assert (sysconf.output_dir / "mpicompat-openmpi.log").is_file()
    assert len(experiment.engine.built) == 4


def test_definition_files(make_experiment, sysconf):
    experiment = make_experiment()
    definitions = []
    engine = experiment.engine

    def build(container):
        definitions.append(container.definition_file.read_text(encoding="utf-8"))
        assert (container.build_dir / "mpitest.c").is_file()
        return FakeEngine.build(engine, container)

    engine.build = build
    experiment.run()

    assert len(definitions) == 4
    assert "MPI_DIR=/opt/openmpi-4.0.2" in definitions[1]
    assert "\tMPI_Version 4.0.2\n" in definitions[1]
    assert "\tApp_exe /opt/mpitest\n" in definitions[1]
    # scratch build directories are removed once a cell completed
    assert not any(sysconf.scratch_dir.glob("container_build_*"))


def test_rerun_skips_recorded_cells(make_experiment):
    experiment = make_experiment()
    assert len(experiment.run()) == 4

    rerun = make_experiment()
    assert rerun.pending_cells() == []
    assert rerun.run() == []
    assert len(results.load(rerun.results_path)) == 4


def test_partial_rerun(make_experiment, prepared_hosts):
    experiment = make_experiment()
    results.append(
        experiment.results_path,
        ExperimentResult("3.1.4", "3.1.4", Outcome.FAIL, "exit status 1"),
    )
    recorded = experiment.run()

    assert len(recorded) == 3
    assert ("3.1.4", "3.1.4") not in [result.key for result in recorded]
    assert len(results.load(experiment.results_path)) == 4


def test_corrupted_ledger_aborts(make_experiment):
    experiment = make_experiment()
    experiment.results_path.parent.mkdir(parents=True)
    experiment.results_path.write_text("garbage\n", encoding="utf-8")
    with pytest.raises(LedgerError):
        experiment.run()


def test_usage_banner_fails(make_experiment, sysconf):
    experiment = make_experiment(code="print('Usage: mpirun [OPTION]... [PROGRAM]')")
    recorded = experiment.run()

    assert {result.outcome for result in recorded} == {Outcome.FAIL}
    error_dir = sysconf.output_dir / "errors" / "openmpi" / "3.1.4-4.0.2"
    stdout = (error_dir / "stdout.txt").read_text(encoding="utf-8")
    assert stdout.startswith("Usage: mpirun")
    assert (error_dir / "stderr.txt").is_file()


def test_failed_job(make_experiment, sysconf):
    experiment = make_experiment(code="import sys; sys.exit(1)")
    recorded = experiment.run()

    assert {result.outcome for result in recorded} == {Outcome.FAIL}
    assert all(result.note == "exit status 1" for result in recorded)


def test_failed_iterations_keep_their_output(make_experiment, sysconf):
    sysconf.nrun = 2
    code = "import sys, os; print(os.getpid()); sys.exit(3)"
    experiment = make_experiment(code=code)
    recorded = experiment.run()

    assert len(recorded) == 8
    error_dir = sysconf.output_dir / "errors" / "openmpi" / "3.1.4-4.0.2"
    first = (error_dir / "run-1" / "stdout.txt").read_text(encoding="utf-8")
    second = (error_dir / "run-2" / "stdout.txt").read_text(encoding="utf-8")
    assert first.strip().isdigit()
    assert first != second
    assert not (error_dir / "stdout.txt").exists()


def test_host_build_error(make_experiment, sysconf, monkeypatch):
    experiment = make_experiment()

    def prepare_host(impl, host_env):
        if impl.version == "4.0.2":
            raise BuildError("Command failed: make", "compiling...", "fatal error")
        experiment.variant.set_environment(host_env)

    monkeypatch.setattr(experiment, "prepare_host", prepare_host)
    recorded = experiment.run()

    outcomes = {result.key: result.outcome for result in recorded}
    assert outcomes == {
        ("3.1.4", "3.1.4"): Outcome.PASS,
        ("3.1.4", "4.0.2"): Outcome.PASS,
        ("4.0.2", "3.1.4"): Outcome.ERROR,
        ("4.0.2", "4.0.2"): Outcome.ERROR,
    }
    assert recorded[2].note == "Command failed: make"
    error_dir = sysconf.output_dir / "errors" / "openmpi" / "4.0.2-3.1.4"
    assert (error_dir / "stdout.txt").read_text(encoding="utf-8") == "compiling..."
    assert (error_dir / "stderr.txt").read_text(encoding="utf-8") == "fatal error"
    assert len(results.load(experiment.results_path)) == 4


def test_configuration_error_aborts(make_experiment, monkeypatch):
    experiment = make_experiment()

    def prepare_host(impl, host_env):
        raise ConfigurationError("broken configuration")

    monkeypatch.setattr(experiment, "prepare_host", prepare_host)
    with pytest.raises(ConfigurationError):
        experiment.run()
    assert results.load(experiment.results_path) == []


def test_iterations(make_experiment, sysconf):
    sysconf.nrun = 3
    experiment = make_experiment()
    recorded = experiment.run()

    assert len(recorded) == 12
    # iterations share the image of their cell
    assert len(experiment.engine.built) == 4
    assert len(experiment.job_manager.jobs) == 12


def test_pull_without_build_privilege(make_experiment, sysconf):
    sysconf.tool.persist(sysconf.tool.BUILD_PRIVILEGE_KEY, False)
    engine = FakeEngine({"App_exe": "/opt/bin/mpitest", "MPI_Directory": "/opt/mpi"})
    experiment = make_experiment(engine=engine)
    experiment.run()

    assert engine.built == []
    assert len(engine.pulled) == 4
    jobs = experiment.job_manager.jobs
    assert {job.app_exe for job in jobs} == {"/opt/bin/mpitest"}
    assert {job.container.mpi_mount_dir for job in jobs} == {"/opt/mpi"}


def test_pulled_image_with_other_version(make_experiment, sysconf):
    sysconf.tool.persist(sysconf.tool.BUILD_PRIVILEGE_KEY, False)
    engine = FakeEngine({"MPI_Version": "1.10.7"})
    experiment = make_experiment(engine=engine)
    recorded = experiment.run()

    assert {result.outcome for result in recorded} == {Outcome.ERROR}
    assert experiment.job_manager.jobs == []


def test_upload_after_build(make_experiment, sysconf):
    sysconf.upload = True
    sysconf.registry = "library://me/default"
    experiment = make_experiment()
    experiment.run()
    assert [registry for _, registry in experiment.engine.uploaded] == [
        "library://me/default"
    ] * 4


def test_bind_model(make_experiment, sysconf, monkeypatch, test_dir):
    experiment = make_experiment(model=MPIModel.BIND)
    binary = Path(test_dir) / "app" / "mpitest"
    monkeypatch.setattr(experiment, "build_app_on_host", lambda host_env: binary)
    definitions = []
    engine = experiment.engine

    def build(container):
        definitions.append(container.definition_file.read_text(encoding="utf-8"))
        return FakeEngine.build(engine, container)

    engine.build = build
    experiment.run()

    assert f"\t{binary} /opt/mpitest\n" in definitions[0]
    job = experiment.job_manager.jobs[1]
    assert job.app_exe == "/opt/mpitest"
    assert job.container.bind_mounts == [
        f"{job.host_env.install_dir}:/opt/openmpi-4.0.2"
    ]


def test_bind_images_per_host(make_experiment, sysconf, monkeypatch, test_dir):
    sysconf.persistent = Path(test_dir) / "workspace"
    experiment = make_experiment(model=MPIModel.BIND)
    cells = [
        cell
        for cell in experiment.matrix.experiments()
        if cell.container.version == "4.0.2"
    ]
    paths = {
        ContainerDescriptor.for_experiment(
            cell.container, experiment.app, sysconf, MPIModel.BIND, host=cell.host
        ).image_path
        for cell in cells
    }
    assert len(paths) == 2
    assert all(path.parent.parent == sysconf.persistent for path in paths)

    binary = Path(test_dir) / "app" / "mpitest"
    monkeypatch.setattr(experiment, "build_app_on_host", lambda host_env: binary)
    experiment.run()
    built = {container.image_path for container in experiment.engine.built}
    assert paths < built
    assert len(built) == 4


def test_persistent_image_reused(make_experiment, sysconf, test_dir):
    sysconf.persistent = Path(test_dir) / "workspace"
    experiment = make_experiment()
    cell = experiment.matrix.experiments()[0]
    host_env = experiment._host_environment(cell.host)
    container = experiment.prepare_container(cell, host_env)
    assert container.definition_file.is_file()

    container.image_path.parent.mkdir(parents=True, exist_ok=True)
    container.image_path.write_text("image", encoding="utf-8")
    container.definition_file.unlink()

    experiment.prepare_container(cell, host_env)
    assert not container.definition_file.exists()


@pytest.mark.skipif(shutil.which("make") is None, reason="make is not available")
def test_persistent_host_install_runs_once(sysconf, fileutils, test_dir):
    configured = Path(test_dir) / "configured.txt"
    archive = fileutils.make_tarball(
        Path(test_dir) / "openmpi-4.0.2.tar.gz",
        {
            "openmpi-4.0.2/configure": f'#!/bin/sh\necho "$@" >> {configured}\n',
            "openmpi-4.0.2/Makefile": "all:\n\t@echo built\ninstall:\n\t@echo done\n",
        },
        executables=["openmpi-4.0.2/configure"],
    )
    sysconf.persistent = Path(test_dir) / "workspace"
    matrix = parse_matrix([f"file://{archive}"])

    for _ in range(2):
        experiment = Experiment(sysconf, matrix, job_manager=PythonJobManager(sysconf))
        experiment.engine = FakeEngine()
        recorded = experiment.run()
        assert [result.outcome for result in recorded] == [Outcome.PASS]
        # start over with an empty ledger, the installation stays
        experiment.results_path.unlink()

    install_dir = sysconf.persistent / "mpi_install_openmpi-4.0.2"
    assert configured.read_text(encoding="utf-8").splitlines() == [
        f"--prefix={install_dir}"
    ]
    assert (install_dir / "openmpi-4.0.2.tar.gz").is_file()


def test_intel_requires_network_interface(sysconf, monkeypatch):
    matrix = parse_matrix(["file:///data/l_mpi_2019.6.166.tgz"])
    experiment = Experiment(sysconf, matrix, job_manager=PythonJobManager(sysconf))
    with pytest.raises(ConfigurationError):
        experiment.run()
    assert not experiment.results_path.exists()


def test_summary():
    table = Experiment.summary(
        [ExperimentResult("3.1.4", "4.0.2", Outcome.FAIL, "exit status 1")]
    )
    assert "| Host" in table
    assert "3.1.4" in table
    assert "exit status 1" in table


def test_compile_matrix(test_dir):
    output_dir = Path(test_dir)
    for category, outcome in (
        ("init", Outcome.PASS),
        ("netpipe", Outcome.PASS),
        ("imb", Outcome.FAIL),
    ):
        path = results.results_file(output_dir, "mpich", category)
        results.append(path, ExperimentResult("3.3.2", "3.3.2", Outcome.PASS))
        results.append(path, ExperimentResult("3.3.2", "3.2.1", outcome))

    path = compile_matrix(output_dir, "mpich")
    assert path == output_dir / "mpich_compatibility_matrix.txt"
    assert path.read_text(encoding="utf-8") == (
        "3.3.2\t3.3.2\ttrue\n3.3.2\t3.2.1\tfalse\n"
    )
