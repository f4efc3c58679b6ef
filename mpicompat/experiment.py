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

"""Orchestration of the compatibility experiments.

Each cell of the matrix goes through

    PENDING -> HOST_MPI_READY -> CONTAINER_READY -> SUBMITTED

and ends up PASS, FAIL or ERROR. A failure before the job completed is
an ERROR; FAIL is reserved for jobs that ran to completion with a wrong
exit status or output, or that exceeded the job timeout.
"""

import enum
import logging
import re
import typing as t
from pathlib import Path

from tabulate import tabulate

from . import results as ledger
from ._core._install.builder import BuildEnvironment, build_against
from ._core._install.utils.retrieve import (
    URLType,
    copy_from_file_url,
    detect_url_type,
)
from ._core.utils import init_dir, remove_dir
from .apps import CATEGORIES, AppInfo, get_app
from .container import (
    ContainerDescriptor,
    MPIModel,
    Singularity,
    bind_definition,
    insert_labels,
    render,
)
from .error import ConfigurationError, ContainerError, LedgerError, MPICompatError
from .launcher import JobDescriptor, JobManager, detect_job_manager
from .log import ctx_experiment, get_logger, log_to_file
from .matrix import ExperimentConfig, MatrixConfig
from .mpi import ImplementationDescriptor, MPIImplementation, lookup
from .results import ExperimentResult, Outcome
from .workspace import host_environment

if t.TYPE_CHECKING:
    from ._core.config.sysconfig import SystemConfig

logger = get_logger(__name__)

USAGE_PATTERN = re.compile(r"^Usage:", re.MULTILINE)
ERRORS_DIR = "errors"
LOG_FILE_TEMPLATE = "mpicompat-{implementation}.log"
APP_BUILD_PREFIX = "app_build_"


class ExperimentState(enum.Enum):
    PENDING = "pending"
    HOST_MPI_READY = "host MPI ready"
    CONTAINER_READY = "container ready"
    SUBMITTED = "submitted"


def classify(job: JobDescriptor, app: AppInfo) -> t.Tuple[Outcome, str]:
    """Decide the outcome of a completed job

    :param job: the job, with its exit status and output
    :param app: the application that ran
    :returns: the outcome and the reason of a failure
    """
    if job.timed_out:
        return Outcome.FAIL, "job timed out"
    if job.returncode != 0:
        return Outcome.FAIL, f"exit status {job.returncode}"
    # some launchers exit with 0 after printing their usage
    if USAGE_PATTERN.search(job.stdout):
        return Outcome.FAIL, "launcher printed its usage message"
    expected = app.expected_outputs(job.ranks)
    if expected and not any(
        line in job.stdout or line in job.stderr for line in expected
    ):
        return Outcome.FAIL, "expected output not found"
    return Outcome.PASS, ""


class Experiment:
    """Run the matrix of one MPI implementation for one application

    :param sysconf: settings of the run
    :param matrix: versions of the MPI implementation to test
    :param model: how MPI gets into the containers
    :param job_manager: job manager, detected from the host by default
    """

    def __init__(
        self,
        sysconf: "SystemConfig",
        matrix: MatrixConfig,
        model: MPIModel = MPIModel.HYBRID,
        job_manager: t.Optional[JobManager] = None,
    ) -> None:
        self.sysconf = sysconf
        self.matrix = matrix
        self.model = model
        self.app = get_app(sysconf.app, sysconf.template_dir)
        self.variant = lookup(matrix.implementation)
        self.engine = Singularity(sysconf)
        self._job_manager = job_manager

    @property
    def job_manager(self) -> JobManager:
        if self._job_manager is None:
            self._job_manager = detect_job_manager(self.sysconf)
        return self._job_manager

    @property
    def results_path(self) -> Path:
        return ledger.results_file(
            self.sysconf.output_dir,
            self.matrix.implementation.value,
            self.app.category,
        )

    @property
    def storage_dir(self) -> Path:
        """Where host installations are kept"""
        return self.sysconf.persistent or self.sysconf.scratch_dir

    def pending_cells(self) -> t.List[ExperimentConfig]:
        """Cells of the matrix without a recorded result

        :raises LedgerError: if the results file is corrupted
        """
        return ledger.prune(self.matrix.experiments(), ledger.load(self.results_path))

    def error_dir(self, cell: ExperimentConfig) -> Path:
        return (
            self.sysconf.output_dir
            / ERRORS_DIR
            / self.matrix.implementation.value
            / f"{cell.host.version}-{cell.container.version}"
        )

    def dump_errors(
        self,
        cell: ExperimentConfig,
        stdout: str,
        stderr: str,
        iteration: t.Optional[int] = None,
    ) -> Path:
        """Save the output of a failed cell for post-mortem analysis

        :param iteration: failing iteration, each one gets its own
                          directory when the cell runs more than once
        """
        error_dir = self.error_dir(cell)
        if iteration is not None and self.sysconf.nrun > 1:
            error_dir = error_dir / f"run-{iteration + 1}"
        init_dir(error_dir)
        (error_dir / "stdout.txt").write_text(stdout, encoding="utf-8")
        (error_dir / "stderr.txt").write_text(stderr, encoding="utf-8")
        logger.info(f"Output of {cell.name} saved in {error_dir}")
        return error_dir

    def run(self) -> t.List[ExperimentResult]:
        """Run every cell without a recorded result

        Configuration and ledger errors abort the run, any other error
        is recorded against its cell.

        :returns: results recorded by this run
        """
        if self.matrix.implementation == MPIImplementation.INTEL:
            self.sysconf.ofi_interface()

        cells = self.pending_cells()
        total = len(self.matrix.experiments())
        logger.info(
            f"{len(cells)} of {total} {self.matrix.implementation.value} "
            f"experiments to run, results in {self.results_path}"
        )
        if not cells:
            return []

        init_dir(self.sysconf.output_dir)
        log_file = LOG_FILE_TEMPLATE.format(
            implementation=self.matrix.implementation.value
        )
        handler = log_to_file(str(self.sysconf.output_dir / log_file))
        recorded: t.List[ExperimentResult] = []
        try:
            for cell in cells:
                recorded.extend(self.run_cell(cell))
        finally:
            logging.getLogger("MPICompat").removeHandler(handler)
            handler.close()
        logger.info(f"Results\n{self.summary(recorded)}")
        return recorded

    def run_cell(self, cell: ExperimentConfig) -> t.List[ExperimentResult]:
        """Run the iterations of one cell and record their results"""
        token = ctx_experiment.set(f"{cell.host.label}/{cell.container.version}")
        try:
            cell_results = self._run_cell(cell)
        finally:
            ctx_experiment.reset(token)
        for result in cell_results:
            ledger.append(self.results_path, result)
        return cell_results

    def _host_environment(self, impl: ImplementationDescriptor) -> BuildEnvironment:
        return host_environment(
            self.storage_dir, impl, self.sysconf, self.sysconf.is_persistent
        )

    def _run_cell(self, cell: ExperimentConfig) -> t.List[ExperimentResult]:
        logger.info(f"Running experiment: {cell}")
        state = ExperimentState.PENDING
        cell_results: t.List[ExperimentResult] = []
        container: t.Optional[ContainerDescriptor] = None
        try:
            with self._host_environment(cell.host) as host_env:
                self.prepare_host(cell.host, host_env)
                state = ExperimentState.HOST_MPI_READY
                container = self.prepare_container(cell, host_env)
                state = ExperimentState.CONTAINER_READY
                for iteration in range(self.sysconf.nrun):
                    cell_results.append(
                        self.submit(cell, host_env, container, iteration)
                    )
                state = ExperimentState.SUBMITTED
        except (ConfigurationError, LedgerError):
            raise
        except (MPICompatError, OSError) as e:
            logger.error(f"{cell} failed while {state.value}: {e}")
            self.dump_errors(
                cell, getattr(e, "stdout", ""), getattr(e, "stderr", "") or str(e)
            )
            note = str(e).splitlines()[0] if str(e) else type(e).__name__
            cell_results.append(
                ExperimentResult(
                    cell.host.version, cell.container.version, Outcome.ERROR, note
                )
            )
        finally:
            if container is not None and not self.sysconf.is_persistent:
                remove_dir(container.build_dir)
                remove_dir(container.install_dir)
        return cell_results

    def prepare_host(
        self, impl: ImplementationDescriptor, host_env: BuildEnvironment
    ) -> None:
        """Install MPI on the host unless it already is

        :raises BuildError: if the installation fails
        """
        pkg = impl.as_package()
        if host_env.is_installed(pkg):
            logger.info(f"{impl.label} is already installed in {host_env.install_dir}")
        else:
            self.variant.install_on_host(impl, host_env, self.sysconf)
        self.variant.set_environment(host_env)

    def prepare_container(
        self, cell: ExperimentConfig, host_env: BuildEnvironment
    ) -> ContainerDescriptor:
        """Build or pull the image of the cell

        Images are built when the host allows it and pulled from the
        registry configured for the version otherwise.
        """
        container = ContainerDescriptor.for_experiment(
            cell.container, self.app, self.sysconf, self.model, host=cell.host
        )
        if self.model == MPIModel.BIND:
            container.bind_host_mpi(host_env.install_dir)

        tool = self.sysconf.tool
        if tool.build_privilege or tool.no_privilege:
            if not (self.sysconf.is_persistent and container.image_path.is_file()):
                self.write_definition_file(cell, container, host_env)
            self.engine.build(container)
            if self.sysconf.upload:
                self.engine.upload(container, self.sysconf.registry)
        else:
            self.engine.pull(container)
            self._refresh_from_labels(container)
        return container

    def _refresh_from_labels(self, container: ContainerDescriptor) -> None:
        inspected = self.engine.inspect(container.image_path)
        expected = container.implementation
        found = inspected.implementation
        if expected and found and found.label != expected.label:
            raise ContainerError(
                f"{container.image_path} holds {found}, expected {expected}"
            )
        container.app_exe = inspected.app_exe or container.app_exe
        container.mpi_mount_dir = inspected.mpi_mount_dir or container.mpi_mount_dir

    def write_definition_file(
        self,
        cell: ExperimentConfig,
        container: ContainerDescriptor,
        host_env: BuildEnvironment,
    ) -> Path:
        """Generate the definition file of the image of a cell"""
        init_dir(container.build_dir)
        if self.model == MPIModel.BIND:
            binary = self.build_app_on_host(host_env)
            return bind_definition(container, binary).write(container.definition_file)

        container_env = BuildEnvironment(
            build_dir=container.build_dir,
            install_dir=container.install_dir,
            scratch_dir=self.sysconf.scratch_dir,
        )
        tags = self.variant.template_tags(cell.container, container_env, self.sysconf)
        template = self.sysconf.template_dir / (
            f"{self.sysconf.distro_name}_{self.variant.template_prefix}"
            f"{self.app.template_suffix}.def.tmpl"
        )
        content = render(template, tags, self.variant.required_tags)
        content = insert_labels(content, container.labels())
        # local sources of the application are copied in from the build dir
        if detect_url_type(self.app.url) == URLType.FILE:
            copy_from_file_url(self.app.url, container.build_dir)
        container.definition_file.write_text(content, encoding="utf-8")
        logger.debug(f"Definition file {container.definition_file} created")
        return container.definition_file

    def build_app_on_host(self, host_env: BuildEnvironment) -> Path:
        """Compile the application against the MPI of the host

        :returns: path to the application binary
        """
        build_dir = self.sysconf.scratch_dir / f"{APP_BUILD_PREFIX}{self.app.name}"
        return build_against(self.app.package, host_env, build_dir) / self.app.bin_name

    def submit(
        self,
        cell: ExperimentConfig,
        host_env: BuildEnvironment,
        container: ContainerDescriptor,
        iteration: int = 0,
    ) -> ExperimentResult:
        """Run the application once and classify the outcome

        :raises LaunchError: if the job cannot be launched
        """
        job = JobDescriptor(
            name=cell.name,
            host_impl=cell.host,
            host_env=host_env,
            variant=self.variant,
            container=container,
            app_exe=container.app_exe,
            ranks=self.sysconf.ranks,
            nodes=self.sysconf.nodes,
        )
        logger.debug(f"Iteration {iteration + 1}/{self.sysconf.nrun} of {cell.name}")
        self.job_manager.run(job)
        outcome, reason = classify(job, self.app)
        if outcome == Outcome.PASS:
            note = self.app.note(job.stdout)
            logger.info(f"{cell}: PASS {note}")
        else:
            note = reason
            logger.warning(f"{cell}: FAIL ({reason})")
            self.dump_errors(cell, job.stdout, job.stderr, iteration)
        return ExperimentResult(
            cell.host.version, cell.container.version, outcome, note
        )

    @staticmethod
    def summary(
        recorded: t.Iterable[ExperimentResult], style: str = "github"
    ) -> str:
        """Table of results

        :param recorded: results to show
        :param style: table style, see https://github.com/astanin/python-tabulate
        """
        rows = [
            [r.host_version, r.container_version, r.outcome.value, r.note]
            for r in recorded
        ]
        return tabulate(
            rows,
            ["Host", "Container", "Outcome", "Note"],
            tablefmt=style,
            disable_numparse=True,
        )


def compile_matrix(output_dir: Path, implementation: str) -> Path:
    """Aggregate the results of every test category into the
    compatibility matrix of an implementation

    :raises LedgerError: if a results file is corrupted
    :returns: path to the matrix file
    """
    init, netpipe, imb = (
        ledger.load(ledger.results_file(output_dir, implementation, category))
        for category in CATEGORIES
    )
    path = ledger.matrix_file(output_dir, implementation)
    ledger.write_matrix(path, ledger.aggregate(init, netpipe, imb))
    return path
