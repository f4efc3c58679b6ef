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

# Welcome to the mpicompat setup.py
#
# The following environment variables represent build time
# options for mpicompat. These are only relevant to when a user
# or CI is invoking the setup.py script.
#
#
# NO_CHECKS
#   If set to 1, the build process will not check for
#   build dependencies like make, gcc, etc
#
# MPICOMPAT_NETPIPE_URL
#   The URL from which to retrieve the NetPIPE sources
#
# MPICOMPAT_IMB_URL
#   The git repository of the Intel MPI Benchmarks
#
# CC
#   The C compiler to use
#
# CXX
#   the CPP compiler to use
#
# BUILD_JOBS
#   Number of jobs to use when MPI is compiled (defaults to 4)
#
# MPICOMPAT_SUFFIX
#  if set, the version number is set to a developer build
#  with the current version, git-sha, and suffix. This version
#  is then written into mpicompat/version.py

import importlib.util
import os
import sys
from pathlib import Path

from setuptools import find_packages, setup

# Some necessary evils we have to do to be able to use
# the _install tools in mpicompat/_core/_install
# in both the setup.py and in the mpicompat cli

# import the installer classes
setup_path = Path(os.path.abspath(os.path.dirname(__file__)))
_install_dir = setup_path.joinpath("mpicompat/_core/_install")

# import buildenv module
buildenv_path = _install_dir.joinpath("buildenv.py")
buildenv_spec = importlib.util.spec_from_file_location("buildenv", str(buildenv_path))
buildenv = importlib.util.module_from_spec(buildenv_spec)
buildenv_spec.loader.exec_module(buildenv)

# helper classes for building dependencies that are
# also utilized by the mpicompat CLI
build_env = buildenv.BuildEnv(checks=False)
versions = buildenv.Versioner()

# check for compatible python versions
if not build_env.is_compatible_python(versions.PYTHON_MIN):
    print(
        "You are using Python {}. Python >={} is required.".format(
            build_env.python_version, versions.PYTHON_MIN
        )
    )
    sys.exit(-1)

if build_env.is_windows():
    print("Windows is not supported by mpicompat")
    sys.exit(-1)

# write the mpicompat version into
# mpicompat/version.py and to be set as
# __version__ in mpicompat/__init__.py
mpicompat_version = versions.write_version(setup_path)


# Define needed dependencies for the installation

extras_require = {
    "dev": [
        "black==24.1a1",
        "isort>=5.6.4",
        "pylint>=2.10.0,<3",
        "pytest>=6.0.0",
        "pytest-cov>=2.10.1",
    ],
    "mypy": [
        "mypy>=1.3.0",
        "types-psutil",
        "types-tabulate",
        "types-tqdm",
        "types-setuptools",
    ],
}


setup(
    name="mpicompat",
    version=mpicompat_version,
    description=(
        "Compatibility testing of MPI implementations across hosts and containers"
    ),
    license="BSD-2-Clause",
    python_requires=">=3.9",
    packages=find_packages(include=["mpicompat", "mpicompat.*"]),
    package_data={
        "mpicompat": [
            "_core/config/templates/*.tmpl",
            "_core/config/templates/*.c",
            "_core/config/templates/intel/*.tmpl",
            "_core/config/etc/*.conf",
        ]
    },
    include_package_data=True,
    install_requires=[
        "packaging>=24.0",
        "psutil>=5.7.2",
        "coloredlogs>=10.0",
        "tabulate>=0.8.9",
        "tqdm>=4.50.2",
        "filelock>=3.4.2",
        "GitPython<=3.1.43",
    ],
    zip_safe=False,
    extras_require=extras_require,
    entry_points={
        "console_scripts": [
            "mpicompat = mpicompat._core._cli.__main__:main",
        ]
    },
)
