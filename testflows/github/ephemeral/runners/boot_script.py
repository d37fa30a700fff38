# Copyright 2025 Katteli Inc.
# TestFlows.com Open-Source Software Testing Framework (http://testflows.com)
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#      http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Boot script that installs and starts self-hosted runners
on the first boot of a new instance.

Boot scripts are executed by cloud-init as the root user.
"""
from .config import Config

github_url = "https://github.com"

runner_download_url = "https://github.com/actions/runner/releases/download"

#: directory where the runner package is downloaded
#: when the image does not provide a pre-installed runner
download_dir = "actions-runner"

#: prefix of each runner's working directory
runner_dir_prefix = "actions-runner-"

pre_runner_script_name = "pre-runner-script.sh"

#: machine architecture to runner package architecture
architectures = {
    "aarch64": "arm64",
    "arm64": "arm64",
    "x86_64": "x64",
    "amd64": "x64",
}


def architecture_detection():
    """Return shell snippet that sets RUNNER_ARCH.

    RUNNER_ARCH is left unset for unknown architectures
    so that the runner download fails.
    """
    arm64 = "|".join(m for m, a in architectures.items() if a == "arm64")
    x64 = "|".join(m for m, a in architectures.items() if a == "x64")
    return (
        f'case $(uname -m) in {arm64}) ARCH="arm64" ;; {x64}) ARCH="x64" ;; esac '
        "&& export RUNNER_ARCH=${ARCH}"
    )


def pre_runner_script(script: str):
    """Return shell snippet that saves and sources user's pre-runner script."""
    if not script or not script.strip():
        return ""

    delimiter = "PRE_RUNNER_SCRIPT_EOF"
    while delimiter in script:
        delimiter += "_"

    return (
        f"cat > {pre_runner_script_name} <<'{delimiter}'\n"
        f"{script.rstrip()}\n"
        f"{delimiter}\n"
        f"source {pre_runner_script_name}\n"
    )


def download_runner(version: str):
    """Return shell snippet that downloads and extracts runner package."""
    package = f"actions-runner-linux-${{RUNNER_ARCH}}-{version}.tar.gz"
    return (
        f"{architecture_detection()}\n"
        f"curl -O -L {runner_download_url}/v{version}/{package}\n"
        f"tar xzf ./{package}\n"
    )


def start_runner(index: int, token: str, label: str, repository: str):
    """Return shell snippet that configures and starts runner with the given index."""
    runner_dir = f"{runner_dir_prefix}{index}"
    return (
        f'cp -r "$RUNNER_DIR" {runner_dir}\n'
        f"cd {runner_dir}\n"
        f"./config.sh --url {github_url}/{repository} --token {token} "
        f'--labels {label} --name "$(hostname)-runner-{index}" --unattended\n'
        "./run.sh &\n"
        "cd ..\n"
    )


def build_boot_script(token: str, label: str, config: Config):
    """Build boot script for a new runner instance.

    If runner home directory is specified then the runner software
    and its dependencies are expected to be pre-installed in the image,
    otherwise the runner package is downloaded for the instance's architecture.
    Each runner gets its own copy of the runner directory.
    """
    if config.runner_home_dir:
        runner_dir = config.runner_home_dir
        script = "#!/bin/bash\n" f'RUNNER_DIR="{runner_dir}"\n'
    else:
        script = (
            "#!/bin/bash\n"
            f"mkdir -p {download_dir}\n"
            f'RUNNER_DIR="$(pwd)/{download_dir}"\n'
        )

    script += 'cd "$RUNNER_DIR"\n'
    script += pre_runner_script(config.pre_runner_script)

    if not config.runner_home_dir:
        script += 'cd "$RUNNER_DIR"\n'
        script += download_runner(config.runner_version)

    script += 'cd "$RUNNER_DIR/.."\n'
    script += "export RUNNER_ALLOW_RUNASROOT=1\n"

    for index in range(1, config.runners_per_machine + 1):
        script += start_runner(
            index=index,
            token=token,
            label=label,
            repository=config.github_repository,
        )

    return script
