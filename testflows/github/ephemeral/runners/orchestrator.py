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
from dataclasses import dataclass

from .actions import Action
from .boot_script import build_boot_script
from .config import Config
from .labels import generate_label
from .outputs import set_start_outputs
from .providers import Provisioner, get_provisioner
from .registry import RunnerRegistry


@dataclass
class StartResult:
    label: str
    instance_ids: list[str]


def start(
    config: Config,
    registry: RunnerRegistry = None,
    provisioner: Provisioner = None,
):
    """Start instances with self-hosted runners and wait
    for the runners to come online."""
    if registry is None:
        registry = RunnerRegistry(config)
    if provisioner is None:
        provisioner = get_provisioner(config)

    label = generate_label()

    with Action(f"Generated runners label {label}", label=label):
        pass

    token = registry.get_registration_token()

    with Action("Building boot script", label=label):
        boot_script = build_boot_script(token=token, label=label, config=config)

    instance_ids = provisioner.launch(boot_script=boot_script, label=label)

    set_start_outputs(label=label, instance_ids=instance_ids)

    provisioner.wait_running(instance_ids)

    registry.wait_online(
        label=label,
        expected_count=config.expected_runners,
        timeout_minutes=config.max_runner_registration_time,
        poll_interval_seconds=config.runner_poll_interval,
        initial_quiet_seconds=config.runner_quiet_period,
    )

    return StartResult(label=label, instance_ids=instance_ids)


def stop(
    config: Config,
    registry: RunnerRegistry = None,
    provisioner: Provisioner = None,
):
    """Terminate instances and remove their self-hosted runners."""
    if registry is None:
        registry = RunnerRegistry(config)
    if provisioner is None:
        provisioner = get_provisioner(config)

    provisioner.terminate(list(config.instance_ids))

    registry.remove_by_label(config.label)


def run(config: Config, **kwargs):
    """Run workflow selected by the mode."""
    if config.mode == "start":
        return start(config, **kwargs)
    elif config.mode == "stop":
        return stop(config, **kwargs)
    raise ValueError(f"unknown mode {config.mode}")
