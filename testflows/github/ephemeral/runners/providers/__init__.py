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
"""Compute providers that launch, wait for, and terminate runner instances."""
from ..config import Config


class Provisioner:
    """Base compute provisioner."""

    name = None

    def __init__(self, config: Config):
        self.config = config

    def launch(self, boot_script: str, label: str) -> list[str]:
        """Launch one instance per requested machine and return their ids."""
        raise NotImplementedError

    def wait_running(self, instance_ids: list[str]):
        """Wait for all instances to be running."""
        raise NotImplementedError

    def terminate(self, instance_ids: list[str]):
        """Terminate instances."""
        raise NotImplementedError


def get_provisioner(config: Config) -> Provisioner:
    """Return provisioner for the configured provider."""
    if config.provider == "aws":
        from .aws import Ec2Provisioner

        return Ec2Provisioner(config)

    elif config.provider == "hetzner":
        from .hetzner import HetznerProvisioner

        return HetznerProvisioner(config)

    raise ValueError(f"unknown provider {config.provider}")
