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

"""Hetzner Cloud provider."""
import time

from hcloud import Client
from hcloud.images.domain import Image
from hcloud.locations.domain import Location
from hcloud.server_types.domain import ServerType
from hcloud.servers.client import BoundServer
from hcloud.servers.domain import Server
from hcloud.ssh_keys.domain import SSHKey

from . import Provisioner
from .. import __version__ as project_version
from ..actions import Action
from ..config import Config
from ..errors import WaitRunningError, TerminateError
from ..labels import instance_name, runner_label_tag
from ..results import Results

project_name = "github-ephemeral-runners"


class ImageError(Exception):
    pass


class LocationError(Exception):
    pass


class ServerTypeError(Exception):
    pass


class SSHKeyError(Exception):
    pass


class HClient(Client):
    def __init__(
        self,
        token,
        api_endpoint="https://api.hetzner.cloud/v1",
        poll_interval=1,
    ):
        super().__init__(
            token, api_endpoint, project_name, project_version, poll_interval
        )


def architecture(server_type: ServerType):
    """Return image architecture for the server type.
    ARM64 servers type names start with "CA" prefix.

    For example, CAX11, CAX21, CAX31, and CAX41
    """
    if server_type.name.lower().startswith("ca"):
        return "arm"
    return "x86"


def image_type(v: str, server_type: ServerType):
    """Image argument. Example: x86:system:ubuntu-22.04 or ubuntu-22.04"""
    if ":" not in v:
        return Image(type="system", architecture=architecture(server_type), name=v)

    try:
        image_architecture, _image_type, image_name = v.split(":", 2)
        assert _image_type in ("system", "snapshot", "backup", "app")
    except (ValueError, AssertionError):
        raise ImageError(f"invalid image {v}")

    if _image_type in ("system", "app"):
        return Image(type=_image_type, architecture=image_architecture, name=image_name)
    # backup or snapshot uses description
    return Image(
        type=_image_type, architecture=image_architecture, description=image_name
    )


def check_image(client: Client, image: Image):
    """Check if image exists.
    If image type is not 'system' then use image description to find it.
    """
    if image.type in ("system", "app"):
        _image = client.images.get_by_name_and_architecture(
            name=image.name, architecture=image.architecture
        )
        if not _image:
            raise ImageError(
                f"image type:'{image.type}' name:'{image.name}' architecture:'{image.architecture}' not found"
            )
        return _image

    try:
        return [
            i
            for i in client.images.get_all(
                type=image.type, architecture=image.architecture
            )
            if i.description == image.description
        ][0]
    except IndexError:
        raise ImageError(
            f"image type:'{image.type}' name:'{image.description}' architecture:'{image.architecture}' not found"
        )


def check_location(client: Client, location: str):
    """Check if location exists."""
    if location is None:
        return None
    _location: Location = client.locations.get_by_name(location)
    if not _location:
        raise LocationError(f"location '{location}' not found")
    return _location


def check_server_type(client: Client, server_type: str):
    """Check if server type exists."""
    _type: ServerType = client.server_types.get_by_name(server_type)
    if not _type:
        raise ServerTypeError(f"server type '{server_type}' not found")
    return _type


def check_ssh_key(client: Client, name: str):
    """Check if SSH key exists."""
    if name is None:
        return None
    ssh_key: SSHKey = client.ssh_keys.get_by_name(name)
    if not ssh_key:
        raise SSHKeyError(f"SSH key '{name}' not found")
    return ssh_key


def wait_ready(server: BoundServer, timeout: float, action: Action = None):
    """Wait for server to be running."""
    start_time = time.time()

    while True:
        status = server.status
        if action:
            action.note(f"{server.name} {status}", stacklevel=4)
        if status == Server.STATUS_RUNNING:
            break
        if time.time() - start_time >= timeout:
            raise TimeoutError(f"waiting for server {server.name} to start running")
        time.sleep(1)
        server.reload()


class HetznerProvisioner(Provisioner):
    """Provision runner instances using Hetzner Cloud servers."""

    name = "hetzner"

    def __init__(self, config: Config, client: Client = None):
        super().__init__(config)
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            with Action("Logging in to Hetzner Cloud"):
                self._client = HClient(token=self.config.hetzner_token)
        return self._client

    def launch(self, boot_script: str, label: str):
        config = self.config

        with Action("Checking if server type exists"):
            server_type = check_server_type(self.client, config.instance_type)

        with Action("Checking if image exists"):
            image = check_image(self.client, image_type(config.image_id, server_type))

        with Action("Checking if location exists"):
            location = check_location(self.client, config.location)

        with Action("Checking if SSH key exists"):
            ssh_key = check_ssh_key(self.client, config.key_name)

        instance_ids = []

        for index in range(1, config.number_of_machines + 1):
            name = instance_name(label, index)
            with Action(
                f"Creating server {name} {index} of {config.number_of_machines}",
                label=label,
            ) as action:
                response = self.client.servers.create(
                    name=name,
                    server_type=server_type,
                    image=image,
                    location=location,
                    ssh_keys=[ssh_key] if ssh_key else None,
                    labels={runner_label_tag: label},
                    user_data=boot_script,
                )
                server: BoundServer = response.server
                instance_ids.append(str(server.id))
                action.note(f"Server {server.name} with id {server.id} is created")

        return instance_ids

    def wait_running(self, instance_ids: list[str]):
        results = Results()

        for instance_id in instance_ids:
            try:
                with Action(
                    f"Waiting for server {instance_id} to be running",
                    instance_id=instance_id,
                ) as action:
                    server: BoundServer = self.client.servers.get_by_id(
                        int(instance_id)
                    )
                    wait_ready(
                        server=server,
                        timeout=self.config.max_server_ready_time,
                        action=action,
                    )
                results.success(instance_id)
            except Exception as exc:
                results.failure(instance_id, exc)

        results.raise_for_failures(
            WaitRunningError, "Hetzner Cloud servers failed to start running"
        )

    def terminate(self, instance_ids: list[str]):
        results = Results()

        for instance_id in instance_ids:
            try:
                with Action(
                    f"Deleting server {instance_id}", instance_id=instance_id
                ):
                    self.client.servers.get_by_id(int(instance_id)).delete()
                results.success(instance_id)
            except Exception as exc:
                results.failure(instance_id, exc)

        results.raise_for_failures(
            TerminateError, "failed to delete Hetzner Cloud servers"
        )
