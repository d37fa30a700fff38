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

"""AWS EC2 provider."""
import boto3

from . import Provisioner
from ..actions import Action
from ..config import Config
from ..errors import WaitRunningError
from ..labels import tag_specifications
from ..results import Results


class Ec2Provisioner(Provisioner):
    """Provision runner instances using AWS EC2."""

    name = "aws"

    def __init__(self, config: Config, client=None):
        super().__init__(config)
        self._client = client

    @property
    def client(self):
        if self._client is None:
            with Action("Creating AWS EC2 client"):
                self._client = boto3.client("ec2", region_name=self.config.aws_region)
        return self._client

    def launch_params(self, boot_script: str, label: str):
        """Return run instances request parameters."""
        config = self.config

        params = {
            "ImageId": config.image_id,
            "InstanceType": config.instance_type,
            "MinCount": 1,
            "MaxCount": 1,
            # boto3 base64 encodes user data
            "UserData": boot_script,
            "SubnetId": config.subnet_id,
            "SecurityGroupIds": [config.security_group_id],
            "TagSpecifications": tag_specifications(label, config.resource_tags),
        }

        if config.iam_role_name:
            params["IamInstanceProfile"] = {"Name": config.iam_role_name}

        if config.key_name:
            params["KeyName"] = config.key_name

        if config.market_type == "spot":
            params["InstanceMarketOptions"] = {
                "MarketType": "spot",
                "SpotOptions": {
                    "SpotInstanceType": "one-time",
                },
            }

        return params

    def launch(self, boot_script: str, label: str):
        params = self.launch_params(boot_script, label)
        instance_ids = []

        for index in range(1, self.config.number_of_machines + 1):
            with Action(
                f"Starting {self.config.market_type} AWS EC2 instance {index} "
                f"of {self.config.number_of_machines}",
                label=label,
            ) as action:
                response = self.client.run_instances(**params)
                instance_id = response["Instances"][0]["InstanceId"]
                instance_ids.append(instance_id)
                action.note(f"AWS EC2 instance {instance_id} is started")

        return instance_ids

    def wait_running(self, instance_ids: list[str]):
        waiter = self.client.get_waiter("instance_running")
        results = Results()

        for instance_id in instance_ids:
            try:
                with Action(
                    f"Waiting for AWS EC2 instance {instance_id} to be running",
                    instance_id=instance_id,
                ) as action:
                    waiter.wait(InstanceIds=[instance_id])
                    action.note(f"AWS EC2 instance {instance_id} is up and running")
                results.success(instance_id)
            except Exception as exc:
                results.failure(instance_id, exc)

        results.raise_for_failures(
            WaitRunningError, "AWS EC2 instances failed to start running"
        )

    def terminate(self, instance_ids: list[str]):
        instance_ids = list(instance_ids)

        with Action(f"Terminating AWS EC2 instances {' '.join(instance_ids)}") as action:
            self.client.terminate_instances(InstanceIds=instance_ids)
            action.note(f"AWS EC2 instances {' '.join(instance_ids)} are terminated")
