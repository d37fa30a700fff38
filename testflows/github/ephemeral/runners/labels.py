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
import string
import secrets

label_prefix = "github-ephemeral-runner-"

# instance tag and server label that holds the runner label
runner_label_tag = "github-ephemeral-runner-label"

uid_alphabet = string.ascii_lowercase + string.digits


def uid(length: int = 10):
    """Return random lowercase alphanumeric id."""
    return "".join(secrets.choice(uid_alphabet) for _ in range(length))


def generate_label():
    """Generate unique label used to find the runners and instances of one run."""
    return f"{label_prefix}{uid()}"


def instance_name(label: str, index: int):
    """Return name of the instance with the given index."""
    return f"{label}-{index}"


def tag_specifications(label: str, resource_tags: tuple = ()):
    """Return EC2 tag specifications for the instance and its volumes."""
    tags = [
        {"Key": key, "Value": value}
        for key, value in resource_tags
        if key != runner_label_tag
    ]
    keys = [tag["Key"] for tag in tags]

    if "Name" not in keys:
        tags.append({"Key": "Name", "Value": label})
    tags.append({"Key": runner_label_tag, "Value": label})

    return [
        {"ResourceType": "instance", "Tags": tags},
        {"ResourceType": "volume", "Tags": tags},
    ]
