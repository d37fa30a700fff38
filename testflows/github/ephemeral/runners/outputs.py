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
import os
import json

from .actions import Action


def set_output(name: str, value: str):
    """Set workflow step output.

    Output is appended to the file specified by GITHUB_OUTPUT
    when running inside a GitHub Actions job.
    """
    with Action(f"Setting output {name}={value}"):
        output_file = os.getenv("GITHUB_OUTPUT")
        if output_file:
            with open(output_file, "a", encoding="utf-8") as f:
                f.write(f"{name}={value}\n")


def set_start_outputs(label: str, instance_ids: list[str]):
    """Set outputs needed by the stop mode."""
    set_output("label", label)
    set_output("ec2-instances-ids", json.dumps(list(instance_ids)))
