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
import re
import sys
import yaml
import logging
import logging.config
import dataclasses

from dataclasses import dataclass

import testflows.github.ephemeral.runners.args as args

from ..errors import ConfigError

# add support for parsing ${ENV_VAR} in config
env_pattern = re.compile(r".*?\${(.*?)}.*?")

default_user_config = os.path.expanduser("~/.github-ephemeral-runners/config.yaml")

#: default GitHub Actions runner software version
default_runner_version = "2.313.0"


def env_constructor(loader, node):
    value = loader.construct_scalar(node)
    for group in env_pattern.findall(value):
        env_value = os.environ.get(group)
        if env_value is None:
            raise ConfigError(
                f"environment variable ${group} used in the config is not defined"
            )
        value = value.replace(f"${{{group}}}", env_value)
    return value


yaml.add_implicit_resolver("!path", env_pattern, None, yaml.SafeLoader)
yaml.add_constructor("!path", env_constructor, yaml.SafeLoader)


path = args.path_type
count = args.count_type
provider = args.provider_type
market_type = args.market_type
label = args.label_type
repository = args.repository_type
instance_ids = args.instance_ids_type
tags = args.tags_type
version = args.version_type
positive_number = args.positive_number_type
non_negative_number = args.non_negative_number_type


def env(*names):
    """Return default factory that reads the first defined
    environment variable when configuration object is created."""

    def factory():
        for name in names:
            value = os.getenv(name)
            if value:
                return value
        return None

    return factory


@dataclass(frozen=True)
class Config:
    """Program configuration class.

    Configuration is immutable. Use `updated()` to get a modified copy.
    """

    mode: str = None
    github_token: str = dataclasses.field(default_factory=env("GITHUB_TOKEN"))
    github_repository: str = dataclasses.field(
        default_factory=env("GITHUB_REPOSITORY")
    )
    provider: str = "aws"
    # AWS
    aws_region: str = dataclasses.field(
        default_factory=env("AWS_REGION", "AWS_DEFAULT_REGION")
    )
    subnet_id: str = None
    security_group_id: str = None
    iam_role_name: str = None
    market_type: str = "on-demand"
    resource_tags: tuple = ()
    # Hetzner
    hetzner_token: str = dataclasses.field(default_factory=env("HETZNER_TOKEN"))
    location: str = None
    max_server_ready_time: int = 180
    # provider independent
    image_id: str = None
    instance_type: str = None
    key_name: str = None
    number_of_machines: int = 1
    runners_per_machine: int = 1
    runner_home_dir: str = None
    pre_runner_script: str = ""
    runner_version: str = default_runner_version
    # stop mode
    label: str = None
    instance_ids: tuple = ()
    # waiting for runners to come online
    max_runner_registration_time: float = 5
    runner_poll_interval: float = 10
    runner_quiet_period: float = 30
    debug: bool = False
    # special
    logger_config: dict = None
    config_file: str = None

    #: attributes that can't be set using command line arguments
    special = ("logger_config", "config_file")

    @property
    def expected_runners(self):
        """Total number of runners expected to come online."""
        return self.number_of_machines * self.runners_per_machine

    @property
    def owner(self):
        return self.github_repository.split("/", 1)[0]

    @property
    def repo(self):
        return self.github_repository.split("/", 1)[-1]

    def updated(self, args=None, **changes):
        """Return new configuration updated using command line arguments
        and any explicit changes."""
        if args is not None:
            for field in dataclasses.fields(self):
                if field.name in self.special:
                    continue
                arg_value = getattr(args, field.name, None)
                if arg_value is not None:
                    changes.setdefault(field.name, arg_value)

        return dataclasses.replace(self, **changes)

    def required(self, mode: str = None):
        """Return names of mandatory parameters for the mode."""
        mode = mode or self.mode

        if mode == "stop":
            parameters = ["instance_ids", "label"]
            if self.provider == "hetzner":
                parameters.append("hetzner_token")
            parameters += ["github_token", "github_repository"]
            return parameters

        parameters = [
            "github_token",
            "github_repository",
            "image_id",
            "instance_type",
        ]
        if self.provider == "aws":
            parameters += ["subnet_id", "security_group_id"]
        elif self.provider == "hetzner":
            parameters += ["hetzner_token"]
        return parameters

    def check(self, *parameters):
        """Check mandatory configuration parameters."""

        if not parameters:
            parameters = self.required()

        for name in parameters:
            value = getattr(self, name)
            if value:
                continue
            print(
                f"argument error: --{name.lower().replace('_','-')} is not defined",
                file=sys.stderr,
            )
            sys.exit(1)


def read(path: str):
    """Load raw configuration document."""
    with open(path, "r") as f:
        return yaml.load(f, Loader=yaml.SafeLoader)


def check_string(doc, name):
    if doc.get(name) is not None:
        assert isinstance(doc[name], str), f"config.{name}: is not a string"


def check_count(doc, name):
    if doc.get(name) is not None:
        v = doc[name]
        assert (
            isinstance(v, int) and not isinstance(v, bool) and v > 0
        ), f"config.{name}: is not an integer > 0"


def check_number(doc, name, allow_zero=False):
    if doc.get(name) is not None:
        v = doc[name]
        assert isinstance(v, (int, float)) and not isinstance(
            v, bool
        ), f"config.{name}: is not a number"
        if allow_zero:
            assert v >= 0, f"config.{name}: is not a number >= 0"
        else:
            assert v > 0, f"config.{name}: is not a number > 0"


def convert(doc, name, type):
    if doc.get(name) is not None:
        try:
            doc[name] = type(doc[name])
        except Exception as e:
            assert False, f"config.{name}: {e}"


def parse_config(filename: str):
    """Load and parse yaml configuration file into config object.

    Does not check if image exists.
    Does not check if instance type exists.
    Does not check if subnet, security group, IAM role or key pair exist.
    """
    doc = read(filename)

    if not isinstance(doc, dict) or doc.get("config") is None:
        assert False, "config: entry is missing"

    doc = doc["config"]

    assert isinstance(doc, dict), "config: is not a dictionary"

    if doc.get("mode") is not None:
        assert False, "config.mode: should not be defined, use the command argument"

    for name in (
        "github_token",
        "github_repository",
        "provider",
        "aws_region",
        "subnet_id",
        "security_group_id",
        "iam_role_name",
        "market_type",
        "hetzner_token",
        "location",
        "image_id",
        "instance_type",
        "key_name",
        "runner_home_dir",
        "pre_runner_script",
        "runner_version",
        "label",
    ):
        check_string(doc, name)

    convert(doc, "github_repository", repository)
    convert(doc, "provider", provider)
    convert(doc, "market_type", market_type)
    convert(doc, "label", label)

    convert(doc, "runner_version", version)

    if doc.get("resource_tags") is not None:
        assert isinstance(
            doc["resource_tags"], (list, dict)
        ), "config.resource_tags: is not a list or a dictionary"
        convert(doc, "resource_tags", tags)

    if doc.get("instance_ids") is not None:
        assert isinstance(
            doc["instance_ids"], list
        ), "config.instance_ids: is not a list"
        convert(doc, "instance_ids", instance_ids)

    for name in ("number_of_machines", "runners_per_machine", "max_server_ready_time"):
        check_count(doc, name)

    for name in ("max_runner_registration_time", "runner_poll_interval"):
        check_number(doc, name)

    check_number(doc, "runner_quiet_period", allow_zero=True)

    if doc.get("debug") is not None:
        assert isinstance(doc["debug"], bool), "config.debug: not a boolean"

    if doc.get("logger_config") is not None:
        logger_config = doc["logger_config"]
        assert isinstance(
            logger_config, dict
        ), "config.logger_config: is not a dictionary"
        assert (
            logger_config.get("loggers") is not None
        ), "config.logger_config.loggers is not defined"
        assert (
            logger_config["loggers"].get("testflows.github.ephemeral.runners")
            is not None
        ), 'config.logger_config.loggers."testflows.github.ephemeral.runners" is not defined'
        assert (
            logger_config.get("handlers") is not None
        ), "config.logger_config.handlers is not defined"

        try:
            logging.config.dictConfig(logger_config)
        except Exception as e:
            assert False, f"config.logger_config: {e}"

    if doc.get("config_file") is not None:
        assert False, "config.config_file: should not be defined"

    try:
        return Config(**doc, config_file=filename)
    except Exception as e:
        assert False, f"config: {e}"
