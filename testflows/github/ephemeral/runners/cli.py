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
import sys
import logging

from argparse import ArgumentParser, RawTextHelpFormatter

from . import __version__
from . import logger
from . import orchestrator
from .actions import Action
from .config import Config
from .args import (
    count_type,
    positive_number_type,
    non_negative_number_type,
    provider_type,
    market_type,
    label_type,
    repository_type,
    instance_ids_type,
    tags_type,
    file_contents_type,
    version_type,
    config_type,
)

description = """Ephemeral self-hosted GitHub Actions runners.

    The start command launches cloud instances that register themselves
    as self-hosted runners with a unique label and waits for them to come online.
    The stop command terminates the instances and removes the runners.
"""


def argparser():
    """Command line argument parser."""
    parser = ArgumentParser(
        "github-ephemeral-runners",
        description=description,
        formatter_class=RawTextHelpFormatter,
    )

    parser.add_argument(
        "-v", "--version", action="version", version=f"{__version__}"
    )

    parser.add_argument(
        "-c",
        "--config",
        metavar="path",
        type=config_type,
        default="__default_user_config__",
        help="program configuration file, default: ~/.github-ephemeral-runners/config.yaml",
    )

    parser.add_argument(
        "--debug",
        action="store_const",
        const=True,
        default=None,
        help="enable debugging mode",
    )

    github = parser.add_argument_group("GitHub options")

    github.add_argument(
        "--github-token",
        metavar="token",
        type=str,
        help="GitHub token, default: $GITHUB_TOKEN environment variable",
    )

    github.add_argument(
        "--github-repository",
        metavar="owner/repo",
        type=repository_type,
        help="GitHub repository, default: $GITHUB_REPOSITORY environment variable",
    )

    cloud = parser.add_argument_group("cloud options")

    cloud.add_argument(
        "--provider",
        metavar="name",
        type=provider_type,
        help="compute provider, either 'aws' or 'hetzner', default: aws",
    )

    cloud.add_argument(
        "--image-id",
        metavar="image",
        type=str,
        help=(
            "instance image, AWS AMI id (ami-0abcdef1234567890) or\n"
            "Hetzner image (ubuntu-22.04 or x86:system:ubuntu-22.04)"
        ),
    )

    cloud.add_argument(
        "--instance-type",
        metavar="type",
        type=str,
        help="instance type, for example: t3.medium or cpx21",
    )

    cloud.add_argument(
        "--key-name",
        metavar="name",
        type=str,
        help="key pair (AWS) or SSH key (Hetzner) name to add to the instances",
    )

    cloud.add_argument(
        "--number-of-machines",
        metavar="count",
        type=count_type,
        help="number of instances to start, default: 1",
    )

    cloud.add_argument(
        "--max-server-ready-time",
        metavar="sec",
        type=count_type,
        help="maximum time to wait for a Hetzner server to be running, default: 180 sec",
    )

    aws = parser.add_argument_group("AWS options")

    aws.add_argument(
        "--aws-region",
        metavar="region",
        type=str,
        help="AWS region, default: $AWS_REGION or $AWS_DEFAULT_REGION environment variable",
    )

    aws.add_argument(
        "--subnet-id",
        metavar="subnet-id",
        type=str,
        help="AWS VPC subnet id",
    )

    aws.add_argument(
        "--security-group-id",
        metavar="sg-id",
        type=str,
        help="AWS security group id",
    )

    aws.add_argument(
        "--iam-role-name",
        metavar="name",
        type=str,
        help="IAM role (instance profile) name to attach to the instances",
    )

    aws.add_argument(
        "--market-type",
        metavar="type",
        type=market_type,
        help="instance market type, either 'on-demand' or 'spot', default: on-demand",
    )

    aws.add_argument(
        "--resource-tags",
        metavar="json",
        type=tags_type,
        help='tags to add to instances and volumes, example: [{"Key": "team", "Value": "qa"}]',
    )

    hetzner = parser.add_argument_group("Hetzner options")

    hetzner.add_argument(
        "--hetzner-token",
        metavar="token",
        type=str,
        help="Hetzner Cloud token, default: $HETZNER_TOKEN environment variable",
    )

    hetzner.add_argument(
        "--location",
        metavar="name",
        type=str,
        help="Hetzner server location, for example: ash",
    )

    runners = parser.add_argument_group("runner options")

    runners.add_argument(
        "--runners-per-machine",
        metavar="count",
        type=count_type,
        help="number of runners to start on each instance, default: 1",
    )

    runners.add_argument(
        "--runner-home-dir",
        metavar="path",
        type=str,
        help=(
            "directory of the pre-installed runner software in the image,\n"
            "when not set the runner package is downloaded on boot"
        ),
    )

    runners.add_argument(
        "--runner-version",
        metavar="version",
        type=version_type,
        help="runner software version to download, default: 2.313.0",
    )

    runners.add_argument(
        "--pre-runner-script",
        metavar="script",
        type=file_contents_type,
        help="script to run before runners are installed, use @path to read it from a file",
    )

    runners.add_argument(
        "--max-runner-registration-time",
        metavar="min",
        type=positive_number_type,
        help="maximum time to wait for the runners to come online, default: 5 min",
    )

    runners.add_argument(
        "--runner-poll-interval",
        metavar="sec",
        type=positive_number_type,
        help="interval between runner status checks, default: 10 sec",
    )

    runners.add_argument(
        "--runner-quiet-period",
        metavar="sec",
        type=non_negative_number_type,
        help="time to wait before the first runner status check, default: 30 sec",
    )

    commands = parser.add_subparsers(
        title="commands", metavar="command", dest="mode", required=True
    )

    commands.add_parser(
        "start",
        help="start instances with self-hosted runners",
        description=(
            "Start instances with self-hosted runners.\n\n"
            "Sets 'label' and 'ec2-instances-ids' outputs."
        ),
        formatter_class=RawTextHelpFormatter,
    )

    stop = commands.add_parser(
        "stop",
        help="terminate instances and remove their self-hosted runners",
        description="Terminate instances and remove their self-hosted runners.",
        formatter_class=RawTextHelpFormatter,
    )

    stop.add_argument(
        "--label",
        metavar="label",
        type=label_type,
        help="label of the runners to remove, the 'label' output of the start command",
    )

    stop.add_argument(
        "--instance-ids",
        metavar="ids",
        type=instance_ids_type,
        help=(
            "ids of the instances to terminate, the 'ec2-instances-ids' output\n"
            "of the start command or a comma separated list"
        ),
    )

    return parser


def configure(args):
    """Return program configuration based on the command line arguments."""
    config: Config = args.config or Config()
    return config.updated(args)


def main(argv=None):
    """Program's entry point."""
    if argv is None:
        argv = sys.argv[1:] or ["-h"]

    args = argparser().parse_args(argv)
    config = configure(args)

    Action.debug = bool(config.debug)
    logger.configure(
        config.logger_config, level=logging.DEBUG if config.debug else logging.INFO
    )

    config.check()

    try:
        with Action(f"Running {config.mode} using {config.provider} provider"):
            orchestrator.run(config)
    except Exception:
        sys.exit(1)

    return 0
