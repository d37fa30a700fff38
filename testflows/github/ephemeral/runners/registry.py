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
import time
import logging

from dataclasses import dataclass

from github import Github
from github.Repository import Repository
from github.SelfHostedActionsRunner import SelfHostedActionsRunner

from .actions import Action
from .config import Config
from .errors import RegistrationTimeoutError, RunnerRemovalError
from .poll import Poller
from .request import request
from .results import Results

github_api_url = "https://api.github.com"

# wait states
QUIET = "quiet"
POLLING = "polling"
SATISFIED = "satisfied"
TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class RunnerDescriptor:
    """Self-hosted runner as reported by GitHub."""

    id: int
    name: str
    labels: tuple
    status: str
    busy: bool = False

    @classmethod
    def from_runner(cls, runner: SelfHostedActionsRunner):
        return cls(
            id=runner.id,
            name=runner.name,
            labels=runner_labels(runner),
            status=runner.status,
            busy=bool(runner.busy),
        )

    @property
    def online(self):
        return self.status == "online"


def runner_labels(runner: SelfHostedActionsRunner):
    """Return names of runner's labels."""
    return tuple(
        label["name"] if isinstance(label, dict) else label for label in runner.labels()
    )


class RegistrationWait:
    """State of waiting for new runners to come online.

    QUIET -> POLLING -> SATISFIED | TIMED_OUT

    On each poll, success is checked before timeout so that
    a poll that finds all runners online is always satisfied.
    """

    def __init__(
        self,
        label: str,
        expected_count: int,
        timeout_minutes: float,
        poll_interval_seconds: float,
        find_runners,
        action: Action = None,
    ):
        self.label = label
        self.expected_count = expected_count
        self.timeout_minutes = timeout_minutes
        self.poll_interval_seconds = poll_interval_seconds
        self.find_runners = find_runners
        self.action = action
        self.state = QUIET
        self.elapsed = 0
        self.polls = 0
        self.runners: list[RunnerDescriptor] = None

    def satisfied(self, runners: list[RunnerDescriptor]):
        return (
            runners is not None
            and len(runners) == self.expected_count
            and all(runner.online for runner in runners)
        )

    def tick(self):
        """Poll once. Returns True when terminal state is reached."""
        self.state = POLLING
        self.polls += 1
        self.runners = self.find_runners(self.label)

        if self.satisfied(self.runners):
            self.state = SATISFIED
            return True

        if self.elapsed > self.timeout_minutes * 60:
            self.state = TIMED_OUT
            raise RegistrationTimeoutError(
                f"a timeout of {self.timeout_minutes} minutes is exceeded, "
                f"{self.expected_count} runners with label {self.label} "
                "were not able to register themselves in GitHub and come online; "
                "check the instances' boot logs"
            )

        self.elapsed += self.poll_interval_seconds

        if self.action:
            online = (
                sum(1 for runner in self.runners if runner.online)
                if self.runners is not None
                else "unknown"
            )
            self.action.note(
                f"Checking... {online} of {self.expected_count} runners online "
                f"after {self.elapsed}s"
            )
        return False


class RunnerRegistry:
    """Self-hosted runners of a GitHub repository."""

    def __init__(self, config: Config, github: Github = None, sleep=time.sleep):
        self.config = config
        self.github = github
        self.sleep = sleep
        self._repo: Repository = None

    @property
    def headers(self):
        return {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self.config.github_token}",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    @property
    def repo(self) -> Repository:
        if self._repo is None:
            if self.github is None:
                self.github = Github(login_or_token=self.config.github_token)
            self._repo = self.github.get_repo(self.config.github_repository)
        return self._repo

    def get_registration_token(self):
        """Get registration token for new self-hosted runners."""
        with Action("Getting registration token for the runners"):
            content, _ = request(
                f"{github_api_url}/repos/{self.config.github_repository}"
                "/actions/runners/registration-token",
                headers=self.headers,
                data={},
                method="POST",
                format="json",
            )
            return content["token"]

    def find_by_label(self, label: str):
        """Return runners that have the label or None
        if the list of runners could not be retrieved."""
        runners = None

        with Action(
            f"Getting self-hosted runners with label {label}",
            ignore_fail=True,
            level=logging.DEBUG,
            label=label,
        ):
            runners = [
                RunnerDescriptor.from_runner(runner)
                for runner in self.repo.get_self_hosted_runners()
                if label in runner_labels(runner)
            ]

        return runners

    def remove_runner(self, runner: RunnerDescriptor):
        """Remove self-hosted runner."""
        if not self.repo.remove_self_hosted_runner(runner.id):
            raise RuntimeError(f"GitHub did not remove runner {runner.name}")

    def remove_by_label(self, label: str):
        """Remove all self-hosted runners that have the label."""
        runners = self.find_by_label(label)

        if runners is None:
            with Action(
                f"Self-hosted runners with label {label} are not found, "
                "so the removal is skipped",
                label=label,
            ):
                return

        results = Results()

        for runner in runners:
            try:
                with Action(f"Removing self-hosted runner {runner.name}", label=label):
                    self.remove_runner(runner)
                results.success(runner.name)
            except Exception as exc:
                results.failure(runner.name, exc)

        results.raise_for_failures(
            RunnerRemovalError,
            f"failed to remove self-hosted runners with label {label}",
        )

    def wait_online(
        self,
        label: str,
        expected_count: int,
        timeout_minutes: float = 5,
        poll_interval_seconds: float = 10,
        initial_quiet_seconds: float = 30,
    ):
        """Wait for the expected number of runners with the label to come online."""
        with Action(
            f"Waiting {initial_quiet_seconds}s for the instances "
            "to register in GitHub as new self-hosted runners",
            label=label,
        ):
            self.sleep(initial_quiet_seconds)

        with Action(
            f"Checking every {poll_interval_seconds}s if {expected_count} "
            f"self-hosted runners with label {label} are online",
            label=label,
        ) as action:
            wait = RegistrationWait(
                label=label,
                expected_count=expected_count,
                timeout_minutes=timeout_minutes,
                poll_interval_seconds=poll_interval_seconds,
                find_runners=self.find_by_label,
                action=action,
            )
            with Poller(
                interval=poll_interval_seconds,
                function=wait.tick,
                name="runner-registration",
            ) as poller:
                poller.join()

            for runner in wait.runners:
                action.note(f"Self-hosted runner {runner.name} is online")

        return wait
