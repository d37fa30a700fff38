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
from dataclasses import dataclass, field

from .errors import AggregateError


@dataclass
class Outcome:
    """Outcome of an operation for a single item."""

    item: object
    exception: Exception = None

    @property
    def ok(self):
        return self.exception is None


@dataclass
class Results:
    """Per item outcomes of an operation that is attempted
    for every item even if some of them fail."""

    outcomes: list[Outcome] = field(default_factory=list)

    def success(self, item):
        self.outcomes.append(Outcome(item=item))

    def failure(self, item, exception: Exception):
        self.outcomes.append(Outcome(item=item, exception=exception))

    @property
    def ok(self):
        return all(outcome.ok for outcome in self.outcomes)

    @property
    def errors(self):
        return [outcome.exception for outcome in self.outcomes if not outcome.ok]

    def raise_for_failures(self, error_class=AggregateError, message=None):
        """Raise aggregate error if any item failed."""
        if self.ok:
            return
        failed = [str(outcome.item) for outcome in self.outcomes if not outcome.ok]
        if message is None:
            message = f"failed for {', '.join(failed)}"
        raise error_class(message, self.errors)
