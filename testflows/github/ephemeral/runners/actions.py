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
import logging

from .logger import logger


class Action:
    """Action class."""

    debug = False

    def __init__(
        self,
        name: str,
        ignore_fail: bool = False,
        level: int = logging.INFO,
        stacklevel: int = 2,
        label: str = "",
        instance_id: str = "",
    ):
        self.name = name
        self.ignore_fail = ignore_fail
        self.level = level
        self.stacklevel = stacklevel
        self.extra = {
            "label": label or "-",
            "instance_id": instance_id or "-",
        }

    def __enter__(self):
        logger.log(
            msg=f"🍀 {self.name}",
            stacklevel=self.stacklevel + 1,
            level=self.level,
            extra=self.extra,
        )
        return self

    def note(self, message, stacklevel=None):
        logger.log(
            msg=f"   {message}",
            stacklevel=(self.stacklevel + 1) if stacklevel is None else stacklevel,
            level=self.level,
            extra=self.extra,
        )

    def __exit__(self, exc_type, exc_value, exc_traceback):
        if exc_value is not None:
            msg = f"❌ {exc_type.__name__ or 'Error'}: {exc_value}"
            if getattr(exc_value, "processed", False):
                # already logged by an inner action
                pass
            elif not self.debug:
                logger.log(
                    msg=msg,
                    stacklevel=self.stacklevel + 1,
                    level=logging.ERROR,
                    extra=self.extra,
                )
            else:
                logger.exception(
                    msg=msg, stacklevel=self.stacklevel + 1, extra=self.extra
                )
            try:
                exc_value.processed = True
            except AttributeError:
                pass
            if self.ignore_fail:
                return True
            raise
