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
import copy
import json
import logging
import logging.config
import logging.handlers
import tempfile

logger_name = "testflows.github.ephemeral.runners"

logger = logging.getLogger(logger_name)

encoded_message_prefix = "✉ "

#: extra record fields and their default values
extra_defaults = {
    "label": "-",
    "instance_id": "-",
}


def encode_message(msg):
    """Encode message."""
    return json.dumps(msg)


def set_defaults(record):
    """Add default values for the extra fields that are missing."""
    for name, value in extra_defaults.items():
        if not hasattr(record, name):
            setattr(record, name, value)


class RotatingFileFormatter(logging.Formatter):
    def format(self, record):
        """Format record and convert multi-line message to a single line
        that includes exception or stack trace if present."""
        set_defaults(record)

        message = record.getMessage()

        if record.exc_info:
            if not record.exc_text:
                record.exc_text = self.formatException(record.exc_info)

        if record.exc_text:
            if message[-1:] != "\n":
                message = message + "\n"
            message = message + record.exc_text
        if record.stack_info:
            if message[-1:] != "\n":
                message = message + "\n"
            message = message + self.formatStack(record.stack_info)

        record.message = encoded_message_prefix + encode_message(message)
        if self.usesTime():
            record.asctime = self.formatTime(record, self.datefmt)

        return self.formatMessage(record)


class StdoutFormatter(logging.Formatter):
    def format(self, record):
        """Format record for stdout output."""
        set_defaults(record)
        return super().format(record)


class RotatingFileHandler(logging.handlers.RotatingFileHandler):
    pass


class StdoutHandler(logging.StreamHandler):
    pass


class LoggerAdapter(logging.LoggerAdapter):
    def process(self, msg, kwargs):
        if kwargs.get("extra") is None:
            kwargs["extra"] = dict(self.extra)
        else:
            extra = {}
            for k, v in self.extra.items():
                value = kwargs["extra"].get(k)
                extra[k] = value if value not in (None, "") else v
            kwargs["extra"] = extra

        return msg, kwargs


logger = LoggerAdapter(logger, dict(extra_defaults))

default_config = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "stdout": {
            "class": f"{logger_name}.logger.StdoutFormatter",
            "format": "%(asctime)s %(message)s",
            "datefmt": "%H:%M:%S",
        },
        "rotating_file": {
            "class": f"{logger_name}.logger.RotatingFileFormatter",
            "format": (
                "%(asctime)s,%(levelname)s,%(label)s,%(instance_id)s,"
                "%(threadName)s,%(funcName)s,%(message)s"
            ),
            "datefmt": "%Y-%m-%d,%H:%M:%S",
        },
    },
    "handlers": {
        "stdout": {
            "level": "INFO",
            "formatter": "stdout",
            "class": f"{logger_name}.logger.StdoutHandler",
            "stream": "ext://sys.stdout",
        },
        "rotating_logfile": {
            "level": "INFO",
            "formatter": "rotating_file",
            "class": f"{logger_name}.logger.RotatingFileHandler",
            "filename": os.path.join(
                tempfile.gettempdir(), "github-ephemeral-runners.log"
            ),
            "maxBytes": 52428800,  # 50MB 50*2**20
            "backupCount": 10,
            "delay": True,
        },
    },
    "loggers": {
        logger_name: {
            "level": "INFO",
            "handlers": ["stdout", "rotating_logfile"],
            "propagate": False,
        },
        "botocore": {
            "level": "WARNING",
        },
    },
}


def configure(logger_config: dict = None, level=logging.INFO):
    """Apply logging configuration and return the applied configuration."""
    level = logging.getLevelName(level)

    if logger_config is None:
        logger_config = default_config

    logger_config = copy.deepcopy(logger_config)

    for handler in logger_config["handlers"].values():
        handler["level"] = level

    logger_config["loggers"][logger_name]["level"] = level

    logging.config.dictConfig(logger_config)

    return logger_config
