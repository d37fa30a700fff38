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
import json

from argparse import ArgumentTypeError
from traceback import print_exception

#: supported compute providers
providers = ("aws", "hetzner")

#: supported instance market types
market_types = ("on-demand", "spot")


def path_type(v, check_exists=True):
    """Path argument type."""
    v = os.path.abspath(os.path.expanduser(v))
    if check_exists and not os.path.exists(v):
        raise ArgumentTypeError(f"{v} does not exist")
    return v


def count_type(v):
    """Count argument type."""
    try:
        v = int(v)
    except (TypeError, ValueError):
        raise ArgumentTypeError(f"{v} is not an integer")
    if not v >= 1:
        raise ArgumentTypeError(f"{v} must be >= 1")
    return v


def positive_number_type(v):
    """Positive number argument type (seconds or minutes)."""
    try:
        v = float(v)
    except (TypeError, ValueError):
        raise ArgumentTypeError(f"{v} is not a number")
    if not v > 0:
        raise ArgumentTypeError(f"{v} must be > 0")
    return int(v) if v.is_integer() else v


def non_negative_number_type(v):
    """Non-negative number argument type (seconds)."""
    if v in (0, "0"):
        return 0
    return positive_number_type(v)


def provider_type(v):
    """Compute provider argument type."""
    v = v.strip().lower()
    if v not in providers:
        raise ArgumentTypeError(
            f"unknown provider '{v}', valid providers: {', '.join(providers)}"
        )
    return v


def market_type(v):
    """Instance market type argument type."""
    v = v.strip().lower()
    if v not in market_types:
        raise ArgumentTypeError(
            f"invalid market type '{v}', must be one of: {', '.join(market_types)}"
        )
    return v


def label_type(v):
    """Runner label argument type."""
    v = v.strip()
    if not v or not re.match(r"^[A-Za-z0-9._-]+$", v):
        raise ArgumentTypeError(
            f"invalid label '{v}', only letters, digits, '.', '_' and '-' are allowed"
        )
    return v


def version_type(v):
    """Runner software version argument type. Example: 2.313.0"""
    v = str(v).strip().lstrip("v")
    if not re.match(r"^\d+\.\d+\.\d+$", v):
        raise ArgumentTypeError(f"invalid version '{v}', must be major.minor.patch")
    return v


def repository_type(v):
    """GitHub repository argument type. Example: owner/repo"""
    v = v.strip()
    if not re.match(r"^[^/\s]+/[^/\s]+$", v):
        raise ArgumentTypeError(f"invalid repository '{v}', must be owner/repo")
    return v


def instance_ids_type(v):
    """Instance ids argument type.

    Accepts either a JSON list, as emitted by the start mode,
    or a comma separated list. Example: ["i-0123","i-4567"] or i-0123,i-4567
    """
    if isinstance(v, (list, tuple)):
        ids = v
    else:
        v = v.strip()
        if v.startswith("["):
            try:
                ids = json.loads(v)
            except ValueError as e:
                raise ArgumentTypeError(f"invalid instance ids {v}: {e}")
            if not isinstance(ids, list):
                raise ArgumentTypeError(f"invalid instance ids {v}: not a list")
        else:
            ids = v.split(",")

    ids = tuple(str(i).strip() for i in ids if str(i).strip())
    if not ids:
        raise ArgumentTypeError("instance ids list is empty")
    return ids


def tags_type(v):
    """Resource tags argument type.

    Accepts a JSON list of {"Key": ..., "Value": ...} objects
    or a JSON object mapping keys to values.
    Example: [{"Key": "team", "Value": "qa"}] or {"team": "qa"}
    """
    if isinstance(v, str):
        try:
            v = json.loads(v)
        except ValueError as e:
            raise ArgumentTypeError(f"invalid tags: {e}")

    if isinstance(v, dict):
        v = [{"Key": key, "Value": value} for key, value in v.items()]

    if not isinstance(v, list):
        raise ArgumentTypeError("invalid tags: not a list")

    tags = []
    for i, tag in enumerate(v):
        if not isinstance(tag, dict) or "Key" not in tag or "Value" not in tag:
            raise ArgumentTypeError(f"invalid tags[{i}]: must have Key and Value")
        tags.append((str(tag["Key"]), str(tag["Value"])))

    return tuple(tags)


def file_contents_type(v):
    """Read file contents argument type (@path) or use the value as is."""
    if v.startswith("@"):
        path = path_type(v[1:])
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    return v


def config_type(v):
    """Program configuration file type."""
    from .config import default_user_config
    from .config import parse_config

    if v == "__default_user_config__":
        if os.path.exists(default_user_config):
            v = default_user_config
        else:
            return None

    v = path_type(v)
    try:
        config = parse_config(v)
    except Exception as e:
        if "--debug" in sys.argv:
            print_exception(e)
        if "unexpected keyword argument" in str(e):
            e = str(e).replace(".__init__()", "") + ", please remove it"
        raise ArgumentTypeError(str(e))

    return config
