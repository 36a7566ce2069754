#!/usr/bin/env python3
# MIT License
#
# Copyright (c) 2025 opauth-core Contributors
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

"""
Strategy configuration resolution.

Precedence, lowest to highest: strategy defaults, caller config, computed
keys. String values are then substituted once against the environment merged
with the config itself.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Union

from .config import Environment
from .errors import MissingParameterError
from .security import ConfigSanitizer
from .templating import env_replace

logger = logging.getLogger(__name__)

# An expected key, optionally paired with a value it must not equal
ExpectedKey = Union[str, tuple[str, Any]]


def _split_expected(entry: ExpectedKey) -> tuple[str, Any]:
    if isinstance(entry, tuple):
        key, forbidden = entry
        return key, forbidden
    return entry, None


def check_expected(strategy_name: str, config: Mapping[str, Any], expects: Iterable[ExpectedKey]) -> None:
    """
    Ensure every expected key is present and usable.

    A value fails when it is missing, None, empty (``""``, ``[]``, ``{}``,
    ``0``, ``False``) or equal to the entry's forbidden value.

    Raises:
        MissingParameterError: For the first failing key
    """
    for entry in expects:
        key, forbidden = _split_expected(entry)
        value = config.get(key)
        if not value or (forbidden is not None and value == forbidden):
            logger.error(f'{strategy_name} config parameter for "{key}" expected')
            raise MissingParameterError(strategy_name, key)


def resolve_config(
    strategy_name: str,
    caller_config: Mapping[str, Any] | None,
    defaults: Mapping[str, Any] | None,
    expects: Iterable[ExpectedKey],
    environment: Environment,
) -> dict[str, Any]:
    """
    Build the final configuration for one strategy instance.

    Args:
        strategy_name: Declared strategy name, used for diagnostics and paths
        caller_config: Values supplied by the host application
        defaults: Strategy defaults for optional keys
        expects: Keys that must be present, or ``(key, forbidden_value)`` pairs
        environment: Shared environment dictionary

    Returns:
        New dict with defaults, caller values, computed URLs and substitutions
        applied. Inputs are not modified.

    Raises:
        MissingParameterError: If an expected key is missing. Raised before
            any computed key is added or templated.
    """
    expects = list(expects)

    config: dict[str, Any] = dict(defaults or {})
    caller = caller_config or {}
    config.update({key: value for key, value in caller.items() if value is not None})
    config.setdefault("strategy_name", strategy_name)
    config.setdefault("strategy_url_name", strategy_name.lower())

    check_expected(strategy_name, config, expects)

    config["strategy_callback_url"] = environment.host + environment.callback_url
    config["path_to_strategy"] = f"{environment.path}{config['strategy_url_name']}/"
    config["complete_url_to_strategy"] = environment.host + config["path_to_strategy"]

    dictionary = environment.as_dict()
    dictionary.update(config)
    resolved = {key: env_replace(value, dictionary) for key, value in config.items()}

    check_expected(strategy_name, resolved, expects)

    logger.debug(f"Resolved {strategy_name} config: {ConfigSanitizer.sanitize(resolved)}")
    return resolved


def add_params(
    config: Mapping[str, Any],
    config_keys: Iterable[str | tuple[str, str]],
    params: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Copy selected config values into provider request parameters.

    Args:
        config: Resolved strategy config
        config_keys: Config keys to copy, or ``(config_key, param_key)`` pairs
            to copy under a different name
        params: Existing parameters to extend

    Returns:
        New parameter dict; keys absent from the config are skipped
    """
    result = dict(params or {})
    for entry in config_keys:
        config_key, param_key = entry if isinstance(entry, tuple) else (entry, entry)
        if config.get(config_key) is not None:
            result[param_key] = config[config_key]
    return result
