# Configuration settings should be set in app.config
# Options that are not found in the app config fall back to the RestSQLA class variables
# and finally to the environment
import os
import logging
from flask import current_app
import restsqla
from typing import Any


def get_config(option: str) -> Any:
    """Retrieve a configuration parameter from the app
    :param option: configuration parameter
    :return: configuration value
    """
    try:
        result = current_app.config[option]
    except (KeyError, RuntimeError):
        # RuntimeError: working outside of application context
        result = getattr(restsqla.RestSQLA, option, os.environ.get(option, None))
    return result


def get_int_config(option: str) -> int:
    """Retrieve an integer configuration parameter
    :param option: configuration parameter
    :return: configuration value as int
    """
    return int(get_config(option))


def is_debug() -> bool:
    """
    We use the loglevel to check whether we're running in debug mode
    :return: whether the app is in debug mode
    :rtype: Boolean
    """
    return restsqla.log.getEffectiveLevel() < logging.INFO
