"""Semantic checks run over a whole candidate policy set before it is published."""

import re

from hightide.policy.errors import ConfigValidationError
from hightide.policy.types import MOD_TIME_PERIOD, REPLICATION

_INTEGER = re.compile(r"[+-]?\d+")

INT_MAX = 2**31 - 1
LONG_MIN = -(2**63)
LONG_MAX = 2**63 - 1


def parse_integer(value, minimum: int, maximum: int):
    """Strictly parse a decimal integer within [minimum, maximum], or return None."""
    if value is None or not _INTEGER.fullmatch(value):
        return None
    number = int(value)
    if number < minimum or number > maximum:
        return None
    return number


def _replication_error(value, where: str):
    if value is None:
        return f"{where}: missing {REPLICATION}"
    if parse_integer(value, 1, INT_MAX) is None:
        return f"{where}: {REPLICATION} must be a positive integer, got '{value}'"
    return None


def policy_errors(policy) -> list:
    """Return a list of validation errors for one policy (empty if valid)."""
    if not policy.src_path:
        return ["policy has no srcPath"]

    errors = []
    where = f"policy {policy.src_path}"

    err = _replication_error(policy.get_property(REPLICATION), where)
    if err:
        errors.append(err)

    period = policy.get_property(MOD_TIME_PERIOD)
    if period is None:
        errors.append(f"{where}: missing {MOD_TIME_PERIOD}")
    elif parse_integer(period, LONG_MIN, LONG_MAX) is None:
        errors.append(f"{where}: {MOD_TIME_PERIOD} must be an integer, got '{period}'")

    if not policy.destinations:
        errors.append(f"{where}: no destPath configured")

    for dest in policy.destinations:
        if not dest.path:
            errors.append(f"{where}: destPath has no path")
            continue
        err = _replication_error(dest.get_property(REPLICATION), f"{where} destPath {dest.path}")
        if err:
            errors.append(err)

    return errors


def validate_all_policies(policies) -> None:
    """Raise ConfigValidationError if any policy in the candidate set is invalid.

    Errors from every policy are collected so one reload attempt reports
    everything that is wrong with the file.
    """
    errors = []
    for policy in policies:
        errors.extend(policy_errors(policy))
    if errors:
        raise ConfigValidationError(errors)
