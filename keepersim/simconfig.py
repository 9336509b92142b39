"""Settings of the round-based simulator and their validation."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass

_HEX_ADDRESS = re.compile(r"(0[xX])?[0-9a-fA-F]{40}")


class InvalidConfigError(ValueError):
    """The simulator configuration cannot be used."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"invalid simulator configuration: {reason}")
        self.reason = reason


@dataclass
class SimulatorConfig:
    """Simulator settings; times are milliseconds except max_run_time in seconds.

    A limit of None or 0 means no limit.
    """

    contract_address: str | None = None
    rpc: str | None = None
    report_output_path: str | None = None
    nodes: int | None = None
    rounds: int | None = None
    round_time: int | None = None
    query_time_limit: int | None = None
    observation_time_limit: int | None = None
    report_time_limit: int | None = None
    max_run_time: int | None = None


def _negative(value: int | None) -> bool:
    return value is not None and value < 0


def _set(value: int | None) -> bool:
    return value is not None and value != 0


def validate_simulator_config(config: SimulatorConfig | None) -> None:
    """Raise InvalidConfigError when config is missing a value or has one out of range."""
    if config is None:
        raise InvalidConfigError("nil config")
    if config.contract_address is None:
        raise InvalidConfigError("contract address cannot be nil")
    if not _HEX_ADDRESS.fullmatch(config.contract_address):
        raise InvalidConfigError("contract address not parseable into evm address")
    if config.rpc is None:
        raise InvalidConfigError("RPC endpoint required")
    if config.report_output_path is not None and not os.path.exists(
        config.report_output_path
    ):
        raise InvalidConfigError("provided report output directory does not exist")
    if config.nodes is None:
        raise InvalidConfigError("number of nodes required")
    if config.nodes <= 0:
        raise InvalidConfigError("must have more than 0 nodes")

    checks = (
        (config.rounds, "number of rounds must be 0 or more"),
        (config.round_time, "round time must be 0 or more"),
        (config.query_time_limit, "query time limit must be 0 or more"),
        (config.observation_time_limit, "observation time limit must be 0 or more"),
        (config.report_time_limit, "report time limit must be 0 or more"),
        (config.max_run_time, "max run time limit must be 0 or more"),
    )
    for value, reason in checks:
        if _negative(value):
            raise InvalidConfigError(reason)

    if _set(config.round_time) and (
        _set(config.query_time_limit)
        or _set(config.observation_time_limit)
        or _set(config.report_time_limit)
    ):
        raise InvalidConfigError(
            "round time in conflict with function times (query, observation, report); "
            "pick round limits or function limits, not both"
        )