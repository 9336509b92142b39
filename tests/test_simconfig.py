import pytest

from keepersim.simconfig import (
    InvalidConfigError,
    SimulatorConfig,
    validate_simulator_config,
)


def _valid():
    return SimulatorConfig(
        contract_address="0x02777053d6764996e594c3E88AF1D58D5363a2e6",
        rpc="https://some.value.test/place",
        nodes=1,
    )


def _is_valid(config):
    try:
        validate_simulator_config(config)
    except InvalidConfigError:
        return False
    return True


def test_valid_config():
    config = _valid()
    assert _is_valid(config) is True
    assert (config.contract_address, config.rpc, config.nodes) == (
        "0x02777053d6764996e594c3E88AF1D58D5363a2e6",
        "https://some.value.test/place",
        1,
    )


def test_nil_config():
    with pytest.raises(InvalidConfigError, match="nil config"):
        validate_simulator_config(None)


def test_valid_contract_required():
    c = _valid()
    c.contract_address = None
    with pytest.raises(InvalidConfigError):
        validate_simulator_config(c)

    c.contract_address = "test"
    with pytest.raises(InvalidConfigError, match="evm address"):
        validate_simulator_config(c)


def test_contract_without_prefix_is_valid():
    c = _valid()
    c.contract_address = "02777053d6764996e594c3E88AF1D58D5363a2e6"
    assert _is_valid(c) is True
    c.contract_address = "02777053d6764996e594c3E88AF1D58D5363a2"
    assert _is_valid(c) is False


def test_rpc_required():
    c = _valid()
    c.rpc = None
    with pytest.raises(InvalidConfigError, match="RPC"):
        validate_simulator_config(c)


def test_report_output_path_exists_if_defined(tmp_path):
    c = _valid()
    c.report_output_path = str(tmp_path / "path-should-not-exist")
    with pytest.raises(InvalidConfigError):
        validate_simulator_config(c)

    c.report_output_path = str(tmp_path)
    assert _is_valid(c)


@pytest.mark.parametrize("nodes", [None, -1, 0])
def test_node_count_required_and_positive(nodes):
    c = _valid()
    c.nodes = nodes
    with pytest.raises(InvalidConfigError):
        validate_simulator_config(c)


@pytest.mark.parametrize(
    "field_name",
    [
        "rounds",
        "round_time",
        "query_time_limit",
        "observation_time_limit",
        "report_time_limit",
        "max_run_time",
    ],
)
def test_limits_must_not_be_negative(field_name):
    c = _valid()
    setattr(c, field_name, -1)
    with pytest.raises(InvalidConfigError):
        validate_simulator_config(c)

    setattr(c, field_name, 0)
    assert _is_valid(c)


def test_round_limit_or_function_limits():
    c = _valid()

    c.round_time = 1
    assert _is_valid(c)

    c.round_time = None
    c.query_time_limit = 1
    assert _is_valid(c)

    c.query_time_limit = None
    c.observation_time_limit = 1
    assert _is_valid(c)

    c.observation_time_limit = None
    c.report_time_limit = 1
    assert _is_valid(c)

    c.round_time = 1
    with pytest.raises(InvalidConfigError, match="conflict"):
        validate_simulator_config(c)

    c.report_time_limit = None
    c.observation_time_limit = 1
    with pytest.raises(InvalidConfigError):
        validate_simulator_config(c)

    c.observation_time_limit = None
    c.query_time_limit = 1
    with pytest.raises(InvalidConfigError):
        validate_simulator_config(c)


def test_error_is_value_error():
    with pytest.raises(ValueError, match="invalid simulator configuration"):
        validate_simulator_config(SimulatorConfig())