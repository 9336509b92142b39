# keepersim

`keepersim` is a library of building blocks for simulating a network of
offchain-reporting keeper nodes. It reads a runbook, generates upkeeps and the
blocks at which they become eligible, produces simulated blocks, and models a
registry contract, an RPC endpoint, a peer network and a node database. It
also summarises how well the simulated network served each upkeep.

It uses only the Python standard library.

## Modules

| Module | Purpose |
| --- | --- |
| `keepersim.config` | Runbook data classes (`RunBook`, `Blocks`, `RPC`, `ConfigEvent`, `Upkeep`, `SymBlock`), duration strings (`parse_duration`, `format_duration`) and `load_runbook` for JSON runbooks. |
| `keepersim.generate` | Tokenises the small arithmetic expressions used in runbooks (`tokenize`, `evaluate_constant`, `calc_from_tokens`, `operate`) and expands them into `SimulatedUpkeep` objects with `generate_eligibles` and `generate_simulated_upkeeps`. |
| `keepersim.broadcaster` | `BlockBroadcaster`, which produces blocks on a cadence with optional jitter, lets `BlockLoader`s add data to each block, and hands blocks to subscribers on queues. |
| `keepersim.transmit` | `TransmitLoader`, which queues transmitted reports, rejects a report sent twice (by `report_hash`) and places queued reports in the next block. |
| `keepersim.contract` | `SimulatedContract`, which follows the broadcast blocks and answers config, block height, head, perform-log, upkeep-check and transmit calls. |
| `keepersim.rpc` | `SimulatedRPC`, which answers calls after a random latency or fails them with `RPCRateLimitExceeded`, `RPCLoadLimitExceeded` or `RPCContextCancelled`, all subclasses of `RPCError`. |
| `keepersim.network` | `SimulatedNetwork`, `SimulatedEndpointFactory` and `SimulatedEndpoint` for passing `BinaryMessage`s between peers with a random delay. |
| `keepersim.database` | `SimulatedDatabase`, an in-memory store for state, config and pending transmissions keyed by `ReportTimestamp`. |
| `keepersim.sortedmap` | `SortedKeyMap`, a thread-safe map that keeps its string keys sorted. |
| `keepersim.encode` | `encode` (compact JSON plus a newline, bytes as base64) and `decode`. |
| `keepersim.stats` | `UpkeepStatsBuilder`, which gives per-upkeep `UpkeepStats` (eligibility, misses, average perform and check delay) and per-account `TransmitStats`. |
| `keepersim.statistics` | Helpers that split a sorted list of counts and count values outside lower and upper fences. |
| `keepersim.logger` | `SimpleLogger` with levels from `LogLevel`, and `MonitorToWriter`. |
| `keepersim.controller` | `OCRController`, `OCRReceiver` and `OCRCall`, which drive init, query, observation and report phases over receiver queues in rounds. |
| `keepersim.simconfig` | `SimulatorConfig` and `validate_simulator_config`, which raises `InvalidConfigError` on a bad configuration. |

## Runbooks

A runbook is a JSON document that describes one simulation:

```json
{
  "nodes": 4,
  "maxNodeServiceWorkers": 10,
  "maxNodeServiceQueueSize": 1000,
  "avgNetworkLatency": "100ms",
  "rpcDetail": {
    "maxBlockDelay": 600,
    "averageLatency": 300,
    "errorRate": 0.02,
    "rateLimitThreshold": 1000
  },
  "blockDetail": {
    "genesisBlock": 128943862,
    "blockCadence": "1s",
    "blockCadenceJitter": "100ms",
    "durationInBlocks": 60,
    "endPadding": 20
  },
  "configEvents": [],
  "upkeeps": [
    {"count": 15, "startID": 200, "generateFunc": "24x - 3", "offsetFunc": "3x - 4"}
  ]
}
```

Durations are written as numbers with units, such as `"1s"`, `"100ms"` or
`"1h30m"`; `parse_duration` reads them and `format_duration` writes them.

Each upkeep entry produces `count` upkeeps with ids `startID + 1` to
`startID + count`. The `offsetFunc` places each upkeep's starting block
relative to the genesis block, with `x` set to the upkeep's position in the
batch (from 1). The `generateFunc` gives the offsets from that start at which
the upkeep becomes eligible, with `x` counting up from zero, until
`genesisBlock + durationInBlocks` is reached. Expressions are evaluated left
to right, without operator precedence.

```python
from keepersim.config import load_runbook
from keepersim.generate import generate_simulated_upkeeps

with open("runbook.json", encoding="utf-8") as handle:
    runbook = load_runbook(handle.read())

upkeeps = generate_simulated_upkeeps(runbook)
print(len(upkeeps), upkeeps[0].id, upkeeps[0].eligible_at[:3])
```

## Validating a simulator configuration

```python
from keepersim.simconfig import (
    InvalidConfigError,
    SimulatorConfig,
    validate_simulator_config,
)

config = SimulatorConfig(
    contract_address="0x02777053d6764996e594c3E88AF1D58D5363a2e6",
    rpc="https://rpc.example.com",
    nodes=3,
)

try:
    validate_simulator_config(config)
except InvalidConfigError as exc:
    print(f"bad configuration: {exc}")
```

A configuration may limit the time per round or the time per phase (query,
observation or report), but not both.

## What the package does not do

- It has no command-line program; everything is used from Python.
- It does not write per-node log files, RPC call records or charts; there are
  no telemetry collectors. `SimulatedContract` and `SimulatedRPC` accept
  telemetry objects of your own (with `check_key`, `register_call` and
  `add_rate_data_point` methods).
- It does not encode or decode keeper reports. `SimulatedContract` and
  `UpkeepStatsBuilder` need an object with a `decode_report` method.
- It does not run the reporting protocol itself. `OCRController` only moves
  calls and results between queues; the nodes that answer on an
  `OCRReceiver`'s queues must be supplied by the caller.