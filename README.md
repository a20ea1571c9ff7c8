# stakerkit

Building blocks for a Bitcoin staking daemon: loading and validating its
configuration, normalising listen addresses, describing staking events,
preparing proof-of-possession sign documents and handling the x-only
Schnorr public keys used by finality providers and covenant members.

The package has no runtime dependencies outside the standard library.

## What is inside

| Module | Purpose |
| --- | --- |
| `stakerkit.config` | The full daemon configuration, its defaults, `validate_config` and `load_config` |
| `stakerkit.netparams` | Bitcoin network parameters (`network_params`), `ChainConfig` and the backend enums |
| `stakerkit.backends` | Settings for bitcoind (`Bitcoind`), btcd (`Btcd`) and the local database (`DBConfig`) |
| `stakerkit.address_parser` | Parsing and de-duplicating `network://host:port` style addresses |
| `stakerkit.metrics` | `MetricsConfig` for the metrics server, with `validate()` |
| `stakerkit.paths` | `app_data_dir`, `file_exists` and `clean_and_expand_path` (`~` and `$VAR` expansion) |
| `stakerkit.certs` | `read_cert_file`: RPC certificates from a hex string or from a file |
| `stakerkit.logs` | `new_root_logger`: a stderr logger in `json`, `console`, `auto` or `logfmt` format |
| `stakerkit.events` | Staking event types and `describe_event` |
| `stakerkit.pop` | Proof-of-possession response, ADR-36 sign documents and RPC response shapes |
| `stakerkit.keys` | x-only public keys, staking time parsing, covenant witness ordering |

## Configuration

```python
from stakerkit.config import default_config, validate_config, ConfigError

cfg = default_config()
cfg.chain_config.network = "signet"
cfg.btc_node_backend_config.fee_mode = "dynamic"

try:
    clean = validate_config(cfg)
except ConfigError as err:
    print(f"bad configuration: {err}")
```

`validate_config` works on a copy and returns it. It resolves the network
parameters (`testnet`, `regtest`, `simnet` or `signet`, with an optional hex
signet challenge), the node and wallet backends and the fee estimation mode;
checks that the minimum and maximum fee rates are positive and ordered and
that a profile port lies between 1024 and 65535 (raising `UsageError`
otherwise); creates the stakerd, data and log directories; checks the debug
level; and turns the raw RPC listeners into resolved addresses, defaulting to
`localhost:15812`.

`load_config(argv)` builds the configuration from the defaults, the
configuration file (INI sections such as `[chain]` or `[btcnodebackend.btcd]`)
and command-line options such as `--chain.network regtest`, the command line
taking precedence. It returns `(config, logger, rpc_logger)`; the first logger
writes to stdout and to `stakerd.log` in the log directory. With `--dumpcfg`
and no configuration file present, the current settings are written out.

## Addresses

```python
from stakerkit.address_parser import (
    verify_port,
    parse_address_string,
    normalize_addresses,
    resolve_tcp_address,
)

verify_port("localhost", "15812")       # "localhost:15812"
verify_port("9000", "15812")            # "localhost:9000"

addr = parse_address_string("tcp://127.0.0.1", "15812", resolve_tcp_address)

unique = normalize_addresses(
    ["127.0.0.1:15812", "tcp://127.0.0.1:15812"],
    "15812",
    resolve_tcp_address,
)                                        # one TCPAddress
```

Results are `TCPAddress` or `UnixAddress` values. Only TCP and unix socket
addresses are accepted; UDP and raw IP networks raise `AddressError`, a
subclass of `ValueError`.

## Keys and staking time

```python
from stakerkit.keys import (
    parse_schnorr_pk,
    encode_schnorr_pk_to_hex,
    parse_staking_time,
    have_duplicates,
    sort_pub_keys_for_witness,
)

staking_time = parse_staking_time(1000)   # negative values or values above 65535 raise ValueError
```

`PublicKey.from_xonly` and `parse_schnorr_pk` lift a 32-byte x-only key to
the curve point with even y, rejecting anything off secp256k1.
`create_witness_signatures_for_pub_keys` arranges covenant signatures in the
order a multisig witness expects (keys in reverse lexicographical order),
keeping at most a quorum of them and leaving `None` where a key has not
signed. `convert_fp_btc_pk_to_btc_pk` parses a list of raw finality provider
keys.

## Events

The classes in `stakerkit.events` (`DelegationActivatedEvent`,
`CriticalErrorEvent` and the rest) are frozen dataclasses identified by a
32-byte staking transaction hash. `event_id()` returns that hash,
`event_desc()` a fixed description, and `describe_event(event)` the log fields
`{"eventId": ..., "event": ...}` with the hash shown byte-reversed in hex.

## Proof of possession

```python
from stakerkit.pop import new_cosmos_sign_doc, adr36_sign_bytes

doc = new_cosmos_sign_doc("bbn1signer", "ZGF0YQ==")
payload = adr36_sign_bytes("bbn1signer", b"tb1qexampleaddress")
```

`adr36_sign_bytes` returns the canonical, key-sorted JSON bytes that a Cosmos
key signs to bind a BTC address to a Babylon address. `PopResponse.to_json()`
serialises a finished proof with its wire field names.

## What this package does not do

It holds configuration, address, key and message helpers only. It does not
run a daemon or an RPC server, does not talk to a bitcoin node, wallet or the
Babylon chain, does not build, sign or broadcast transactions, does not
produce signatures itself, and keeps no database of tracked transactions.

## Running the tests

Install the `test` extra and run `pytest` from the project root.