"""Connection settings for the bitcoin node backends and the local database."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timedelta

from stakerkit.paths import app_data_dir

DEFAULT_TX_POLLING_JITTER = 0.5
DEFAULT_ESTIMATE_MODE = "CONSERVATIVE"

_DEFAULT_BITCOIND_RPC_HOST = "127.0.0.1:8334"
_DEFAULT_BITCOIND_RPC_USER = "user"
_DEFAULT_BITCOIND_RPC_PASS = "password"
_DEFAULT_BITCOIND_BLOCK_CACHE_SIZE = 20 * 1024 * 1024
_DEFAULT_ZMQ_PUB_RAW_BLOCK = "tcp://127.0.0.1:29001"
_DEFAULT_ZMQ_PUB_RAW_TX = "tcp://127.0.0.1:29002"
_DEFAULT_ZMQ_READ_DEADLINE = timedelta(seconds=30)

_DEFAULT_BTCD_RPC_HOST = "127.0.0.1:18334"
_DEFAULT_BTCD_RPC_USER = "user"
_DEFAULT_BTCD_RPC_PASS = "password"
_DEFAULT_BTCD_BLOCK_CACHE_SIZE = 20 * 1024 * 1024

DEFAULT_DB_NAME = "staker.db"
DEFAULT_BOLT_AUTO_COMPACT_MIN_AGE = timedelta(days=7)
DEFAULT_DB_TIMEOUT = timedelta(seconds=60)


def _default_btcd_cert_file() -> str:
    return os.path.join(app_data_dir("btcd"), "rpc.cert")


def _default_data_dir() -> str:
    return os.path.join(app_data_dir("stakerd"), "data")


@dataclass
class Bitcoind:
    """How to reach a bitcoind node over RPC and ZMQ."""

    rpc_host: str = _DEFAULT_BITCOIND_RPC_HOST
    rpc_user: str = _DEFAULT_BITCOIND_RPC_USER
    rpc_pass: str = _DEFAULT_BITCOIND_RPC_PASS
    zmq_pub_raw_block: str = _DEFAULT_ZMQ_PUB_RAW_BLOCK
    zmq_pub_raw_tx: str = _DEFAULT_ZMQ_PUB_RAW_TX
    zmq_read_deadline: timedelta = _DEFAULT_ZMQ_READ_DEADLINE
    estimate_mode: str = DEFAULT_ESTIMATE_MODE
    pruned_node_max_peers: int = 0
    rpc_polling: bool = True
    block_polling_interval: timedelta = timedelta(seconds=30)
    tx_polling_interval: timedelta = timedelta(seconds=30)
    block_cache_size: int = _DEFAULT_BITCOIND_BLOCK_CACHE_SIZE


@dataclass
class Btcd:
    """How to reach a btcd node over RPC."""

    rpc_host: str = _DEFAULT_BTCD_RPC_HOST
    rpc_user: str = _DEFAULT_BTCD_RPC_USER
    rpc_pass: str = _DEFAULT_BTCD_RPC_PASS
    rpc_cert: str = field(default_factory=_default_btcd_cert_file)
    raw_rpc_cert: str = ""
    block_cache_size: int = _DEFAULT_BTCD_BLOCK_CACHE_SIZE


@dataclass
class DBConfig:
    """Location and tuning of the bolt database file."""

    db_path: str = field(default_factory=_default_data_dir)
    db_file_name: str = DEFAULT_DB_NAME
    no_freelist_sync: bool = True
    auto_compact: bool = False
    auto_compact_min_age: timedelta = DEFAULT_BOLT_AUTO_COMPACT_MIN_AGE
    db_timeout: timedelta = DEFAULT_DB_TIMEOUT


def default_bitcoind_config() -> Bitcoind:
    """Return the default bitcoind connection settings."""
    return Bitcoind()


def default_btcd_config() -> Btcd:
    """Return the default btcd connection settings."""
    return Btcd()


def default_db_config() -> DBConfig:
    """Return the default database settings."""
    return DBConfig()