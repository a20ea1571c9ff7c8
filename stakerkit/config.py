"""Staker daemon configuration: defaults, validation and loading."""

from __future__ import annotations

import argparse
import configparser
import copy
import logging
import os
import re
import sys
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from stakerkit.address_parser import (
    AddressError,
    _atoi,
    _join_host_port,
    _split_host_port,
    normalize_addresses,
    resolve_tcp_address,
)
from stakerkit.backends import Bitcoind, Btcd, DBConfig
from stakerkit.logs import new_root_logger
from stakerkit.metrics import MetricsConfig
from stakerkit.netparams import (
    ChainConfig,
    FeeEstimationMode,
    NetworkParams,
    NodeBackend,
    WalletBackend,
    network_params,
)
from stakerkit.paths import app_data_dir, clean_and_expand_path, file_exists

DEFAULT_DATA_DIRNAME = "data"
DEFAULT_LOG_LEVEL = "info"
DEFAULT_LOG_DIRNAME = "logs"
DEFAULT_LOG_FILENAME = "stakerd.log"
DEFAULT_RPC_PORT = 15812
DEFAULT_CONFIG_FILE_NAME = "stakerd.conf"
DEFAULT_FEE_MODE = "static"
DEFAULT_MIN_FEE_RATE = 2
DEFAULT_MAX_FEE_RATE = 25

DEFAULT_STAKERD_DIR = app_data_dir("stakerd")
DEFAULT_CONFIG_FILE = os.path.join(DEFAULT_STAKERD_DIR, DEFAULT_CONFIG_FILE_NAME)
DEFAULT_DATA_DIR = os.path.join(DEFAULT_STAKERD_DIR, DEFAULT_DATA_DIRNAME)
DEFAULT_LOG_DIR = os.path.join(DEFAULT_STAKERD_DIR, DEFAULT_LOG_DIRNAME)

PASSWORD = "password"

_FUNC_NAME = "ValidateConfig"
_APP_SECTION = "Application Options"

_LOGRUS_LEVELS = {
    "panic": logging.CRITICAL,
    "fatal": logging.CRITICAL,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "trace": logging.DEBUG,
}


class ConfigError(ValueError):
    """Raised when the configuration is invalid or cannot be loaded."""


class UsageError(ConfigError):
    """Raised when the problem lies in the supplied flags."""


@dataclass
class WalletConfig:
    """Which wallet signs bitcoin transactions and how to unlock it."""

    wallet_name: str = "wallet"
    wallet_pass: str = PASSWORD


@dataclass
class WalletRPCConfig:
    """How to reach the wallet RPC server."""

    host: str = "localhost:18556"
    user: str = "rpcuser"
    password: str = PASSWORD
    disable_tls: bool = True
    rpc_wallet_cert: str = ""
    raw_rpc_wallet_cert: str = ""


@dataclass
class JSONRPCServerConfig:
    """Interfaces the JSON-RPC server listens on."""

    raw_rpc_listeners: List[str] = field(default_factory=list)


@dataclass
class BtcNodeBackendConfig:
    """Bitcoin node and wallet backend selection plus fee settings."""

    nodetype: str = "btcd"
    wallet_type: str = "btcwallet"
    fee_mode: str = DEFAULT_FEE_MODE
    min_fee_rate: int = DEFAULT_MIN_FEE_RATE
    max_fee_rate: int = DEFAULT_MAX_FEE_RATE
    btcd: Btcd = field(default_factory=Btcd)
    bitcoind: Bitcoind = field(default_factory=Bitcoind)
    estimation_mode: Optional[FeeEstimationMode] = None
    active_node_backend: Optional[NodeBackend] = None
    active_wallet_backend: Optional[WalletBackend] = None


@dataclass
class StakerConfig:
    """Timing and behaviour of the staking process."""

    babylon_stalling_interval: timedelta = timedelta(minutes=1)
    unbonding_tx_check_interval: timedelta = timedelta(seconds=30)
    check_active_interval: timedelta = timedelta(minutes=1)
    max_concurrent_transactions: int = 1
    exit_on_critical_error: bool = True


@dataclass
class Config:
    """Complete staker daemon configuration."""

    debug_level: str = DEFAULT_LOG_LEVEL
    stakerd_dir: str = DEFAULT_STAKERD_DIR
    config_file: str = DEFAULT_CONFIG_FILE
    data_dir: str = DEFAULT_DATA_DIR
    log_dir: str = DEFAULT_LOG_DIR
    cpu_profile: str = ""
    profile: str = ""
    dump_cfg: bool = False
    wallet_config: WalletConfig = field(default_factory=WalletConfig)
    wallet_rpc_config: WalletRPCConfig = field(default_factory=WalletRPCConfig)
    chain_config: ChainConfig = field(default_factory=ChainConfig)
    btc_node_backend_config: BtcNodeBackendConfig = field(
        default_factory=BtcNodeBackendConfig
    )
    db_config: DBConfig = field(default_factory=DBConfig)
    staker_config: StakerConfig = field(default_factory=StakerConfig)
    metrics_config: MetricsConfig = field(default_factory=MetricsConfig)
    json_rpc_server_config: JSONRPCServerConfig = field(
        default_factory=JSONRPCServerConfig
    )
    active_net_params: Optional[NetworkParams] = None
    rpc_listeners: List[Any] = field(default_factory=list)


def default_wallet_config() -> WalletConfig:
    """Return the default wallet settings."""
    return WalletConfig()


def default_wallet_rpc_config() -> WalletRPCConfig:
    """Return the default wallet RPC settings."""
    return WalletRPCConfig()


def default_btc_node_backend_config() -> BtcNodeBackendConfig:
    """Return the default node backend settings."""
    return BtcNodeBackendConfig()


def default_staker_config() -> StakerConfig:
    """Return the default staker settings."""
    return StakerConfig()


def default_config() -> Config:
    """Return a configuration holding every default."""
    return Config()


def _err(message: str) -> ConfigError:
    return ConfigError(f"{_FUNC_NAME}: {message}")


def _make_directory(path: str) -> None:
    try:
        os.makedirs(path, 0o700, exist_ok=True)
    except OSError as exc:
        reason = str(exc)
        name = exc.filename
        if isinstance(exc, FileExistsError) and name and os.path.islink(name):
            reason = f"is symlink {name} -> {os.readlink(name)} mounted?"
        raise _err(f"Failed to create stakerd directory '{path}': {reason}") from exc


def _check_profile_port(port_text: str) -> None:
    port = _atoi(port_text)
    if port is None or port < 1024 or port > 65535:
        raise UsageError(
            f"{_FUNC_NAME}: The profile port must be between 1024 and 65535"
        )


def validate_config(cfg: Config) -> Config:
    """Check ``cfg`` for sane values and return a cleaned copy.

    Paths are normalised, the network and backends resolved, the working
    directories created and the RPC listeners parsed.
    """
    cfg = copy.deepcopy(cfg)

    stakerd_dir = clean_and_expand_path(cfg.stakerd_dir)
    if stakerd_dir != DEFAULT_STAKERD_DIR:
        cfg.data_dir = os.path.join(stakerd_dir, DEFAULT_DATA_DIRNAME)
        cfg.log_dir = os.path.join(stakerd_dir, DEFAULT_LOG_DIRNAME)

    cfg.data_dir = clean_and_expand_path(cfg.data_dir)
    cfg.log_dir = clean_and_expand_path(cfg.log_dir)

    try:
        cfg.active_net_params = network_params(
            cfg.chain_config.network, cfg.chain_config.signet_challenge
        )
    except ValueError as exc:
        raise _err(str(exc)) from exc

    backend = cfg.btc_node_backend_config
    try:
        backend.active_node_backend = NodeBackend(backend.nodetype)
    except ValueError as exc:
        raise _err(
            f"error getting node backend: unknown node backend: {backend.nodetype}"
        ) from exc
    try:
        backend.active_wallet_backend = WalletBackend(backend.wallet_type)
    except ValueError as exc:
        raise _err(
            f"error getting wallet backend: unknown wallet backend: {backend.wallet_type}"
        ) from exc

    try:
        backend.estimation_mode = FeeEstimationMode(backend.fee_mode)
    except ValueError as exc:
        raise _err(f"invalid fee estimation mode: {backend.fee_mode}") from exc

    if backend.min_fee_rate <= 0:
        raise _err("minfeerate rate must be greater than 0")
    if backend.max_fee_rate <= 0:
        raise _err("maxfeerate rate must be greater than 0")
    if backend.min_fee_rate > backend.max_fee_rate:
        raise _err(
            "minfeerate must be less or equal maxfeerate. "
            f"minfeerate: {backend.min_fee_rate}, maxfeerate: {backend.max_fee_rate}"
        )

    if cfg.profile:
        try:
            _, port_text = _split_host_port(cfg.profile)
        except AddressError:
            _check_profile_port(cfg.profile)
            cfg.profile = _join_host_port("127.0.0.1", cfg.profile)
        else:
            _check_profile_port(port_text)

    for directory in (stakerd_dir, cfg.data_dir, cfg.log_dir):
        _make_directory(directory)

    listeners = cfg.json_rpc_server_config.raw_rpc_listeners
    if not listeners:
        listeners.append(f"localhost:{DEFAULT_RPC_PORT}")

    if cfg.debug_level.lower() not in _LOGRUS_LEVELS:
        raise _err(
            f'error parsing debuglevel: not a valid logrus Level: "{cfg.debug_level}"'
        )

    try:
        cfg.rpc_listeners = normalize_addresses(
            listeners, str(DEFAULT_RPC_PORT), resolve_tcp_address
        )
    except AddressError as exc:
        raise _err(f"error normalizing RPC listen addrs: {exc}") from exc

    return cfg


# --- option table shared by the command line and the configuration file ---


@dataclass(frozen=True)
class _Option:
    section: str
    long: str
    path: Tuple[str, ...]
    kind: str = "str"

    @property
    def flag(self) -> str:
        return f"{self.section}.{self.long}" if self.section else self.long


def _opts(section: str, prefix: Tuple[str, ...], spec: Sequence[Tuple[str, str, str]]):
    return [_Option(section, long, prefix + (attr,), kind) for long, attr, kind in spec]


_OPTIONS: List[_Option] = [
    *_opts("", (), [
        ("debuglevel", "debug_level", "str"),
        ("stakerddir", "stakerd_dir", "str"),
        ("configfile", "config_file", "str"),
        ("datadir", "data_dir", "str"),
        ("logdir", "log_dir", "str"),
        ("cpuprofile", "cpu_profile", "str"),
        ("profile", "profile", "str"),
        ("dumpcfg", "dump_cfg", "bool"),
    ]),
    _Option("", "rpclisten", ("json_rpc_server_config", "raw_rpc_listeners"), "list"),
    *_opts("walletconfig", ("wallet_config",), [
        ("walletname", "wallet_name", "str"),
        ("walletpassphrase", "wallet_pass", "str"),
    ]),
    *_opts("walletrpcconfig", ("wallet_rpc_config",), [
        ("wallethost", "host", "str"),
        ("walletuser", "user", "str"),
        ("walletpassword", "password", "str"),
        ("noclienttls", "disable_tls", "bool"),
        ("rpcwalletcert", "rpc_wallet_cert", "str"),
        ("rawrpcwalletcert", "raw_rpc_wallet_cert", "str"),
    ]),
    *_opts("chain", ("chain_config",), [
        ("network", "network", "str"),
        ("signetchallenge", "signet_challenge", "str"),
    ]),
    *_opts("btcnodebackend", ("btc_node_backend_config",), [
        ("nodetype", "nodetype", "str"),
        ("wallettype", "wallet_type", "str"),
        ("feemode", "fee_mode", "str"),
        ("minfeerate", "min_fee_rate", "int"),
        ("maxfeerate", "max_fee_rate", "int"),
    ]),
    *_opts("btcnodebackend.btcd", ("btc_node_backend_config", "btcd"), [
        ("rpchost", "rpc_host", "str"),
        ("rpcuser", "rpc_user", "str"),
        ("rpcpass", "rpc_pass", "str"),
        ("rpccert", "rpc_cert", "str"),
        ("rawrpccert", "raw_rpc_cert", "str"),
        ("block-cache-size", "block_cache_size", "int"),
    ]),
    *_opts("btcnodebackend.bitcoind", ("btc_node_backend_config", "bitcoind"), [
        ("rpchost", "rpc_host", "str"),
        ("rpcuser", "rpc_user", "str"),
        ("rpcpass", "rpc_pass", "str"),
        ("zmqpubrawblock", "zmq_pub_raw_block", "str"),
        ("zmqpubrawtx", "zmq_pub_raw_tx", "str"),
        ("zmqreaddeadline", "zmq_read_deadline", "duration"),
        ("estimatemode", "estimate_mode", "str"),
        ("pruned-node-max-peers", "pruned_node_max_peers", "int"),
        ("rpcpolling", "rpc_polling", "bool"),
        ("blockpollinginterval", "block_polling_interval", "duration"),
        ("txpollinginterval", "tx_polling_interval", "duration"),
        ("block-cache-size", "block_cache_size", "int"),
    ]),
    *_opts("dbconfig", ("db_config",), [
        ("dbpath", "db_path", "str"),
        ("dbfilename", "db_file_name", "str"),
        ("nofreelistsync", "no_freelist_sync", "bool"),
        ("autocompact", "auto_compact", "bool"),
        ("autocompactminage", "auto_compact_min_age", "duration"),
        ("dbtimeout", "db_timeout", "duration"),
    ]),
    *_opts("stakerconfig", ("staker_config",), [
        ("babylonstallinginterval", "babylon_stalling_interval", "duration"),
        ("unbondingtxcheckinterval", "unbonding_tx_check_interval", "duration"),
        ("checkactiveinterval", "check_active_interval", "duration"),
        ("maxconcurrenttransactions", "max_concurrent_transactions", "int"),
        ("exitoncriticalerror", "exit_on_critical_error", "bool"),
    ]),
    *_opts("metricsconfig", ("metrics_config",), [
        ("enabled", "enabled", "bool"),
        ("host", "host", "str"),
        ("server-pornt", "server_port", "int"),
    ]),
]

_BY_SECTION: Dict[Tuple[str, str], _Option] = {(o.section, o.long): o for o in _OPTIONS}

_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}

_DURATION_UNITS = {
    "ns": 1e-9, "us": 1e-6, "µs": 1e-6, "μs": 1e-6,
    "ms": 1e-3, "s": 1.0, "m": 60.0, "h": 3600.0,
}
_DURATION_PART = re.compile(r"([0-9]*\.?[0-9]+|[0-9]+\.)(ns|us|µs|μs|ms|s|m|h)")


def _parse_bool(text: str) -> bool:
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"invalid boolean value {text!r}")


def _parse_duration(text: str) -> timedelta:
    s = text.strip()
    sign = 1
    if s and s[0] in "+-":
        sign = -1 if s[0] == "-" else 1
        s = s[1:]
    if s == "0":
        return timedelta(0)
    if not s:
        raise ValueError(f"invalid duration {text!r}")
    total = 0.0
    pos = 0
    while pos < len(s):
        match = _DURATION_PART.match(s, pos)
        if match is None:
            raise ValueError(f"invalid duration {text!r}")
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    return timedelta(seconds=sign * total)


def _format_duration(value: timedelta) -> str:
    total = value.total_seconds()
    if total == 0:
        return "0s"
    sign = "-" if total < 0 else ""
    hours, rest = divmod(abs(total), 3600)
    minutes, seconds = divmod(rest, 60)
    secs = (f"{seconds:.9f}".rstrip("0").rstrip(".") or "0") + "s"
    if hours:
        return f"{sign}{int(hours)}h{int(minutes)}m{secs}"
    if minutes:
        return f"{sign}{int(minutes)}m{secs}"
    return sign + secs


def _parse_list(text: str) -> List[str]:
    return [line.strip() for line in text.splitlines() if line.strip()]


_PARSERS: Dict[str, Callable[[str], Any]] = {
    "str": str,
    "int": int,
    "bool": _parse_bool,
    "duration": _parse_duration,
    "list": _parse_list,
}


def _format_value(kind: str, value: Any) -> str:
    if kind == "bool":
        return "true" if value else "false"
    if kind == "duration":
        return _format_duration(value)
    if kind == "list":
        return "\n    ".join(value)
    return str(value)


def _get(obj: Any, path: Tuple[str, ...]) -> Any:
    for name in path:
        obj = getattr(obj, name)
    return obj


def _apply(cfg: Config, values: Dict[str, Any]) -> None:
    for option in _OPTIONS:
        if option.flag in values:
            target = _get(cfg, option.path[:-1])
            setattr(target, option.path[-1], copy.copy(values[option.flag]))


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str):
        raise UsageError(message)


def _parse_cli(prog: str, args: Sequence[str]) -> Dict[str, Any]:
    parser = _ArgumentParser(
        prog=prog, argument_default=argparse.SUPPRESS, allow_abbrev=False
    )
    for option in _OPTIONS:
        name = f"--{option.flag}"
        if option.kind == "bool":
            parser.add_argument(
                name, dest=option.flag, nargs="?", const=True, type=_parse_bool
            )
        elif option.kind == "list":
            parser.add_argument(name, dest=option.flag, action="append")
        else:
            parser.add_argument(name, dest=option.flag, type=_PARSERS[option.kind])
    return vars(parser.parse_args(list(args)))


def _read_ini(path: str) -> Dict[str, Any]:
    parser = configparser.ConfigParser(strict=False, interpolation=None)
    with open(path, encoding="utf-8") as handle:
        try:
            parser.read_file(handle)
        except configparser.Error as exc:
            raise ConfigError(f"{path}: {exc}") from exc

    values: Dict[str, Any] = {}
    for section in parser.sections():
        key_section = "" if section == _APP_SECTION else section
        for key, text in parser.items(section):
            option = _BY_SECTION.get((key_section, key))
            if option is None:
                raise ConfigError(f"{path}: unknown option: {key}")
            try:
                values[option.flag] = _PARSERS[option.kind](text)
            except ValueError as exc:
                raise ConfigError(f"{path}: invalid value for {key}: {exc}") from exc
    return values


def _write_ini(cfg: Config, path: str) -> None:
    sections: Dict[str, List[_Option]] = {}
    for option in _OPTIONS:
        sections.setdefault(option.section, []).append(option)
    lines: List[str] = []
    for section, options in sections.items():
        lines.append(f"[{section or _APP_SECTION}]")
        for option in options:
            value = _format_value(option.kind, _get(cfg, option.path))
            lines.append(f"{option.long} = {value}")
        lines.append("")
    Path(path).write_text("\n".join(lines), encoding="utf-8")


def _setup_logger(log_file: str, level: int) -> logging.Logger:
    logger = logging.Logger("stakerd", level)
    formatter = logging.Formatter("time=%(asctime)s level=%(levelname)s msg=%(message)s")
    os.close(os.open(log_file, os.O_CREAT | os.O_WRONLY | os.O_APPEND, 0o600))
    for handler in (logging.StreamHandler(sys.stdout), logging.FileHandler(log_file, "a")):
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger


def load_config(argv: Optional[Sequence[str]] = None):
    """Build the configuration from defaults, the config file and the command line.

    Returns ``(config, logger, rpc_logger)``.
    """
    args = sys.argv[1:] if argv is None else list(argv)
    app_name = os.path.splitext(os.path.basename(sys.argv[0] or "stakerd"))[0]
    usage_message = f"Use {app_name} -h to show usage"

    cli_values = _parse_cli(app_name, args)
    pre_cfg = default_config()
    _apply(pre_cfg, cli_values)

    config_file_dir = clean_and_expand_path(pre_cfg.stakerd_dir)
    config_file_path = clean_and_expand_path(pre_cfg.config_file)
    if config_file_dir != DEFAULT_STAKERD_DIR and config_file_path == DEFAULT_CONFIG_FILE:
        config_file_path = os.path.join(config_file_dir, DEFAULT_CONFIG_FILE_NAME)
    elif config_file_path != DEFAULT_CONFIG_FILE and not file_exists(config_file_path):
        raise ConfigError(f"specified config file does not exist in {config_file_path}")

    cfg = copy.deepcopy(pre_cfg)
    config_file_error: Optional[OSError] = None
    try:
        _apply(cfg, _read_ini(config_file_path))
    except OSError as exc:
        config_file_error = exc

    _apply(cfg, cli_values)

    warn_logger = logging.Logger("stakerd")
    warn_logger.addHandler(logging.StreamHandler(sys.stdout))
    try:
        clean_cfg = validate_config(cfg)
    except ConfigError as exc:
        if isinstance(exc, UsageError):
            warn_logger.warning("Incorrect usage: %s", usage_message)
        warn_logger.warning("Error validating config: %s", exc)
        raise

    level = _LOGRUS_LEVELS[clean_cfg.debug_level.lower()]
    logger = _setup_logger(os.path.join(clean_cfg.log_dir, DEFAULT_LOG_FILENAME), level)

    if config_file_error is not None:
        logger.warning("%s", config_file_error)
        if clean_cfg.dump_cfg:
            logger.info("Writing configuration file to %s", config_file_path)
            try:
                _write_ini(cfg, config_file_path)
            except OSError as exc:
                logger.warning("Error writing configuration file: %s", exc)
                raise

    rpc_logger = new_root_logger("console", clean_cfg.debug_level)
    return clean_cfg, logger, rpc_logger