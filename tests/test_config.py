import logging
import os
from datetime import timedelta

import pytest

from stakerkit.config import (
    DEFAULT_STAKERD_DIR,
    ConfigError,
    UsageError,
    default_btc_node_backend_config,
    default_config,
    default_staker_config,
    default_wallet_rpc_config,
    load_config,
    validate_config,
)
from stakerkit.netparams import FeeEstimationMode, NodeBackend, WalletBackend, network_params
from stakerkit.paths import app_data_dir


def _close(logger):
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def _cfg(tmp_path):
    cfg = default_config()
    cfg.stakerd_dir = str(tmp_path / "staker")
    cfg.json_rpc_server_config.raw_rpc_listeners = ["127.0.0.1:15812"]
    return cfg


def test_defaults_follow_source():
    cfg = default_config()
    assert cfg.stakerd_dir == app_data_dir("stakerd")
    assert cfg.data_dir == os.path.join(DEFAULT_STAKERD_DIR, "data")
    assert cfg.debug_level == "info"
    assert default_wallet_rpc_config().host == "localhost:18556"
    staker = default_staker_config()
    assert staker.max_concurrent_transactions == 1
    assert staker.exit_on_critical_error is True
    assert staker.check_active_interval == timedelta(minutes=1)
    backend = default_btc_node_backend_config()
    assert (backend.nodetype, backend.wallet_type, backend.fee_mode) == ("btcd", "btcwallet", "static")
    assert (backend.min_fee_rate, backend.max_fee_rate) == (2, 25)


def test_validate_resolves_everything(tmp_path):
    cfg = _cfg(tmp_path)
    clean = validate_config(cfg)
    base = str(tmp_path / "staker")
    assert clean.data_dir == os.path.join(base, "data")
    assert clean.log_dir == os.path.join(base, "logs")
    assert os.path.isdir(clean.data_dir) and os.path.isdir(clean.log_dir)
    assert clean.active_net_params == network_params("testnet")
    assert clean.btc_node_backend_config.active_node_backend is NodeBackend.BTCD
    assert clean.btc_node_backend_config.active_wallet_backend is WalletBackend.BTCWALLET
    assert clean.btc_node_backend_config.estimation_mode is FeeEstimationMode.STATIC
    assert [str(a) for a in clean.rpc_listeners] == ["127.0.0.1:15812"]


def test_validate_does_not_mutate_input(tmp_path):
    cfg = _cfg(tmp_path)
    before = cfg.data_dir
    validate_config(cfg)
    assert cfg.data_dir == before
    assert cfg.active_net_params is None


def test_default_listener_added(tmp_path):
    cfg = default_config()
    cfg.stakerd_dir = str(tmp_path / "s")
    clean = validate_config(cfg)
    assert clean.json_rpc_server_config.raw_rpc_listeners == ["localhost:15812"]
    assert [a.port for a in clean.rpc_listeners] == [15812]


def test_duplicate_listeners_removed(tmp_path):
    cfg = _cfg(tmp_path)
    cfg.json_rpc_server_config.raw_rpc_listeners = ["127.0.0.1:15812", "127.0.0.1:15812"]
    assert len(validate_config(cfg).rpc_listeners) == 1


def test_invalid_network(tmp_path):
    cfg = _cfg(tmp_path)
    cfg.chain_config.network = "mainnet"
    with pytest.raises(ConfigError, match="invalid network: mainnet"):
        validate_config(cfg)


def test_invalid_backends_and_fee_mode(tmp_path):
    cfg = _cfg(tmp_path)
    cfg.btc_node_backend_config.nodetype = "other"
    with pytest.raises(ConfigError, match="error getting node backend"):
        validate_config(cfg)
    cfg = _cfg(tmp_path)
    cfg.btc_node_backend_config.fee_mode = "other"
    with pytest.raises(ConfigError, match="invalid fee estimation mode"):
        validate_config(cfg)


@pytest.mark.parametrize(
    "min_rate,max_rate,message",
    [
        (0, 25, "minfeerate rate must be greater than 0"),
        (2, 0, "maxfeerate rate must be greater than 0"),
        (30, 25, "minfeerate must be less or equal maxfeerate"),
    ],
)
def test_fee_rate_bounds(tmp_path, min_rate, max_rate, message):
    cfg = _cfg(tmp_path)
    cfg.btc_node_backend_config.min_fee_rate = min_rate
    cfg.btc_node_backend_config.max_fee_rate = max_rate
    with pytest.raises(ConfigError, match=message):
        validate_config(cfg)


def test_profile_port_only_gets_localhost(tmp_path):
    cfg = _cfg(tmp_path)
    cfg.profile = "8080"
    assert validate_config(cfg).profile == "127.0.0.1:8080"


@pytest.mark.parametrize("profile", ["80", "abc", "host:99999", "host:1023"])
def test_bad_profile_is_usage_error(tmp_path, profile):
    cfg = _cfg(tmp_path)
    cfg.profile = profile
    with pytest.raises(UsageError):
        validate_config(cfg)


def test_bad_debug_level(tmp_path):
    cfg = _cfg(tmp_path)
    cfg.debug_level = "loud"
    with pytest.raises(ConfigError, match="error parsing debuglevel"):
        validate_config(cfg)


def test_bad_listener(tmp_path):
    cfg = _cfg(tmp_path)
    cfg.json_rpc_server_config.raw_rpc_listeners = ["udp://127.0.0.1:1"]
    with pytest.raises(ConfigError, match="error normalizing RPC listen addrs"):
        validate_config(cfg)


def test_load_config_cli_and_log_file(tmp_path):
    base = str(tmp_path / "s")
    cfg, logger, rpc_logger = load_config(
        ["--stakerddir", base, "--walletconfig.walletname", "cliwallet",
         "--rpclisten", "127.0.0.1:15999", "--debuglevel", "debug"]
    )
    try:
        assert cfg.wallet_config.wallet_name == "cliwallet"
        assert [a.port for a in cfg.rpc_listeners] == [15999]
        assert os.path.exists(os.path.join(cfg.log_dir, "stakerd.log"))
        assert logger.level == logging.DEBUG
        assert rpc_logger.level == logging.DEBUG
    finally:
        _close(logger)
        _close(rpc_logger)


def test_dump_and_reload_round_trip(tmp_path):
    base = str(tmp_path / "s")
    cfg, logger, rpc_logger = load_config(
        ["--stakerddir", base, "--dumpcfg", "--walletconfig.walletname", "dumped",
         "--rpclisten", "127.0.0.1:15999"]
    )
    _close(logger)
    _close(rpc_logger)
    conf_path = os.path.join(base, "stakerd.conf")
    assert os.path.exists(conf_path)

    again, logger, rpc_logger = load_config(["--stakerddir", base])
    try:
        assert again.wallet_config.wallet_name == "dumped"
        assert again.staker_config == cfg.staker_config
        assert again.btc_node_backend_config.bitcoind == cfg.btc_node_backend_config.bitcoind
        assert again.json_rpc_server_config.raw_rpc_listeners == ["127.0.0.1:15999"]
    finally:
        _close(logger)
        _close(rpc_logger)


def test_file_values_and_cli_precedence(tmp_path):
    base = tmp_path / "s"
    base.mkdir()
    (base / "stakerd.conf").write_text(
        "[stakerconfig]\ncheckactiveinterval = 2m30s\n"
        "[walletconfig]\nwalletname = fromfile\n"
        "[Application Options]\nrpclisten = 127.0.0.1:15999\n"
    )
    cfg, logger, rpc_logger = load_config(["--stakerddir", str(base)])
    try:
        assert cfg.staker_config.check_active_interval == timedelta(seconds=150)
        assert cfg.wallet_config.wallet_name == "fromfile"
    finally:
        _close(logger)
        _close(rpc_logger)

    cfg, logger, rpc_logger = load_config(
        ["--stakerddir", str(base), "--walletconfig.walletname", "cli"]
    )
    try:
        assert cfg.wallet_config.wallet_name == "cli"
    finally:
        _close(logger)
        _close(rpc_logger)


def test_missing_explicit_config_file(tmp_path):
    with pytest.raises(ConfigError, match="specified config file does not exist"):
        load_config(["--configfile", str(tmp_path / "missing.conf")])


def test_malformed_config_file(tmp_path):
    base = tmp_path / "s"
    base.mkdir()
    (base / "stakerd.conf").write_text("no section header\n")
    with pytest.raises(ConfigError):
        load_config(["--stakerddir", str(base)])


def test_unknown_option_in_file(tmp_path):
    base = tmp_path / "s"
    base.mkdir()
    (base / "stakerd.conf").write_text("[walletconfig]\nnosuchkey = 1\n")
    with pytest.raises(ConfigError, match="unknown option"):
        load_config(["--stakerddir", str(base)])


def test_bad_cli_flag_is_usage_error():
    with pytest.raises(UsageError):
        load_config(["--no-such-flag"])