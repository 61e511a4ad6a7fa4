import pytest

from dtp.config import RunConfig, load_config
from dtp.helper import ConfigurationError, SeedKey, TransactionKind

from .conftest import COUNTER, LOAD, SEED_KEY

RPC_URL = "http://127.0.0.1:8545"


def args(*extra, kind="light"):
    return ["-f", "1 ether", "-a", "3", "-t", kind, "-k", SEED_KEY, "-r", RPC_URL,
            "--counter-address", COUNTER, "--load-address", LOAD,
            "--env-file", "/nonexistent/.env"] + list(extra)


def test_load_config():
    config = load_config(args("-b", "5"), environ={})
    assert config.funding_amount == 10 ** 18
    assert config.num_accounts == 3
    assert config.num_blocks == 5
    assert config.transaction_kind is TransactionKind.LIGHT
    assert config.rpc_url == RPC_URL
    assert config.counter_address == COUNTER
    assert config.load_count == 1000
    assert config.batch_size == 100
    assert config.stats_file is None
    assert not config.show_keys
    assert config.seed_key.address == SeedKey(SEED_KEY).address


def test_load_config_unbounded_heavy():
    config = load_config(args("--load-count", "2650", kind="HEAVY"), environ={})
    assert config.num_blocks is None
    assert config.transaction_kind is TransactionKind.HEAVY
    assert config.load_count == 2650


def test_load_config_from_env_file(tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text(
        "FUNDER_PRIVATE_KEY={}\nRPC_URL={}\nCOUNTER={}\n".format(SEED_KEY, RPC_URL, COUNTER.lower()))
    config = load_config(["-f", "1000", "-a", "1", "-t", "light", "--env-file", str(env_file)],
                         environ={})
    assert config.rpc_url == RPC_URL
    # addresses are normalized to their checksum form
    assert config.counter_address == COUNTER
    assert config.load_address is None

    # the environment overrides the file, flags override both
    config = load_config(["-f", "1000", "-a", "1", "-t", "light", "--env-file", str(env_file)],
                         environ={"RPC_URL": "http://node:8545"})
    assert config.rpc_url == "http://node:8545"
    config = load_config(["-f", "1000", "-a", "1", "-t", "light", "--env-file", str(env_file),
                          "-r", "https://rpc.example.org"],
                         environ={"RPC_URL": "http://node:8545"})
    assert config.rpc_url == "https://rpc.example.org"


@pytest.mark.parametrize("argv, message", [
    (["-k", "0x1234"], "malformed private key"),
    (["-t", "medium"], "not a valid transaction type"),
    (["-f", "lots"], "not a number"),
    (["-f", "0"], "positive"),
    (["-a", "0"], "at least 1"),
    (["-a", "three"], "invalid int value"),
    (["-b", "0"], "at least 1"),
    (["-r", "localhost:8545"], "not a valid http"),
    (["-r", "ws://127.0.0.1:8546"], "not a valid http"),
    (["--counter-address", "0x1234"], "not a valid Counter contract address"),
    (["--load-count", "2651"], "load count"),
    (["--batch-size", "0"], "batch size"),
])
def test_load_config_rejects(argv, message):
    with pytest.raises(ConfigurationError, match=message):
        load_config(args(*argv), environ={})


def test_load_config_missing_flags():
    with pytest.raises(ConfigurationError, match="required"):
        load_config(["-f", "1 ether", "-t", "light"], environ={})


def test_load_config_missing_key_and_url():
    base = ["-f", "1", "-a", "1", "-t", "light", "--counter-address", COUNTER,
            "--env-file", "/nonexistent/.env"]
    with pytest.raises(ConfigurationError, match="RPC URL"):
        load_config(base + ["-k", SEED_KEY], environ={})
    with pytest.raises(ConfigurationError, match="seed private key"):
        load_config(base + ["-r", RPC_URL], environ={})


def test_light_needs_counter_address():
    argv = ["-f", "1", "-a", "1", "-t", "light", "-k", SEED_KEY, "-r", RPC_URL,
            "--env-file", "/nonexistent/.env"]
    with pytest.raises(ConfigurationError, match="Counter contract address"):
        load_config(argv, environ={})
    argv[5] = "heavy"
    with pytest.raises(ConfigurationError, match="Load contract address"):
        load_config(argv, environ={})


def test_run_config_validates_fields():
    key = SeedKey(SEED_KEY)
    with pytest.raises(ConfigurationError, match="http"):
        RunConfig(funding_amount=1, seed_key=key, num_accounts=1,
                  transaction_kind=TransactionKind.LIGHT, rpc_url="ftp://x", counter_address=COUNTER)
    with pytest.raises(ConfigurationError, match="receipt timeout"):
        RunConfig(funding_amount=1, seed_key=key, num_accounts=1,
                  transaction_kind=TransactionKind.LIGHT, rpc_url=RPC_URL, counter_address=COUNTER,
                  receipt_timeout=0)


def test_stats_file_must_be_writable(tmp_path):
    config = load_config(args("--stats-file", str(tmp_path / "run.dat")), environ={})
    assert config.stats_file == str(tmp_path / "run.dat")

    with pytest.raises(ConfigurationError, match="can't write stats file"):
        load_config(args("--stats-file", str(tmp_path / "missing" / "run.dat")), environ={})
