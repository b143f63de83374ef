"""Tests for distributor configuration loading."""

import json
import os

import pytest

from distributor.config import ChainSettings, DistributorConfig
from distributor.crypto.merkle import normalize_address

ROOT = "0x" + "ab" * 32
TOKEN = "0x" + "70" * 20
ADMIN = "0x" + "ad" * 20


def _write_config(path, **overrides) -> None:
    params = {
        "merkle_root": ROOT,
        "token_address": TOKEN,
        "admin": ADMIN,
        "chain_id": 1,
        "event_log": "events.jsonl",
    }
    params.update(overrides)
    path.write_text(json.dumps(params), encoding="utf-8")


@pytest.fixture
def clean_env():
    saved = {key: os.environ.pop(key, None) for key in ("RPC_URL", "PRIVATE_KEY")}
    yield
    for key, value in saved.items():
        os.environ.pop(key, None)
        if value is not None:
            os.environ[key] = value


class TestDistributorConfig:
    def test_loads_file(self, tmp_path) -> None:
        path = tmp_path / "distributor.json"
        _write_config(path)
        config = DistributorConfig.from_config_file(path)
        assert config.merkle_root == ROOT
        assert config.token_address == normalize_address(TOKEN)
        assert config.admin == normalize_address(ADMIN)
        assert config.chain_id == 1
        assert config.event_log == tmp_path / "events.jsonl"

    def test_root_normalized(self, tmp_path) -> None:
        path = tmp_path / "distributor.json"
        _write_config(path, merkle_root="AB" * 32)
        assert DistributorConfig.from_config_file(path).merkle_root == ROOT

    def test_absolute_event_log_kept(self, tmp_path) -> None:
        path = tmp_path / "distributor.json"
        absolute = tmp_path / "elsewhere" / "log.jsonl"
        _write_config(path, event_log=str(absolute))
        assert DistributorConfig.from_config_file(path).event_log == absolute

    def test_event_log_optional(self, tmp_path) -> None:
        path = tmp_path / "distributor.json"
        _write_config(path, event_log=None)
        assert DistributorConfig.from_config_file(path).event_log is None

    def test_missing_key(self, tmp_path) -> None:
        path = tmp_path / "distributor.json"
        path.write_text(json.dumps({"merkle_root": ROOT}), encoding="utf-8")
        with pytest.raises(ValueError, match="token_address"):
            DistributorConfig.from_config_file(path)

    def test_bad_root(self, tmp_path) -> None:
        path = tmp_path / "distributor.json"
        _write_config(path, merkle_root="0x1234")
        with pytest.raises(ValueError):
            DistributorConfig.from_config_file(path)

    def test_bad_admin(self, tmp_path) -> None:
        path = tmp_path / "distributor.json"
        _write_config(path, admin="nobody")
        with pytest.raises(ValueError):
            DistributorConfig.from_config_file(path)

    def test_shipped_config_loads(self) -> None:
        config = DistributorConfig.from_config_file()
        assert config.chain_id == 11155111


class TestChainSettings:
    def test_from_environment(self, clean_env, tmp_path) -> None:
        os.environ["RPC_URL"] = "http://localhost:8545"
        os.environ["PRIVATE_KEY"] = "0x" + "01" * 32
        settings = ChainSettings.from_env(tmp_path / "absent.env")
        assert settings.rpc_url == "http://localhost:8545"
        assert settings.private_key == "0x" + "01" * 32

    def test_from_dotenv_file(self, clean_env, tmp_path) -> None:
        env_file = tmp_path / ".env"
        env_file.write_text(
            "RPC_URL=http://node.test:8545\nPRIVATE_KEY=0xabc\n", encoding="utf-8",
        )
        settings = ChainSettings.from_env(env_file)
        assert settings.rpc_url == "http://node.test:8545"
        assert settings.private_key == "0xabc"

    def test_missing_credentials(self, clean_env, tmp_path) -> None:
        with pytest.raises(ValueError, match="RPC_URL"):
            ChainSettings.from_env(tmp_path / "absent.env")
