"""Tests for the create-collection job."""

import json
import logging
from unittest.mock import patch

import pytest
from solders.keypair import Keypair

from mintforge.config import settings
from mintforge.jobs.create_collection import load_config_data, main, run_create_collection
from mintforge.models.cache import Cache
from mintforge.models.failure import InvalidInputError, PrecursorMissingError
from mintforge.services.collection import DeployArgs


@pytest.fixture
def deploy_dir(tmp_path, payer: Keypair, collection_cache: Cache):
    keypair_path = tmp_path / "id.json"
    keypair_path.write_text(json.dumps(list(bytes(payer))))
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"symbol": "MC", "number": 10, "sellerFeeBasisPoints": 500}))
    return tmp_path


@pytest.fixture
def app_settings(deploy_dir):
    return settings.model_copy(
        update={
            "keypair_path": str(deploy_dir / "id.json"),
            "cache_path": str(deploy_dir / "cache.json"),
            "config_path": str(deploy_dir / "config.json"),
        }
    )


class TestLoadConfigData:
    def test_ignores_unrelated_keys(self, deploy_dir) -> None:
        assert load_config_data(deploy_dir / "config.json").symbol == "MC"

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(InvalidInputError, match="Config file not found"):
            load_config_data(tmp_path / "config.json")

    def test_malformed_file(self, tmp_path) -> None:
        path = tmp_path / "config.json"
        path.write_text("[")

        with pytest.raises(InvalidInputError, match="Invalid config file"):
            load_config_data(path)


class TestRunCreateCollection:
    def test_creates_and_verifies(self, app_settings, mock_ledger) -> None:
        signature, mint = run_create_collection(
            app_settings, DeployArgs(priority_fee=5), verify=True, ledger=mock_ledger
        )

        cache = Cache.load(app_settings.cache_path)
        assert cache.items["-1"].on_chain is True
        assert cache.program.collection_mint == str(mint)
        assert signature == mock_ledger.submitted[0].signatures[0]
        assert mock_ledger.calls.count("getAccountInfo") == 2

    def test_missing_collection_item(self, app_settings, mock_ledger) -> None:
        cache = Cache.load(app_settings.cache_path)
        del cache.items["-1"]
        cache.sync_file()

        with pytest.raises(PrecursorMissingError):
            run_create_collection(app_settings, DeployArgs(), ledger=mock_ledger)

        assert mock_ledger.calls == []


class TestMain:
    def test_missing_cache_returns_1(self, deploy_dir, caplog) -> None:
        argv = [
            "--cache",
            str(deploy_dir / "missing.json"),
            "--config",
            str(deploy_dir / "config.json"),
            "--keypair",
            str(deploy_dir / "id.json"),
        ]

        with caplog.at_level(logging.ERROR):
            assert main(argv) == 1

        assert "Cache file not found" in caplog.text

    def test_missing_keypair_returns_1(self, deploy_dir) -> None:
        argv = ["--cache", str(deploy_dir / "cache.json"), "--keypair", str(deploy_dir / "x.json")]

        assert main(argv) == 1

    def test_success_returns_0(self, deploy_dir, mock_ledger) -> None:
        argv = [
            "--cache",
            str(deploy_dir / "cache.json"),
            "--config",
            str(deploy_dir / "config.json"),
            "--keypair",
            str(deploy_dir / "id.json"),
            "--priority-fee",
            "100",
        ]

        with patch("mintforge.jobs.create_collection.LedgerClient") as client_cls:
            client_cls.return_value.__enter__.return_value = mock_ledger
            assert main(argv) == 0

        assert Cache.load(deploy_dir / "cache.json").items["-1"].on_chain is True
