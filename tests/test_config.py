"""Tests for settings, program ids and keypair loading."""

import json

import pytest
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from mintforge.config import Settings, get_program_ids, load_keypair
from mintforge.models.failure import InvalidInputError


class TestProgramIds:
    def test_defaults_are_mainnet_programs(self) -> None:
        programs = Settings().program_ids()

        assert programs.token == Pubkey.from_string(
            "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
        )
        assert programs.token_metadata == Pubkey.from_string(
            "metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s"
        )
        assert programs.system == Pubkey.default()

    def test_overridable_from_environment(self, monkeypatch) -> None:
        override = Pubkey.new_unique()
        monkeypatch.setenv("MINTFORGE_TOKEN_METADATA_PROGRAM_ID", str(override))

        assert Settings().program_ids().token_metadata == override

    def test_get_program_ids_is_cached(self) -> None:
        assert get_program_ids() is get_program_ids()


class TestLoadKeypair:
    def test_round_trip(self, tmp_path) -> None:
        keypair = Keypair()
        path = tmp_path / "id.json"
        path.write_text(json.dumps(list(bytes(keypair))))

        assert load_keypair(path).pubkey() == keypair.pubkey()

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(InvalidInputError, match="Keypair file not found"):
            load_keypair(tmp_path / "id.json")

    def test_not_json(self, tmp_path) -> None:
        path = tmp_path / "id.json"
        path.write_text("garbage")

        with pytest.raises(InvalidInputError, match="Invalid keypair file"):
            load_keypair(path)

    def test_wrong_length(self, tmp_path) -> None:
        path = tmp_path / "id.json"
        path.write_text(json.dumps([1, 2, 3]))

        with pytest.raises(InvalidInputError, match="Invalid keypair file"):
            load_keypair(path)
