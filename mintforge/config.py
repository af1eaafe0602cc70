import json
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from mintforge.models.failure import InvalidInputError


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="MINTFORGE_")

    rpc_url: str = "https://api.devnet.solana.com"
    commitment: str = "confirmed"
    rpc_timeout: float = 30.0

    # Confirmation polling after sendTransaction
    confirm_attempts: int = 30
    confirm_interval: float = 1.0

    keypair_path: str = "~/.config/solana/id.json"
    cache_path: str = "cache.json"
    config_path: str = "config.json"

    # Program ids are configuration so tests and local validators can
    # point at mock deployments.
    system_program_id: str = "11111111111111111111111111111111"
    compute_budget_program_id: str = "ComputeBudget111111111111111111111111111111"
    token_program_id: str = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
    associated_token_program_id: str = "ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL"
    token_metadata_program_id: str = "metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s"
    candy_machine_program_id: str = "CndyV3LdqHUfDLmE5naZjVN8rBZz4tqhdefbAnjHG3JR"

    def program_ids(self) -> "ProgramIds":
        """Build the program id set from the configured strings."""
        return ProgramIds(
            system=Pubkey.from_string(self.system_program_id),
            compute_budget=Pubkey.from_string(self.compute_budget_program_id),
            token=Pubkey.from_string(self.token_program_id),
            associated_token=Pubkey.from_string(self.associated_token_program_id),
            token_metadata=Pubkey.from_string(self.token_metadata_program_id),
            candy_machine=Pubkey.from_string(self.candy_machine_program_id),
        )


settings = Settings()


@dataclass(frozen=True)
class ProgramIds:
    """On-chain programs this engine builds instructions for."""

    system: Pubkey
    compute_budget: Pubkey
    token: Pubkey
    associated_token: Pubkey
    token_metadata: Pubkey
    candy_machine: Pubkey


@lru_cache(maxsize=1)
def get_program_ids() -> ProgramIds:
    """
    Get the process-wide program ids.

    Returns:
        ProgramIds built from the module settings.
        Cached after first call.
    """
    return settings.program_ids()


def load_keypair(path: str | Path) -> Keypair:
    """
    Load a Solana CLI keypair file.

    Args:
        path: Path to a JSON file holding the 64-byte secret key as an int array

    Returns:
        The decoded Keypair

    Raises:
        InvalidInputError: If the file is missing or not a valid keypair
    """
    keypair_path = Path(path).expanduser()
    if not keypair_path.exists():
        raise InvalidInputError(
            f"Keypair file not found: {keypair_path}",
            suggestion="Pass --keypair or set MINTFORGE_KEYPAIR_PATH.",
        )

    try:
        raw = json.loads(keypair_path.read_text(encoding="utf-8"))
        return Keypair.from_bytes(bytes(raw))
    except (json.JSONDecodeError, TypeError, ValueError) as e:
        raise InvalidInputError(
            f"Invalid keypair file: {keypair_path}",
            detail=str(e),
        ) from e
