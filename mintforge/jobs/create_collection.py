"""
Create the collection NFT for a deploy.

Reads the cache and project config, submits the collection batch and records
the new mint in the cache. Can be run as a standalone script.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from pydantic import ValidationError
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature

from mintforge.config import ProgramIds, Settings, load_keypair, settings
from mintforge.models.cache import Cache
from mintforge.models.failure import InvalidInputError, KnownError
from mintforge.services.collection import (
    ConfigData,
    DeployArgs,
    create_collection,
    verify_collection,
)
from mintforge.services.rpc import Ledger, LedgerClient

logger = logging.getLogger(__name__)


def load_config_data(path: str | Path) -> ConfigData:
    """
    Load the project config file.

    Raises:
        InvalidInputError: If the file is missing or malformed
    """
    config_path = Path(path)
    if not config_path.exists():
        raise InvalidInputError(f"Config file not found: {config_path}")

    try:
        return ConfigData.model_validate(json.loads(config_path.read_text(encoding="utf-8")))
    except (json.JSONDecodeError, ValidationError) as e:
        raise InvalidInputError(f"Invalid config file: {config_path}", detail=str(e)) from e


def run_create_collection(
    app_settings: Settings,
    args: DeployArgs,
    verify: bool = False,
    ledger: Ledger | None = None,
) -> tuple[Signature, Pubkey]:
    """
    Create the collection mint recorded in the configured cache.

    Args:
        app_settings: Paths and RPC settings
        args: Deploy args
        verify: Read back the created accounts after confirmation
        ledger: Optional ledger client. Defaults to one on app_settings.rpc_url.

    Returns:
        (transaction signature, collection mint address)
    """
    payer = load_keypair(app_settings.keypair_path)
    cache = Cache.load(app_settings.cache_path)
    config_data = load_config_data(app_settings.config_path)
    programs = app_settings.program_ids()

    if ledger is not None:
        return _provision(ledger, payer, cache, config_data, args, programs, verify)

    with LedgerClient(
        rpc_url=app_settings.rpc_url,
        commitment=app_settings.commitment,
        confirm_attempts=app_settings.confirm_attempts,
        confirm_interval=app_settings.confirm_interval,
    ) as client:
        return _provision(client, payer, cache, config_data, args, programs, verify)


def _provision(
    ledger: Ledger,
    payer: Keypair,
    cache: Cache,
    config_data: ConfigData,
    args: DeployArgs,
    programs: ProgramIds,
    verify: bool,
) -> tuple[Signature, Pubkey]:
    logger.info("Creating collection with payer %s", payer.pubkey())
    signature, mint = create_collection(ledger, payer, cache, config_data, args, programs)
    logger.info("Collection mint: %s", mint)
    logger.info("Signature: %s", signature)

    if verify:
        records = verify_collection(ledger, mint, payer.pubkey(), programs)
        logger.info(
            "Verified metadata %s and master edition %s",
            records.metadata_address,
            records.edition_address,
        )

    return signature, mint


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create the collection NFT for a deploy.")
    parser.add_argument("--cache", default=settings.cache_path, help="Path to cache.json")
    parser.add_argument("--config", default=settings.config_path, help="Path to config.json")
    parser.add_argument("--keypair", default=settings.keypair_path, help="Payer keypair file")
    parser.add_argument("--rpc-url", default=settings.rpc_url, help="Cluster RPC endpoint")
    parser.add_argument(
        "--priority-fee",
        type=int,
        default=0,
        help="Priority fee in micro-lamports per compute unit",
    )
    parser.add_argument(
        "--verify",
        action="store_true",
        help="Read back the metadata and master edition after creation",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    options = parse_args(argv)
    app_settings = settings.model_copy(
        update={
            "cache_path": options.cache,
            "config_path": options.config,
            "keypair_path": options.keypair,
            "rpc_url": options.rpc_url,
        }
    )

    try:
        run_create_collection(
            app_settings,
            DeployArgs(priority_fee=options.priority_fee),
            verify=options.verify,
        )
    except KnownError as e:
        failure = e.to_detail()
        logger.error("%s", failure.message)
        if failure.detail:
            logger.error("%s", failure.detail)
        if failure.suggestion:
            logger.error("Suggestion: %s", failure.suggestion)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
