from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace

import pytest
from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from mintforge.config import ProgramIds, get_program_ids
from mintforge.models.cache import Cache, CacheItem
from mintforge.models.failure import SubmissionError, SubmissionFailure
from mintforge.models.token_metadata import (
    CREATE_MASTER_EDITION_V3,
    CREATE_METADATA_ACCOUNT_V3,
    CreateMasterEditionV3Layout,
    CreateMetadataAccountV3Layout,
    Key,
    MasterEditionLayout,
    MetadataLayout,
)
from mintforge.services.collection import ConfigData, DeployArgs
from mintforge.services.pdas import (
    derive_associated_token_address,
    derive_master_edition_address,
    derive_metadata_address,
)

RENT_EXEMPT_MINT = 1_461_600


@dataclass
class MockAccount:
    owner: Pubkey
    kind: str
    data: bytes = b""
    supply: int = 0
    amount: int = 0


@dataclass(frozen=True)
class Step:
    """One instruction, normalized from either a raw or a compiled form."""

    program_id: Pubkey
    accounts: list[Pubkey]
    signers: frozenset[Pubkey]
    data: bytes


class MockLedger:
    """
    In-memory ledger that executes collection batches.

    Each program handler refuses to touch an account that a previous
    instruction should have created. A rejected batch leaves no state behind.
    """

    def __init__(self, programs: ProgramIds, rent: int = RENT_EXEMPT_MINT) -> None:
        self.programs = programs
        self.rent = rent
        self.accounts: dict[Pubkey, MockAccount] = {}
        self.calls: list[str] = []
        self.submitted: list[VersionedTransaction] = []
        self.fail_submission: SubmissionError | None = None

    # Ledger protocol

    def get_minimum_balance_for_rent_exemption(self, size: int) -> int:
        self.calls.append("getMinimumBalanceForRentExemption")
        return self.rent

    def get_account_info(self, address: Pubkey) -> bytes | None:
        self.calls.append("getAccountInfo")
        account = self.accounts.get(address)
        return None if account is None else account.data

    def get_latest_blockhash(self) -> Hash:
        self.calls.append("getLatestBlockhash")
        return Hash.default()

    def send_and_confirm_transaction(self, transaction: VersionedTransaction) -> Signature:
        self.calls.append("sendTransaction")
        self.submitted.append(transaction)
        if self.fail_submission is not None:
            raise self.fail_submission

        message = transaction.message
        keys = message.account_keys
        signers = frozenset(keys[: message.header.num_required_signatures])
        steps = [
            Step(
                program_id=keys[ix.program_id_index],
                accounts=[keys[i] for i in ix.accounts],
                signers=signers,
                data=bytes(ix.data),
            )
            for ix in message.instructions
        ]
        self.execute(steps)
        return transaction.signatures[0]

    # Execution

    def put_account(self, address: Pubkey, data: bytes, owner: Pubkey | None = None) -> None:
        self.accounts[address] = MockAccount(
            owner=owner or self.programs.token_metadata, kind="raw", data=data
        )

    def replay(self, instructions: Sequence[Instruction]) -> None:
        steps = [
            Step(
                program_id=ix.program_id,
                accounts=[meta.pubkey for meta in ix.accounts],
                signers=frozenset(meta.pubkey for meta in ix.accounts if meta.is_signer),
                data=bytes(ix.data),
            )
            for ix in instructions
        ]
        self.execute(steps)

    def execute(self, steps: Sequence[Step]) -> None:
        state = {address: replace(account) for address, account in self.accounts.items()}
        handlers: dict[Pubkey, Callable[[dict[Pubkey, MockAccount], Step], None]] = {
            self.programs.compute_budget: lambda state, step: None,
            self.programs.system: self._system,
            self.programs.token: self._token,
            self.programs.associated_token: self._associated_token,
            self.programs.token_metadata: self._token_metadata,
        }
        for index, step in enumerate(steps):
            handler = handlers.get(step.program_id)
            if handler is None:
                self._reject(index, f"unknown program {step.program_id}")
            try:
                handler(state, step)
            except AssertionError as e:
                self._reject(index, str(e))
        self.accounts = state

    @staticmethod
    def _reject(index: int, reason: str) -> None:
        raise SubmissionError(
            SubmissionFailure.REJECTED,
            f"Transaction rejected: instruction {index}: {reason}",
            logs=[f"Program log: {reason}"],
        )

    def _system(self, state: dict[Pubkey, MockAccount], step: Step) -> None:
        assert int.from_bytes(step.data[:4], "little") == 0, "unsupported system instruction"
        new_account = step.accounts[1]
        assert new_account not in state, f"account {new_account} already in use"
        assert new_account in step.signers, f"account {new_account} did not sign"
        owner = Pubkey.from_bytes(step.data[20:52])
        state[new_account] = MockAccount(owner=owner, kind="allocated")

    def _token(self, state: dict[Pubkey, MockAccount], step: Step) -> None:
        tag = step.data[0]
        mint = state.get(step.accounts[0])
        if tag == 0:
            assert mint is not None, "mint account does not exist"
            assert mint.owner == self.programs.token, "mint not owned by token program"
            assert mint.kind == "allocated", "mint already initialized"
            mint.kind = "mint"
        elif tag == 7:
            assert mint is not None and mint.kind == "mint", "mint not initialized"
            destination = state.get(step.accounts[1])
            assert destination is not None and destination.kind == "token", (
                "destination token account does not exist"
            )
            amount = int.from_bytes(step.data[1:9], "little")
            mint.supply += amount
            destination.amount += amount
        else:
            raise AssertionError(f"unsupported token instruction {tag}")

    def _associated_token(self, state: dict[Pubkey, MockAccount], step: Step) -> None:
        _payer, holding, owner, mint_address = step.accounts[:4]
        mint = state.get(mint_address)
        assert mint is not None and mint.kind == "mint", "mint not initialized"
        expected = derive_associated_token_address(owner, mint_address, self.programs)
        assert holding == expected, "associated address mismatch"
        assert holding not in state, "associated account already exists"
        state[holding] = MockAccount(owner=self.programs.token, kind="token")

    def _token_metadata(self, state: dict[Pubkey, MockAccount], step: Step) -> None:
        tag = step.data[0]
        if tag == CREATE_METADATA_ACCOUNT_V3:
            metadata, mint_address = step.accounts[:2]
            update_authority = step.accounts[4]
            mint = state.get(mint_address)
            assert mint is not None and mint.kind == "mint", "mint not initialized"
            assert metadata == derive_metadata_address(mint_address, self.programs), (
                "metadata address mismatch"
            )
            assert metadata not in state, "metadata already exists"

            args = CreateMetadataAccountV3Layout.parse(step.data)
            data = MetadataLayout.build(
                {
                    "key": Key.METADATA_V1,
                    "update_authority": list(bytes(update_authority)),
                    "mint": list(bytes(mint_address)),
                    "data": {
                        "name": args.data.name,
                        "symbol": args.data.symbol,
                        "uri": args.data.uri,
                        "seller_fee_basis_points": args.data.seller_fee_basis_points,
                        "creators": args.data.creators,
                    },
                    "primary_sale_happened": False,
                    "is_mutable": args.is_mutable,
                    "edition_nonce": None,
                    "token_standard": 0,
                    "collection": args.data.collection,
                    "uses": args.data.uses,
                    "collection_details": args.collection_details,
                }
            )
            state[metadata] = MockAccount(
                owner=self.programs.token_metadata, kind="metadata", data=data
            )
        elif tag == CREATE_MASTER_EDITION_V3:
            edition, mint_address = step.accounts[:2]
            metadata = step.accounts[5]
            mint = state.get(mint_address)
            assert metadata in state and state[metadata].kind == "metadata", (
                "metadata does not exist"
            )
            assert mint is not None and mint.supply == 1, "mint supply must be 1"
            assert edition == derive_master_edition_address(mint_address, self.programs), (
                "edition address mismatch"
            )
            args = CreateMasterEditionV3Layout.parse(step.data)
            data = MasterEditionLayout.build(
                {"key": Key.MASTER_EDITION_V2, "supply": 0, "max_supply": args.max_supply}
            )
            state[edition] = MockAccount(
                owner=self.programs.token_metadata, kind="edition", data=data
            )
        else:
            raise AssertionError(f"unsupported metadata instruction {tag}")


@pytest.fixture
def programs() -> ProgramIds:
    return get_program_ids()


@pytest.fixture
def payer() -> Keypair:
    return Keypair.from_seed(bytes([7] * 32))


@pytest.fixture
def mock_ledger(programs: ProgramIds) -> MockLedger:
    return MockLedger(programs)


@pytest.fixture
def mock_ledger_factory(programs: ProgramIds) -> Callable[[], MockLedger]:
    return lambda: MockLedger(programs)


@pytest.fixture
def collection_cache(tmp_path) -> Cache:
    """Cache with an uploaded, not yet minted, collection item."""
    cache = Cache(
        items={
            "-1": CacheItem(name="My Collection", metadata_link="ipfs://abc", on_chain=False),
            "0": CacheItem(name="Item #0", metadata_link="ipfs://item0", on_chain=False),
        }
    )
    cache.bind(tmp_path / "cache.json")
    cache.sync_file()
    return cache


@pytest.fixture
def config_data() -> ConfigData:
    return ConfigData(symbol="MC")


@pytest.fixture
def deploy_args() -> DeployArgs:
    return DeployArgs(priority_fee=1000)
