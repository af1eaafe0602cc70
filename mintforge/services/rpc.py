"""
Solana JSON-RPC client.

Wraps the handful of RPC methods collection provisioning needs. Transport and
RPC-level failures are translated into RemoteQueryError for reads and
SubmissionError for sends, so callers never see raw httpx exceptions.
"""

import base64
import itertools
import logging
import time
from typing import Any, Protocol

import httpx
from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from mintforge.config import settings
from mintforge.models.failure import RemoteQueryError, SubmissionError, SubmissionFailure

logger = logging.getLogger(__name__)

_CONFIRMED_STATUSES = frozenset({"confirmed", "finalized"})


class Ledger(Protocol):
    """The ledger operations the provisioner depends on."""

    def get_minimum_balance_for_rent_exemption(self, size: int) -> int: ...

    def get_account_info(self, address: Pubkey) -> bytes | None: ...

    def get_latest_blockhash(self) -> Hash: ...

    def send_and_confirm_transaction(self, transaction: VersionedTransaction) -> Signature: ...


class RpcResponseError(Exception):
    """An RPC node answered with a JSON-RPC error object."""

    def __init__(self, method: str, code: int, message: str, data: Any = None):
        self.method = method
        self.code = code
        self.rpc_message = message
        self.data = data
        super().__init__(f"{method}: {message} (code {code})")

    @property
    def logs(self) -> list[str]:
        """Program logs from a failed preflight simulation, if any."""
        if isinstance(self.data, dict):
            return list(self.data.get("logs") or [])
        return []


class LedgerClient:
    """
    Blocking JSON-RPC client for a Solana cluster.

    Sends requests over a shared httpx.Client. Timeouts are the transport's;
    only confirmation polling is bounded here.
    """

    def __init__(
        self,
        rpc_url: str | None = None,
        commitment: str | None = None,
        client: httpx.Client | None = None,
        confirm_attempts: int | None = None,
        confirm_interval: float | None = None,
    ) -> None:
        """
        Initialize the ledger client.

        Args:
            rpc_url: Cluster RPC endpoint. Defaults to settings.rpc_url.
            commitment: Commitment level for reads and preflight.
            client: Optional httpx client for connection reuse
            confirm_attempts: Status polls before a send is reported unconfirmed
            confirm_interval: Seconds between status polls
        """
        self.rpc_url = rpc_url or settings.rpc_url
        self.commitment = commitment or settings.commitment
        self.confirm_attempts = (
            settings.confirm_attempts if confirm_attempts is None else confirm_attempts
        )
        self.confirm_interval = (
            settings.confirm_interval if confirm_interval is None else confirm_interval
        )
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=settings.rpc_timeout)
        self._ids = itertools.count(1)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "LedgerClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _call(self, method: str, params: list[Any]) -> Any:
        """
        Perform one JSON-RPC call.

        Raises:
            httpx.HTTPError: If the transport fails or returns a non-2xx status
            RpcResponseError: If the node answers with an error object
        """
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        response = self._client.post(self.rpc_url, json=payload)
        response.raise_for_status()

        body = response.json()
        if "error" in body:
            error = body["error"]
            raise RpcResponseError(
                method,
                code=error.get("code", 0),
                message=error.get("message", ""),
                data=error.get("data"),
            )
        return body.get("result")

    def _query(self, method: str, params: list[Any], target: str | None = None) -> Any:
        try:
            return self._call(method, params)
        except httpx.HTTPStatusError as e:
            raise RemoteQueryError(
                method, target, detail=f"HTTP {e.response.status_code}"
            ) from e
        except (httpx.RequestError, ValueError) as e:
            raise RemoteQueryError(method, target, detail=str(e)) from e
        except RpcResponseError as e:
            raise RemoteQueryError(method, target, detail=str(e)) from e

    def get_minimum_balance_for_rent_exemption(self, size: int) -> int:
        """
        Query the lamports needed to keep an account of `size` bytes alive.

        Raises:
            RemoteQueryError: If the query fails
        """
        result = self._query(
            "getMinimumBalanceForRentExemption",
            [size, {"commitment": self.commitment}],
            target=f"{size} bytes",
        )
        if not isinstance(result, int):
            raise RemoteQueryError(
                "getMinimumBalanceForRentExemption",
                f"{size} bytes",
                detail=f"Unexpected result: {result!r}",
            )
        return result

    def get_account_info(self, address: Pubkey) -> bytes | None:
        """
        Fetch raw account data.

        Returns:
            The account data, or None if no account exists at `address`

        Raises:
            RemoteQueryError: If the query fails
        """
        result = self._query(
            "getAccountInfo",
            [str(address), {"encoding": "base64", "commitment": self.commitment}],
            target=str(address),
        )
        try:
            value = result["value"]
            if value is None:
                return None
            data, encoding = value["data"]
        except (KeyError, TypeError, ValueError) as e:
            raise RemoteQueryError(
                "getAccountInfo", str(address), detail=f"Unexpected result: {result!r}"
            ) from e

        if encoding != "base64":
            raise RemoteQueryError(
                "getAccountInfo", str(address), detail=f"Unexpected encoding: {encoding}"
            )
        return base64.b64decode(data)

    def get_latest_blockhash(self) -> Hash:
        """
        Fetch a recent blockhash to sign against.

        Raises:
            RemoteQueryError: If the query fails
        """
        result = self._query("getLatestBlockhash", [{"commitment": self.commitment}])
        try:
            return Hash.from_string(result["value"]["blockhash"])
        except (KeyError, TypeError, ValueError) as e:
            raise RemoteQueryError(
                "getLatestBlockhash", detail=f"Unexpected result: {result!r}"
            ) from e

    def send_transaction(self, transaction: VersionedTransaction) -> Signature:
        """
        Submit a signed transaction with preflight simulation.

        Returns:
            The transaction signature reported by the node

        Raises:
            SubmissionError: NETWORK if the node could not be reached,
                REJECTED if preflight or the node refused the transaction
        """
        encoded = base64.b64encode(bytes(transaction)).decode()
        params = [
            encoded,
            {
                "encoding": "base64",
                "skipPreflight": False,
                "preflightCommitment": self.commitment,
            },
        ]
        try:
            result = self._call("sendTransaction", params)
        except httpx.HTTPStatusError as e:
            raise SubmissionError(
                SubmissionFailure.NETWORK,
                f"sendTransaction failed: HTTP {e.response.status_code}",
            ) from e
        except (httpx.RequestError, ValueError) as e:
            raise SubmissionError(
                SubmissionFailure.NETWORK, f"sendTransaction failed: {e}"
            ) from e
        except RpcResponseError as e:
            raise SubmissionError(
                SubmissionFailure.REJECTED,
                f"Transaction rejected: {e.rpc_message}",
                signature=str(transaction.signatures[0]),
                logs=e.logs,
            ) from e

        return Signature.from_string(result)

    def confirm_transaction(self, signature: Signature) -> None:
        """
        Poll until `signature` reaches the configured commitment.

        Raises:
            SubmissionError: REJECTED if the transaction failed on chain,
                UNCONFIRMED if it was not observed in time,
                NETWORK if status polling fails
        """
        for attempt in range(self.confirm_attempts):
            if attempt:
                time.sleep(self.confirm_interval)
            try:
                result = self._call(
                    "getSignatureStatuses",
                    [[str(signature)], {"searchTransactionHistory": False}],
                )
            except (httpx.HTTPError, ValueError, RpcResponseError) as e:
                raise SubmissionError(
                    SubmissionFailure.NETWORK,
                    f"Failed to confirm transaction {signature}: {e}",
                    signature=str(signature),
                ) from e

            try:
                status = result["value"][0]
            except (KeyError, TypeError, IndexError) as e:
                raise SubmissionError(
                    SubmissionFailure.NETWORK,
                    f"Unexpected status for transaction {signature}: {result!r}",
                    signature=str(signature),
                ) from e

            if status is not None:
                if status.get("err") is not None:
                    raise SubmissionError(
                        SubmissionFailure.REJECTED,
                        f"Transaction {signature} failed: {status['err']}",
                        signature=str(signature),
                    )
                if status.get("confirmationStatus") in _CONFIRMED_STATUSES:
                    logger.debug("Transaction %s confirmed after %d polls", signature, attempt + 1)
                    return

        raise SubmissionError(
            SubmissionFailure.UNCONFIRMED,
            f"Transaction {signature} was not confirmed after {self.confirm_attempts} polls",
            signature=str(signature),
        )

    def send_and_confirm_transaction(self, transaction: VersionedTransaction) -> Signature:
        """Submit a transaction and block until it is confirmed."""
        signature = self.send_transaction(transaction)
        logger.info("Submitted transaction %s", signature)
        self.confirm_transaction(signature)
        return signature
