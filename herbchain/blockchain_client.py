# herbchain/blockchain_client.py
import json
import logging
import re
from pathlib import Path
from typing import Any

from eth_account import Account
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.logs import DISCARD

from herbchain.config import Settings
from herbchain.errors import InvalidInput, ProvenanceError, UpstreamFailure

logger = logging.getLogger(__name__)

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def ledger_batch_id(formatted_batch_id: str | int) -> int:
    """
    Maps a formatted batch id ("42", "7-ASHWA") onto the ledger's numeric id
    by reading its leading integer.
    """
    if isinstance(formatted_batch_id, int):
        return formatted_batch_id
    match = _LEADING_INT.match(str(formatted_batch_id or ""))
    if not match:
        raise InvalidInput(f"Batch id {formatted_batch_id!r} has no numeric ledger id")
    return int(match.group(1))


def load_abi(path: Path) -> list:
    """Accepts a bare ABI list or a build artifact carrying an "abi" key."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    return data["abi"] if isinstance(data, dict) else data


def _as_str(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return str(value)


def _stage_to_dict(stage: Any) -> dict:
    if isinstance(stage, dict):
        stage_type, timestamp, metadata_hash = (
            stage["stageType"], stage["timestamp"], stage["metadataHash"]
        )
    else:
        stage_type, timestamp, metadata_hash = stage
    return {
        "stageType": _as_str(stage_type),
        "timestamp": _as_str(timestamp),
        "metadataHash": _as_str(metadata_hash),
    }


class LedgerClient:
    """Async adapter over the deployed HerbProvenance contract."""

    def __init__(self, w3: AsyncWeb3, contract, account):
        self._w3 = w3
        self._contract = contract
        self._account = account

    @classmethod
    def from_settings(cls, settings: Settings) -> "LedgerClient":
        missing = [
            name
            for name, value in {
                "ALCHEMY_RPC_URL": settings.rpc_url,
                "PRIVATE_KEY": settings.private_key,
                "CONTRACT_ADDRESS": settings.contract_address,
            }.items()
            if not value
        ]
        if missing:
            raise RuntimeError("Missing ledger setting(s): " + ", ".join(missing))

        w3 = AsyncWeb3(AsyncHTTPProvider(settings.rpc_url))
        contract = w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(settings.contract_address),
            abi=load_abi(settings.contract_abi_path),
        )
        return cls(w3, contract, Account.from_key(settings.private_key))

    async def _transact(self, contract_fn) -> dict:
        address = self._account.address
        tx = await contract_fn.build_transaction({
            "from": address,
            "nonce": await self._w3.eth.get_transaction_count(address, "pending"),
        })
        signed = self._account.sign_transaction(tx)
        tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
        receipt = await self._w3.eth.wait_for_transaction_receipt(tx_hash)
        if receipt["status"] != 1:
            raise UpstreamFailure(f"Ledger transaction {AsyncWeb3.to_hex(tx_hash)} reverted")
        logger.info("Ledger tx %s mined in block %s", AsyncWeb3.to_hex(tx_hash), receipt["blockNumber"])
        return receipt

    def _event_arg(self, event_name: str, receipt, arg: str) -> str:
        events = getattr(self._contract.events, event_name)().process_receipt(receipt, errors=DISCARD)
        if not events:
            raise UpstreamFailure(f"Ledger receipt carried no {event_name} event")
        return _as_str(events[0]["args"][arg])

    async def create_batch(self, sku: str) -> dict:
        try:
            receipt = await self._transact(self._contract.functions.createBatch(sku))
            return {"batchId": self._event_arg("BatchCreated", receipt, "batchId")}
        except ProvenanceError:
            raise
        except Exception as e:
            raise UpstreamFailure(f"Ledger createBatch failed: {e}") from e

    async def add_stage(self, batch_id: str | int, stage_type: int, metadata_hash: str) -> dict:
        numeric_id = ledger_batch_id(batch_id)
        try:
            receipt = await self._transact(
                self._contract.functions.addStage(numeric_id, stage_type, metadata_hash)
            )
            return {
                "txHash": AsyncWeb3.to_hex(receipt["transactionHash"]),
                "stageIndex": self._event_arg("StageAdded", receipt, "stageIndex"),
            }
        except ProvenanceError:
            raise
        except Exception as e:
            raise UpstreamFailure(f"Ledger addStage failed: {e}") from e

    async def get_batch_summary(self, batch_id: str | int) -> dict:
        numeric_id = ledger_batch_id(batch_id)
        try:
            sku, stage_count, stages = await self._contract.functions.getBatchSummary(numeric_id).call()
        except Exception as e:
            raise UpstreamFailure(f"Ledger getBatchSummary failed: {e}") from e
        return {
            "sku": sku,
            "stageCount": _as_str(stage_count),
            "stages": [_stage_to_dict(s) for s in stages],
        }
