"""
Tests for the chain client helpers that do not need a node.
"""
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from finalmessage.blockchain import ABI, BlockchainClient, _broadcast_and_wait


class TestBroadcast:

    @pytest.mark.parametrize("attr", ["raw_transaction", "rawTransaction"])
    def test_sends_raw_bytes_and_waits_for_receipt(self, attr):
        w3 = MagicMock()
        w3.eth.send_raw_transaction.return_value = b"\x01" * 32
        w3.eth.wait_for_transaction_receipt.return_value = {"status": 1}

        receipt = _broadcast_and_wait(w3, SimpleNamespace(**{attr: b"signed"}))

        assert receipt == {"status": 1}
        w3.eth.send_raw_transaction.assert_called_once_with(b"signed")
        w3.eth.wait_for_transaction_receipt.assert_called_once_with(b"\x01" * 32)

    def test_missing_raw_bytes(self):
        w3 = MagicMock()
        with pytest.raises(RuntimeError):
            _broadcast_and_wait(w3, SimpleNamespace())
        w3.eth.send_raw_transaction.assert_not_called()


class TestClient:

    def test_abi_exposes_store_call(self):
        assert "storeMessageHash" in {entry.get("name") for entry in ABI}

    def test_local_mode_never_anchors_onchain(self):
        client = BlockchainClient(rpc_url="", contract_address="0x" + "1" * 40, submitter_pk="0x" + "2" * 64)
        assert client.local_mode is True
        assert client.can_anchor_onchain is False
        assert client.get_network_status()["mode"] == "local"
