"""
Unit tests for the command line entry point.
"""

import json
from unittest.mock import patch

import pytest

from tokamak_l2_toolkit.cli import build_parser, main
from tokamak_l2_toolkit.state.snapshot import validate_state_snapshot
from tokamak_l2_toolkit.utils.formatters import load_json
from tokamak_l2_toolkit.utils.keys import derive_l2_address_from_keys, derive_l2_keys_from_seed

KEY_A = "0x" + "00" * 31 + "0a"
KEY_B = "0x" + "00" * 31 + "0b"


@pytest.fixture
def snapshot_file(tmp_path, entry_contract_address, token_address):
    path = tmp_path / "snapshot.json"
    path.write_text(
        json.dumps(
            {
                "channelId": "0x01",
                "entryContractAddress": entry_contract_address,
                "storageAddresses": [token_address],
                "stateRoots": ["0x"],
                "registeredKeys": [[KEY_A, KEY_B]],
                "storageEntries": [[{"key": KEY_B, "value": "0x05"}]],
                "preAllocatedLeaves": [[{"key": KEY_A, "value": "0x"}]],
            }
        )
    )
    return path


class TestParser:
    def test_requires_a_command(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_key_source_is_exclusive(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["derive-keys", "--seed", "a", "--signature", "0x01"])


class TestCommands:
    def test_derive_keys(self, tmp_path):
        out = tmp_path / "keys.json"
        main(["derive-keys", "--seed", "alice seed", "--output", str(out)])
        data = load_json(str(out))
        assert data["l2_address"] == derive_l2_address_from_keys(
            derive_l2_keys_from_seed("alice seed")
        )

    def test_create_tx(self, tmp_path, token_address):
        out = tmp_path / "tx.json"
        main(
            [
                "create-tx",
                "--seed",
                "alice seed",
                "--to",
                token_address,
                "--data",
                "0xa9059cbb",
                "--nonce",
                "3",
                "--output",
                str(out),
            ]
        )
        data = load_json(str(out))
        assert data["sender"] == derive_l2_address_from_keys(derive_l2_keys_from_seed("alice seed"))
        assert data["serialized"].startswith("0x")

    def test_validate_snapshot(self, snapshot_file):
        main(["validate-snapshot", "--snapshot", str(snapshot_file)])

    def test_validate_snapshot_reports_problems(self, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text(json.dumps({"channelId": "0x"}))
        with pytest.raises(SystemExit) as exc_info:
            main(["validate-snapshot", "--snapshot", str(bad)])
        assert exc_info.value.code == 1

    def test_validate_snapshot_writes_report(self, tmp_path, snapshot_file):
        data = load_json(str(snapshot_file))
        data["storageEntries"] = [[]]
        bad = tmp_path / "bad.json"
        bad.write_text(json.dumps(data))
        report = tmp_path / "report.json"
        with pytest.raises(SystemExit):
            main(["validate-snapshot", "--snapshot", str(bad), "--output", str(report)])
        out = load_json(str(report))
        assert out["valid"] is False
        assert out["problemsBySource"] == {"snapshot_keys": 1}
        assert out["errors"][0]["addressIndex"] == 0

    def test_capture_snapshot_with_permutation(self, tmp_path, snapshot_file, token_address):
        permutations = tmp_path / "perm.json"
        permutations.write_text(json.dumps({token_address: [1, 0]}))
        out = tmp_path / "captured.json"
        main(
            [
                "capture-snapshot",
                "--snapshot",
                str(snapshot_file),
                "--permutations",
                str(permutations),
                "--output",
                str(out),
            ]
        )
        data = load_json(str(out))
        assert validate_state_snapshot(data).success
        assert data["registeredKeys"] == [[KEY_B, KEY_A]]
        assert data["stateRoots"][0] != "0x"
        assert data["storageEntries"] == [[{"key": KEY_B, "value": "0x05"}]]

    def test_init_state(self, tmp_path, fake_source, entry_contract_address, token_address):
        config = tmp_path / "channel.json"
        config.write_text(
            json.dumps(
                {
                    "participants": [{"addressL1": "0x" + "11" * 20, "prvSeedL2": "alice seed"}],
                    "storageConfigs": [{"address": token_address, "userStorageSlots": [0]}],
                    "entryContractAddress": entry_contract_address,
                    "blockNumber": 21000000,
                }
            )
        )
        out = tmp_path / "state.json"
        with patch(
            "tokamak_l2_toolkit.cli.RpcUpstreamSource.from_rpc_url",
            return_value=fake_source(),
        ):
            main(
                [
                    "init-state",
                    "--config",
                    str(config),
                    "--rpc-url",
                    "http://localhost:8545",
                    "--channel-id",
                    "0x07",
                    "--output",
                    str(out),
                ]
            )
        data = load_json(str(out))
        assert data["channelId"] == "0x07"
        assert data["storageAddresses"] == [token_address]
        assert len(data["registeredKeys"][0]) == 1

    def test_errors_exit_with_status_one(self, tmp_path):
        config = tmp_path / "channel.json"
        config.write_text(json.dumps({"participants": "nobody"}))
        with pytest.raises(SystemExit) as exc_info:
            main(["init-state", "--config", str(config), "--rpc-url", "http://localhost:8545"])
        assert exc_info.value.code == 1
