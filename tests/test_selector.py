import pytest

from abidecoder.abi_parser import parse_abi, parse_signature
from abidecoder.selector import (
    canonical_signature,
    compute_selector,
    event_topic,
    selector_from_signature,
    signature_from_types,
)


class TestSelector:
    @pytest.mark.parametrize(
        "signature, selector",
        [
            ("transfer(address,uint256)", "a9059cbb"),
            ("balanceOf(address)", "70a08231"),
            ("approve(address,uint256)", "095ea7b3"),
            ("transferFrom(address,address,uint256)", "23b872dd"),
            ("totalSupply()", "18160ddd"),
        ],
    )
    def test_known_selectors(self, signature, selector):
        assert selector_from_signature(signature).hex() == selector

    def test_selector_uses_canonical_spelling(self):
        short = parse_signature("transfer(address,uint)")
        assert canonical_signature(short) == "transfer(address,uint256)"
        assert compute_selector(short) == bytes.fromhex("a9059cbb")

    def test_identical_signatures_yield_identical_selectors(self):
        abi = [
            {"type": "function", "name": "transfer", "inputs": [{"name": "a", "type": "address"}, {"name": "b", "type": "uint"}]},
        ]
        from_abi = parse_abi(abi).functions[0]
        from_text = parse_signature("transfer(address recipient, uint256 value)")
        assert from_abi.selector == from_text.selector
        assert compute_selector(from_abi) == compute_selector(from_abi)

    def test_signature_from_types(self):
        entry = parse_signature("f((uint256,bytes)[2],string)")
        assert signature_from_types("g", entry.input_types) == "g((uint256,bytes)[2],string)"

    def test_event_topic(self):
        entry = parse_abi(
            [
                {
                    "type": "event",
                    "name": "Transfer",
                    "inputs": [
                        {"name": "from", "type": "address", "indexed": True},
                        {"name": "to", "type": "address", "indexed": True},
                        {"name": "value", "type": "uint256"},
                    ],
                }
            ]
        ).entries[0]
        assert event_topic(entry).hex() == "ddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"
