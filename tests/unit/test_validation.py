"""Unit tests for validation and masking utilities."""

from decimal import Decimal

import pytest

from app.utils.security import mask_address, mask_rpc_url, mask_tx_hash
from app.validators import (
    normalize_wallet_address,
    validate_page_params,
    validate_token_amount,
    validate_wallet_address,
)


class TestWalletAddressValidation:
    """Tests for wallet address validation."""

    def test_empty_address_invalid(self):
        ok, value, error = validate_wallet_address("")
        assert not ok
        assert value is None
        assert error

    def test_short_address_invalid(self):
        assert not validate_wallet_address("0x1234")[0]

    def test_no_0x_prefix_invalid(self):
        assert not validate_wallet_address("1" * 40)[0]

    def test_invalid_hex_characters(self):
        assert not validate_wallet_address("0x" + "z" * 40)[0]

    def test_bad_checksum_invalid(self):
        # Mixed case must be a valid EIP-55 checksum
        assert not validate_wallet_address("0xC8aC3954f9550eF41705e9c0AE2179b8DF01cF4b")[0]

    @pytest.mark.parametrize(
        "address",
        [
            "0x0000000000000000000000000000000000000000",
            "0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFF",
            "0xc8ac3954f9550ef41705e9c0ae2179b8df01cf4b",
        ],
    )
    def test_valid_addresses_are_lowercased(self, address):
        ok, value, error = validate_wallet_address(address)
        assert ok
        assert value == address.lower()
        assert error is None

    def test_normalize_raises_on_invalid(self):
        with pytest.raises(ValueError):
            normalize_wallet_address("not-an-address")


class TestTokenAmountValidation:
    """Tests for token amount validation."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("5.0", Decimal("5.0")), (3, Decimal("3")), ("0.000000000000000001", Decimal("1e-18"))],
    )
    def test_valid(self, raw, expected):
        ok, value, _ = validate_token_amount(raw)
        assert ok
        assert value == expected

    @pytest.mark.parametrize("raw", ["-1", "abc", "NaN", "0.0000000000000000001", None, True])
    def test_invalid(self, raw):
        ok, value, error = validate_token_amount(raw)
        assert not ok
        assert value is None
        assert error


class TestPageParams:
    """Tests for pagination parameters."""

    def test_defaults(self):
        assert validate_page_params(None, None, 10, 1000) == (True, (1, 10), None)

    def test_limit_capped(self):
        assert validate_page_params("2", "5000", 10, 1000) == (True, (2, 1000), None)

    @pytest.mark.parametrize(("page", "limit"), [("0", "10"), ("1", "-5"), ("x", "10")])
    def test_invalid(self, page, limit):
        ok, values, error = validate_page_params(page, limit, 10, 1000)
        assert not ok
        assert values is None
        assert error


class TestMasking:
    """Tests for log masking helpers."""

    def test_mask_address(self):
        assert mask_address("0x1234567890abcdef1234567890abcdef12345678") == "0x1234...5678"
        assert mask_address(None) == "***"

    def test_mask_tx_hash(self):
        assert mask_tx_hash("0x" + "ab" * 32) == "0xabababab...ababab"
        assert mask_tx_hash("0x12") == "***"

    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("https://polygon-mainnet.g.alchemy.com/v2/secret", "https://polygon-mainnet.g.alchemy.com/***"),
            ("wss://rpc.example.org", "wss://rpc.example.org"),
            ("http://localhost:8545", "http://localhost:8545"),
            ("https://rpc.example.org/?apikey=secret", "https://rpc.example.org/***"),
            ("not a url", "***"),
        ],
    )
    def test_mask_rpc_url(self, url, expected):
        assert mask_rpc_url(url) == expected
