import pytest

from services.chains import (
    validate_wallet_address, validate_transaction_hash, explorer_url, normalize_network, currency_for
)

ETH_ADDRESS = "0x4DEe7D9fa0E3e232AF7EfDF809E1fA5AdF4af61B"
SOL_ADDRESS = "FeByoSMhWJpo4f6M333RvHAe7ssvDGkioGVJTNyN3ihg"
SUI_ADDRESS = "0x7895d5b72e5df22e707149f31051e993ab304334191b84acbb14503134e4c95e"


class TestWalletAddressValidator:

    def test_valid_ethereum_address(self):
        result = validate_wallet_address(ETH_ADDRESS, "ethereum")
        assert result.is_valid
        assert result.address == ETH_ADDRESS
        assert result.error is None

    def test_garbage_is_rejected_with_expected_format(self):
        result = validate_wallet_address("not-an-address-at-all-really", "ethereum")
        assert not result.is_valid
        assert "Ethereum" in result.error
        assert "0x" in result.error

    def test_short_input_fails_on_length_and_names_format(self):
        result = validate_wallet_address("not-an-address", "ethereum")
        assert not result.is_valid
        assert result.error.startswith("Invalid address length")
        assert "Ethereum" in result.error
        assert "0x followed by 40 hex characters" in result.error

    @pytest.mark.parametrize("network", ["base", "bsc", "ETH", "Binance"])
    def test_evm_networks_share_ethereum_rules(self, network):
        assert validate_wallet_address(ETH_ADDRESS, network).is_valid
        assert not validate_wallet_address(SOL_ADDRESS, network).is_valid

    def test_null_address_is_rejected(self):
        result = validate_wallet_address("0x" + "0" * 40, "ethereum")
        assert not result.is_valid
        assert "null" in result.error

    def test_solana(self):
        assert validate_wallet_address(SOL_ADDRESS, "solana").is_valid
        assert not validate_wallet_address(ETH_ADDRESS, "solana").is_valid
        assert not validate_wallet_address("1" * 32, "solana").is_valid

    def test_solana_rejects_non_base58_characters(self):
        # 0, O, I and l are outside the base58 alphabet
        assert not validate_wallet_address("0OIl" + SOL_ADDRESS[4:], "solana").is_valid

    def test_sui_and_cardano(self):
        assert validate_wallet_address(SUI_ADDRESS, "sui").is_valid
        assert validate_wallet_address(SOL_ADDRESS, "sui").is_valid
        assert validate_wallet_address(SUI_ADDRESS, "cardano").is_valid
        assert validate_wallet_address("addr1" + "q" * 98, "cardano").is_valid
        assert not validate_wallet_address("addr1" + "q" * 98, "sui").is_valid

    def test_input_is_sanitized_before_checking(self):
        result = validate_wallet_address(f"  <{ETH_ADDRESS}>  ", "ethereum")
        assert result.is_valid
        assert result.address == ETH_ADDRESS

    def test_unknown_network(self):
        result = validate_wallet_address(ETH_ADDRESS, "dogecoin")
        assert not result.is_valid
        assert "Unsupported network" in result.error


class TestTransactionHashValidator:

    @pytest.mark.parametrize("network", ["ethereum", "base", "bsc"])
    def test_evm_hashes(self, network):
        assert validate_transaction_hash("0x" + "aB3" * 21 + "c", network)
        assert not validate_transaction_hash("a" * 64, network)
        assert not validate_transaction_hash("0x" + "a" * 63, network)

    def test_short_hash_is_rejected(self):
        assert not validate_transaction_hash("abc123", "ethereum")

    def test_solana_requires_exactly_88_base58(self):
        assert validate_transaction_hash("5" * 88, "solana")
        assert not validate_transaction_hash("5" * 87, "solana")
        assert not validate_transaction_hash("0" * 88, "solana")

    def test_sui_window(self):
        assert validate_transaction_hash("A" * 43, "sui")
        assert validate_transaction_hash("A" * 44, "sui")
        assert not validate_transaction_hash("A" * 45, "sui")

    def test_cardano_has_no_prefix(self):
        assert validate_transaction_hash("f" * 64, "cardano")
        assert not validate_transaction_hash("0x" + "f" * 64, "cardano")

    def test_unknown_network_and_empty_input(self):
        assert not validate_transaction_hash("0x" + "a" * 64, "tron")
        assert not validate_transaction_hash("", "ethereum")
        assert not validate_transaction_hash(None, "ethereum")


class TestExplorerUrls:

    def test_known_networks(self):
        assert explorer_url("ethereum", "0xabc") == "https://etherscan.io/tx/0xabc"
        assert explorer_url("base", "0xabc") == "https://basescan.org/tx/0xabc"
        assert explorer_url("bsc", "0xabc") == "https://bscscan.com/tx/0xabc"
        assert explorer_url("solana", "sig") == "https://solscan.io/tx/sig"
        assert explorer_url("sui", "dig") == "https://suiscan.xyz/mainnet/tx/dig"
        assert explorer_url("cardano", "ff") == "https://cardanoscan.io/transaction/ff"

    def test_names_are_case_insensitive_with_aliases(self):
        assert explorer_url("ETH", "0x1") == "https://etherscan.io/tx/0x1"
        assert explorer_url("Sol", "s") == "https://solscan.io/tx/s"
        assert normalize_network(" ADA ") == "cardano"

    def test_unknown_network_has_no_link(self):
        assert explorer_url("tron", "abc") is None
        assert normalize_network("tron") is None

    def test_currency_per_network(self):
        assert currency_for("cardano") == "USDM"
        assert currency_for("base") == "USDC"
