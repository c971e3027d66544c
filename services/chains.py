"""Syntax checks for wallet addresses and transaction hashes, plus explorer links.

Nothing here talks to a chain: a valid result only means the string has the
right shape for the network.
"""

import re
import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

SUPPORTED_NETWORKS = ("ethereum", "base", "bsc", "solana", "sui", "cardano")

NETWORK_CURRENCY = {
    "ethereum": "USDC",
    "base": "USDC",
    "bsc": "USDC",
    "solana": "USDC",
    "sui": "USDC",
    "cardano": "USDM",
}

NETWORK_ALIASES = {
    "eth": "ethereum",
    "binance": "bsc",
    "sol": "solana",
    "ada": "cardano",
}

# Address rules are grouped by family; base/bsc share ethereum's, cardano borrows sui's
ADDRESS_FAMILY = {
    "ethereum": "ethereum",
    "base": "ethereum",
    "bsc": "ethereum",
    "solana": "solana",
    "sui": "sui",
    "cardano": "sui",
}

BASE58 = "1-9A-HJ-NP-Za-km-z"

ETH_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
SOLANA_ADDRESS_RE = re.compile(rf"^[{BASE58}]{{32,44}}$")
SUI_ADDRESS_RE = re.compile(rf"^(?:[{BASE58}]{{32,44}}|0x[0-9a-fA-F]{{64}})$")
CARDANO_ADDRESS_RE = re.compile(r"^addr1[a-z0-9]{98,}$")

NULL_ETH_ADDRESS = "0x" + "0" * 40
SOLANA_SYSTEM_PROGRAM_PREFIX = "1" * 32

TX_HASH_RULES = {
    "ethereum": re.compile(r"^0x[0-9a-fA-F]{64}$"),
    "base": re.compile(r"^0x[0-9a-fA-F]{64}$"),
    "bsc": re.compile(r"^0x[0-9a-fA-F]{64}$"),
    "solana": re.compile(rf"^[{BASE58}]{{88}}$"),
    "sui": re.compile(rf"^[{BASE58}]{{43,44}}$"),
    "cardano": re.compile(r"^[0-9a-fA-F]{64}$"),
}

EXPLORER_TX_URLS = {
    "ethereum": "https://etherscan.io/tx/{}",
    "base": "https://basescan.org/tx/{}",
    "bsc": "https://bscscan.com/tx/{}",
    "solana": "https://solscan.io/tx/{}",
    "sui": "https://suiscan.xyz/mainnet/tx/{}",
    "cardano": "https://cardanoscan.io/transaction/{}",
}


@dataclass
class WalletValidationResult:
    is_valid: bool
    address: Optional[str] = None
    error: Optional[str] = None


def normalize_network(network: str) -> Optional[str]:
    """Lower-cases and resolves aliases; None when the network is not supported."""
    if not network:
        return None
    name = network.strip().lower()
    name = NETWORK_ALIASES.get(name, name)
    return name if name in SUPPORTED_NETWORKS else None


def sanitize_string(value: str) -> str:
    value = value.strip()
    value = re.sub(r"[<>]", "", value)
    value = re.sub(r"javascript:", "", value, flags=re.IGNORECASE)
    return re.sub(r"on\w+=", "", value, flags=re.IGNORECASE)


FORMAT_ERRORS = {
    "ethereum": "Invalid Ethereum address format: expected 0x followed by 40 hex characters",
    "solana": "Invalid Solana address format: expected 32-44 base58 characters",
    "sui": "Invalid Sui address format: expected 32-44 base58 characters or 0x followed by 64 hex characters",
    "cardano": "Invalid Cardano address format: expected an addr1 address, 32-44 base58 characters "
               "or 0x followed by 64 hex characters",
}


def validate_wallet_address(address: str, network: str) -> WalletValidationResult:
    network_name = normalize_network(network)
    if network_name is None:
        return WalletValidationResult(False, error=f"Unsupported network: {network}")

    family = ADDRESS_FAMILY[network_name]
    format_error = FORMAT_ERRORS["cardano" if network_name == "cardano" else family]

    clean = sanitize_string(address or "")
    if len(clean) < 26:
        return WalletValidationResult(False, error=f"Invalid address length. {format_error}")

    if family == "ethereum":
        if not ETH_ADDRESS_RE.match(clean):
            return WalletValidationResult(False, error=format_error)
        if clean.lower() == NULL_ETH_ADDRESS:
            return WalletValidationResult(False, error="Cannot use null address")
        return WalletValidationResult(True, address=clean)

    if family == "solana":
        if not SOLANA_ADDRESS_RE.match(clean):
            return WalletValidationResult(False, error=format_error)
        if clean.startswith(SOLANA_SYSTEM_PROGRAM_PREFIX):
            return WalletValidationResult(False, error="Cannot use system program address")
        return WalletValidationResult(True, address=clean)

    # sui family (sui, cardano)
    if SUI_ADDRESS_RE.match(clean):
        return WalletValidationResult(True, address=clean)
    if network_name == "cardano" and CARDANO_ADDRESS_RE.match(clean):
        return WalletValidationResult(True, address=clean)
    return WalletValidationResult(False, error=format_error)


def validate_transaction_hash(tx_hash: str, network: str) -> bool:
    if not tx_hash or not isinstance(tx_hash, str):
        return False
    rule = TX_HASH_RULES.get(normalize_network(network))
    if rule is None:
        return False
    return bool(rule.match(tx_hash))


def explorer_url(network: str, tx_hash: str) -> Optional[str]:
    template = EXPLORER_TX_URLS.get(normalize_network(network))
    if template is None:
        logger.warning(f"No explorer configured for network '{network}'")
        return None
    return template.format(tx_hash)


def currency_for(network: str) -> str:
    return NETWORK_CURRENCY.get(normalize_network(network), "USDC")
