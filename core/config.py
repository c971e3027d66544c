import os
from decimal import Decimal
from dotenv import load_dotenv

load_dotenv()

# --- ESCROW / FEES ---
PLATFORM_FEE_RATE = Decimal(os.getenv("PLATFORM_FEE_RATE", "0.15"))
AUTO_RELEASE_DAYS = int(os.getenv("AUTO_RELEASE_DAYS", "3"))

# --- REFERRALS ---
REFERRAL_CREDIT_AMOUNT = Decimal(os.getenv("REFERRAL_CREDIT_AMOUNT", "1.00"))
MIN_CASHOUT_AMOUNT = Decimal(os.getenv("MIN_CASHOUT_AMOUNT", "10"))

# --- PAYMENT ATTEMPTS (per caller) ---
PAYMENT_RATE_LIMIT = int(os.getenv("PAYMENT_RATE_LIMIT", "3"))
PAYMENT_RATE_WINDOW_SECONDS = int(os.getenv("PAYMENT_RATE_WINDOW_SECONDS", "60"))

DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "UTC")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# Service price bounds (USDC)
MIN_SERVICE_PRICE = Decimal("1")
MAX_SERVICE_PRICE = Decimal("10000")

# Creator tiers: price in USDC and how many active services they allow (None = unlimited)
CREATOR_TIERS = {
    "basic": {"price": Decimal("0"), "max_services": 2},
    "premium": {"price": Decimal("25"), "max_services": 10},
    "enterprise": {"price": Decimal("50"), "max_services": None},
}

# Escrow wallets used until an admin replaces them
DEFAULT_PLATFORM_WALLETS = {
    "ethereum": ("Ethereum", "0x4DEe7D9fa0E3e232AF7EfDF809E1fA5AdF4af61B"),
    "base": ("Base", "0x4DEe7D9fa0E3e232AF7EfDF809E1fA5AdF4af61B"),
    "solana": ("Solana", "FeByoSMhWJpo4f6M333RvHAe7ssvDGkioGVJTNyN3ihg"),
    "bsc": ("BNB Smart Chain", "0x30D1Bbf45BEB26fA704114b3B876FD715D3ef505"),
    "sui": ("Sui", "0x7895d5b72e5df22e707149f31051e993ab304334191b84acbb14503134e4c95e"),
    "cardano": (
        "Cardano",
        "addr1q98rwvzkmzjw20zh6uzw4yvkzhhsnl9rtdf9xzdy6xn58ddphkx64axgy5x8argzpv6hzyker4g7nlxdll4fq8q3ajvsn24vy3",
    ),
}
