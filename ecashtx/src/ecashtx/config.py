"""
Configuration for ecashtx.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator

from ecashtx.constants import (
    BASE_FEE,
    DEFAULT_ADDRESS_PREFIX,
    DEFAULT_DERIVATION_PATH,
    DUST_LIMIT,
    FEE_PER_KB,
    FEE_RESERVE,
    PER_INPUT_FEE,
    TOKEN_BASE_FEE,
)
from ecashtx.models import TokenStrategy, UtxoStrategy


class FeeConfig(BaseModel):
    """Static fee model used by coin selection and the signer."""

    per_input_fee: int = Field(default=PER_INPUT_FEE, ge=0, description="Sats per selected input")
    base_fee: int = Field(default=BASE_FEE, ge=0, description="Fixed sats for XEC sends")
    token_base_fee: int = Field(
        default=TOKEN_BASE_FEE, ge=0, description="Fixed sats for token sends"
    )
    fee_reserve: int = Field(
        default=FEE_RESERVE, ge=0, description="Sats requested on top of token dust outputs"
    )
    dust_limit: int = Field(default=DUST_LIMIT, ge=0, description="Minimum relayable output")
    fee_per_kb: int = Field(default=FEE_PER_KB, ge=0, description="Signer fee rate (sats/kB)")

    model_config = {"frozen": True}

    def xec_fee(self, input_count: int) -> int:
        """Estimated fee of an XEC send spending ``input_count`` inputs."""
        return input_count * self.per_input_fee + self.base_fee

    def token_fee(self, input_count: int) -> int:
        """Estimated fee of a token send spending ``input_count`` inputs."""
        return input_count * self.per_input_fee + self.token_base_fee


class SendConfig(BaseModel):
    """Wallet and strategy settings for a send."""

    mnemonic: str
    address_prefix: str = DEFAULT_ADDRESS_PREFIX
    derivation_path: str = DEFAULT_DERIVATION_PATH
    address_index: int = Field(default=0, ge=0, lt=2**31)

    utxo_strategy: UtxoStrategy = UtxoStrategy.ALL
    fee_strategy: UtxoStrategy = UtxoStrategy.ALL
    token_strategy: TokenStrategy = TokenStrategy.ALL

    # Inventory snapshot file; also receives dry-run broadcasts
    snapshot_path: Path | None = None
    # Node JSON-RPC used for broadcasting, empty = dry-run
    rpc_url: str = ""
    rpc_user: str = ""
    rpc_password: str = ""

    fees: FeeConfig = Field(default_factory=FeeConfig)

    @field_validator("mnemonic")
    @classmethod
    def validate_mnemonic_words(cls, v: str) -> str:
        v = " ".join(v.split())
        if len(v.split(" ")) not in (12, 15, 18, 21, 24):
            raise ValueError("Mnemonic must have 12, 15, 18, 21 or 24 words")
        return v

    @model_validator(mode="after")
    def check_rpc_credentials(self) -> SendConfig:
        """RPC credentials without a URL are almost certainly a mistake."""
        if not self.rpc_url and (self.rpc_user or self.rpc_password):
            raise ValueError("rpc_user/rpc_password given without rpc_url")
        return self


def load_mnemonic(mnemonic: str | None, mnemonic_file: Path | None = None) -> str:
    """
    Load mnemonic from argument, file, or environment variable.

    Priority:
    1. mnemonic argument
    2. mnemonic_file argument
    3. MNEMONIC_FILE environment variable (path to mnemonic file)
    4. MNEMONIC environment variable

    Raises:
        ValueError: If no mnemonic source is available
    """
    if mnemonic:
        return mnemonic.strip()

    actual_mnemonic_file = mnemonic_file
    if not actual_mnemonic_file:
        env_mnemonic_file = os.environ.get("MNEMONIC_FILE")
        if env_mnemonic_file:
            actual_mnemonic_file = Path(env_mnemonic_file)

    if actual_mnemonic_file:
        if not actual_mnemonic_file.exists():
            raise ValueError(f"Mnemonic file not found: {actual_mnemonic_file}")
        return actual_mnemonic_file.read_text().strip()

    env_mnemonic = os.environ.get("MNEMONIC")
    if env_mnemonic:
        return env_mnemonic.strip()

    raise ValueError("Mnemonic required. Use --mnemonic, --mnemonic-file, MNEMONIC_FILE, or MNEMONIC")
