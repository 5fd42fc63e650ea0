"""
eCash wallet service: deterministic spending identities from a mnemonic.
"""

from __future__ import annotations

from loguru import logger

from ecashtx.constants import DEFAULT_ADDRESS_PREFIX, DEFAULT_DERIVATION_PATH
from ecashtx.models import SpendingIdentity
from ecashtx.script import p2pkh_script
from ecashtx.wallet.address import hash160, pubkey_to_address
from ecashtx.wallet.bip32 import HDKey, mnemonic_to_seed


def validate_mnemonic(mnemonic: str | None) -> bool:
    """Check the word count of a mnemonic (12, 15, 18, 21 or 24 words)."""
    if not mnemonic or not isinstance(mnemonic, str):
        return False
    return len(mnemonic.split()) in (12, 15, 18, 21, 24)


class WalletService:
    """
    Single-account eCash wallet.

    Derivation path: {derivation_path}/{index}
    - default derivation_path: m/44'/1899'/0'/0 (BIP44, external chain)
    - index: address index selected by the caller

    The same (mnemonic, index) pair always yields the same identity.
    """

    def __init__(
        self,
        mnemonic: str,
        prefix: str = DEFAULT_ADDRESS_PREFIX,
        derivation_path: str = DEFAULT_DERIVATION_PATH,
        passphrase: str = "",
    ):
        if not validate_mnemonic(mnemonic):
            raise ValueError("Mnemonic must have 12, 15, 18, 21 or 24 words")

        self.prefix = prefix
        self.derivation_path = derivation_path.rstrip("/")

        seed = mnemonic_to_seed(" ".join(mnemonic.split()), passphrase)
        self.master_key = HDKey.from_seed(seed)

        self._identity_cache: dict[int, SpendingIdentity] = {}

    def derive_identity(self, index: int = 0) -> SpendingIdentity:
        """Derive keys, P2PKH script and address for an address index"""
        if index < 0 or index >= 0x80000000:
            raise ValueError(f"Invalid address index: {index}")

        cached = self._identity_cache.get(index)
        if cached is not None:
            return cached

        path = f"{self.derivation_path}/{index}"
        key = self.master_key.derive(path)
        public_key = key.get_public_key_bytes(compressed=True)

        identity = SpendingIdentity(
            private_key=key.get_private_key_bytes(),
            public_key=public_key,
            script=p2pkh_script(hash160(public_key)),
            address=pubkey_to_address(public_key, self.prefix),
            index=index,
            path=path,
        )
        self._identity_cache[index] = identity

        logger.debug(f"Derived address index {index}: {identity.address}")
        return identity

    def get_address(self, index: int = 0) -> str:
        return self.derive_identity(index).address
