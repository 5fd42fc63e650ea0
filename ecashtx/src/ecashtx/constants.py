"""
eCash and token protocol constants.

Fee constants describe the static linear model used during coin selection:
- fee(n) = n * PER_INPUT_FEE + BASE_FEE for plain XEC sends
- fee(n) = n * PER_INPUT_FEE + TOKEN_BASE_FEE for token sends

These are estimates used to size the selection. The signer computes the
real fee from the serialized size and FEE_PER_KB.
"""

from __future__ import annotations

# Minimum value (sats) for an output to be relayed
DUST_LIMIT = 546

# Linear selection fee model (sats)
PER_INPUT_FEE = 150
BASE_FEE = 250
TOKEN_BASE_FEE = 50

# Extra sats requested from the fee selector on top of the dust outputs of a
# token send when a non-"all" fee strategy is used
FEE_RESERVE = 500

# Relay fee rate used by the signer (sats per 1000 bytes)
FEE_PER_KB = 1000

# 1 XEC = 100 sats
SATS_PER_XEC = 100

# BIP44 coin type 1899 (eCash), external chain
DEFAULT_DERIVATION_PATH = "m/44'/1899'/0'/0"
DEFAULT_ADDRESS_PREFIX = "ecash"

EXPLORER_TX_URL = "https://explorer.e.cash/tx/"

# SLP v1 (Type-A)
SLP_LOKAD_ID = b"SLP\x00"
SLP_FUNGIBLE = 1
SLP_MAX_SEND_OUTPUTS = 19
SLP_MAX_ATOMS = 2**64 - 1

# ALP (Type-B), carried in an eMPP OP_RETURN
ALP_LOKAD_ID = b"SLP2"
ALP_STANDARD = 0
ALP_MAX_SEND_OUTPUTS = 127
ALP_MAX_ATOMS = 2**48 - 1
