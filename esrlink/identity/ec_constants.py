"""
Constants for elliptic curve cryptography.
"""

# Order of the SECP256K1 elliptic curve (N value)
SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

# Half order, signatures with a larger s value are normalized to N - s
SECP256K1_HALF_N = SECP256K1_N // 2

# Valid private key range is [1, N-1]
SECP256K1_MIN = 1
SECP256K1_MAX = SECP256K1_N - 1

# Key type prefixes in their binary order (public_key and signature variants)
KEY_TYPES = ("K1", "R1")

# WIF version byte for legacy private keys
WIF_VERSION = 0x80

# Upper bound on nonce retries when looking for a canonical signature
MAX_SIGN_ATTEMPTS = 64
