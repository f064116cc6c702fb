"""
Signing request protocol constants and ABI definitions.
"""
from typing import Any, Dict

from ..serializer import Abi

SUPPORTED_VERSIONS = (2, 3)
DEFAULT_VERSION = 2
DEFAULT_SCHEME = "esr"
ACCEPTED_SCHEMES = ("esr", "web+esr")

# Header bit set when the request body is raw deflate compressed
COMPRESSED_FLAG = 1 << 7

FLAG_BROADCAST = 1 << 0
FLAG_BACKGROUND = 1 << 1

# Names replaced with the signer's actor and permission during resolution
PLACEHOLDER_NAME = "............1"
PLACEHOLDER_PERMISSION = "............2"
PLACEHOLDER_AUTH = {"actor": PLACEHOLDER_NAME, "permission": PLACEHOLDER_PERMISSION}

IDENTITY_ACTION = "identity"

CHAIN_ALIASES: Dict[int, str] = {
    1: "aca376f206b8fc25a6ed44dbdc66547c36c6c33e3a119ffbeaef943642f0e906",  # EOS
    2: "4667b205c6838ef70ff7988f6e8257e8be0e1284a2f59699054a018f743b1d11",  # TELOS
    3: "e70aaab8997e1dfce58fbfac80cbbb8fecec7b99cf982a9444273cbc64c41473",  # JUNGLE
    4: "5fff1dae8dc8e2fc4d5b23b2c7665c97f9e9d8edf2b6485a86ba311c25639191",  # KYLIN
    5: "73647cde120091e0a4b85bced2f3cfdb3041e266cbbe95cee59b73235a1b3b6f",  # WORBLI
    6: "d5a3d18fbb3c084e3b1f3fa98c21014b5f3db536cc15d08f9f6479517c6a3d86",  # BOS
    7: "cfe6486a83bad4962f232d48003b1824ab5665c36778141034d75e57b956e422",  # MEETONE
    8: "b042025541e25a472bffde2d62edd457b7e70cee943412b1ea0f044f88591664",  # INSIGHTS
    9: "b912d19a6abd2b1b05611ae5be473355d64d95aeff0c09bedc8c166cd6468fe4",  # BEOS
    10: "1064487b3cd1a897ce03ae5b6a865651747e2e152090f99c1d19d44e01aea5a4",  # WAX
    11: "384da888112027f0321850a169f737c33e53b388aad48b5adace4bab97f437e0",  # PROTON
    12: "21dcae42c0182200e93f954a074011f9048a7624c6fe81d3c9541a614a88bd1c",  # FIO
}

_TRANSACTION_TYPES = [
    {"new_type_name": "account_name", "type": "name"},
    {"new_type_name": "action_name", "type": "name"},
    {"new_type_name": "permission_name", "type": "name"},
    {"new_type_name": "chain_alias", "type": "uint8"},
    {"new_type_name": "chain_id", "type": "checksum256"},
    {"new_type_name": "request_flags", "type": "uint8"},
]

_TRANSACTION_STRUCTS = [
    {
        "name": "permission_level", "base": "",
        "fields": [
            {"name": "actor", "type": "account_name"},
            {"name": "permission", "type": "permission_name"},
        ],
    },
    {
        "name": "action", "base": "",
        "fields": [
            {"name": "account", "type": "account_name"},
            {"name": "name", "type": "action_name"},
            {"name": "authorization", "type": "permission_level[]"},
            {"name": "data", "type": "bytes"},
        ],
    },
    {
        "name": "extension", "base": "",
        "fields": [
            {"name": "type", "type": "uint16"},
            {"name": "data", "type": "bytes"},
        ],
    },
    {
        "name": "transaction_header", "base": "",
        "fields": [
            {"name": "expiration", "type": "time_point_sec"},
            {"name": "ref_block_num", "type": "uint16"},
            {"name": "ref_block_prefix", "type": "uint32"},
            {"name": "max_net_usage_words", "type": "varuint32"},
            {"name": "max_cpu_usage_ms", "type": "uint8"},
            {"name": "delay_sec", "type": "varuint32"},
        ],
    },
    {
        "name": "transaction", "base": "transaction_header",
        "fields": [
            {"name": "context_free_actions", "type": "action[]"},
            {"name": "actions", "type": "action[]"},
            {"name": "transaction_extensions", "type": "extension[]"},
        ],
    },
    {
        "name": "info_pair", "base": "",
        "fields": [
            {"name": "key", "type": "string"},
            {"name": "value", "type": "bytes"},
        ],
    },
    {
        "name": "signing_request", "base": "",
        "fields": [
            {"name": "chain_id", "type": "variant_id"},
            {"name": "req", "type": "variant_req"},
            {"name": "flags", "type": "request_flags"},
            {"name": "callback", "type": "string"},
            {"name": "info", "type": "info_pair[]"},
        ],
    },
    {
        "name": "request_signature", "base": "",
        "fields": [
            {"name": "signer", "type": "name"},
            {"name": "signature", "type": "signature"},
        ],
    },
]

_VARIANTS = [
    {"name": "variant_id", "types": ["chain_alias", "chain_id"]},
    {"name": "variant_req", "types": ["action", "action[]", "transaction", "identity"]},
]

_IDENTITY_V2 = {
    "name": "identity", "base": "",
    "fields": [
        {"name": "permission", "type": "permission_level?"},
    ],
}

_IDENTITY_V3 = {
    "name": "identity", "base": "",
    "fields": [
        {"name": "scope", "type": "name"},
        {"name": "permission", "type": "permission_level?"},
    ],
}


def _request_abi(identity_struct: Dict[str, Any]) -> Abi:
    return Abi.from_dict({
        "version": "eosio::abi/1.1",
        "types": _TRANSACTION_TYPES,
        "structs": _TRANSACTION_STRUCTS + [identity_struct],
        "variants": _VARIANTS,
        "actions": [{"name": IDENTITY_ACTION, "type": "identity"}],
    })


REQUEST_ABIS: Dict[int, Abi] = {
    2: _request_abi(_IDENTITY_V2),
    3: _request_abi(_IDENTITY_V3),
}


def request_abi(version: int) -> Abi:
    return REQUEST_ABIS[version]
