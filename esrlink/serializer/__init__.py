"""
Binary serialization for EOSIO types.
"""
from .abi import Abi
from .types import (
    ByteReader, ByteWriter, BUILTIN_TYPES, NULL_TIME,
    name_to_int, int_to_name, parse_time, format_time_point_sec
)

__all__ = [
    'Abi',
    'ByteReader',
    'ByteWriter',
    'BUILTIN_TYPES',
    'NULL_TIME',
    'name_to_int',
    'int_to_name',
    'parse_time',
    'format_time_point_sec',
]
