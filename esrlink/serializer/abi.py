"""
ABI driven binary encoder/decoder.

An Abi is built from the JSON ABI returned by ``/v1/chain/get_abi`` (or a
hand written definition with the same shape) and can encode, decode and
transform values of any type it declares.
"""
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from ..exceptions import SerializationError
from .types import BUILTIN_TYPES, ByteReader, ByteWriter

logger = logging.getLogger(__name__)

# Maximum typedef chain length before assuming a cycle
MAX_TYPEDEF_DEPTH = 32

Transform = Callable[[str, Any], Any]


class Abi:
    """
    A contract ABI.

    Type names may carry the suffixes ``[]`` (array), ``?`` (optional) and
    ``$`` (binary extension, only meaningful on trailing struct fields).
    Variant values are represented as ``[type_name, value]`` pairs.
    """

    def __init__(self, definition: Optional[Mapping[str, Any]] = None):
        definition = definition or {}
        self.definition = dict(definition)
        self.typedefs: Dict[str, str] = {
            t["new_type_name"]: t["type"] for t in definition.get("types", [])
        }
        self.structs: Dict[str, Mapping[str, Any]] = {
            s["name"]: s for s in definition.get("structs", [])
        }
        self.variants: Dict[str, List[str]] = {
            v["name"]: list(v["types"]) for v in definition.get("variants", [])
        }
        self.actions: Dict[str, str] = {
            a["name"]: a["type"] for a in definition.get("actions", [])
        }

    @classmethod
    def from_dict(cls, definition: Mapping[str, Any]) -> "Abi":
        if not isinstance(definition, Mapping):
            raise SerializationError(f"ABI definition must be a mapping, got {type(definition).__name__}")
        return cls(definition)

    def action_type(self, action_name: str) -> str:
        """
        Get the struct type for an action.

        Raises:
            SerializationError: If the ABI does not declare the action
        """
        try:
            return self.actions[action_name]
        except KeyError:
            raise SerializationError(f"Unknown action '{action_name}' in ABI")

    def resolve_type(self, type_name: str) -> str:
        """Follow typedefs until a builtin, struct, variant or suffixed type."""
        seen = 0
        while type_name in self.typedefs:
            type_name = self.typedefs[type_name]
            seen += 1
            if seen > MAX_TYPEDEF_DEPTH:
                raise SerializationError(f"Typedef cycle detected at '{type_name}'")
        return type_name

    def encode(self, type_name: str, value: Any) -> bytes:
        writer = ByteWriter()
        self.write(writer, type_name, value)
        return writer.getvalue()

    def decode(self, type_name: str, data: bytes, strict: bool = True) -> Any:
        """
        Decode ``data`` as ``type_name``.

        Args:
            type_name: Type to decode
            data: Serialized bytes
            strict: Require every byte to be consumed

        Raises:
            SerializationError: If the data does not match the type
        """
        reader = ByteReader(data)
        value = self.read(reader, type_name)
        if strict and reader.remaining:
            raise SerializationError(f"{reader.remaining} trailing bytes after '{type_name}'")
        return value

    def write(self, writer: ByteWriter, type_name: str, value: Any) -> None:
        if type_name.endswith("$"):
            if value is not None:
                self.write(writer, type_name[:-1], value)
            return
        if type_name.endswith("?"):
            if value is None:
                writer.pack("<B", 0)
            else:
                writer.pack("<B", 1)
                self.write(writer, type_name[:-1], value)
            return
        if type_name.endswith("[]"):
            if isinstance(value, (str, bytes, Mapping)) or not hasattr(value, "__iter__"):
                raise SerializationError(f"Expected a list for '{type_name}', got {type(value).__name__}")
            items = list(value)
            writer.write_varuint32(len(items))
            for item in items:
                self.write(writer, type_name[:-2], item)
            return

        resolved = self.resolve_type(type_name)
        if resolved != type_name:
            self.write(writer, resolved, value)
        elif resolved in BUILTIN_TYPES:
            if value is None:
                raise SerializationError(f"Missing value for '{type_name}'")
            BUILTIN_TYPES[resolved][0](writer, value)
        elif resolved in self.structs:
            self._write_struct(writer, resolved, value)
        elif resolved in self.variants:
            self._write_variant(writer, resolved, value)
        else:
            raise SerializationError(f"Unknown type '{type_name}'")

    def read(self, reader: ByteReader, type_name: str) -> Any:
        if type_name.endswith("$"):
            if not reader.remaining:
                return None
            return self.read(reader, type_name[:-1])
        if type_name.endswith("?"):
            present = reader.unpack("<B")
            return self.read(reader, type_name[:-1]) if present else None
        if type_name.endswith("[]"):
            count = reader.read_varuint32()
            return [self.read(reader, type_name[:-2]) for _ in range(count)]

        resolved = self.resolve_type(type_name)
        if resolved != type_name:
            return self.read(reader, resolved)
        if resolved in BUILTIN_TYPES:
            return BUILTIN_TYPES[resolved][1](reader)
        if resolved in self.structs:
            return self._read_struct(reader, resolved)
        if resolved in self.variants:
            return self._read_variant(reader, resolved)
        raise SerializationError(f"Unknown type '{type_name}'")

    def transform(self, type_name: str, value: Any, visit: Transform) -> Any:
        """
        Return a copy of ``value`` with ``visit(builtin_type, leaf)`` applied
        to every builtin leaf, guided by the declared types.
        """
        if value is None:
            return None
        if type_name.endswith("$") or type_name.endswith("?"):
            return self.transform(type_name[:-1], value, visit)
        if type_name.endswith("[]"):
            return [self.transform(type_name[:-2], item, visit) for item in value]

        resolved = self.resolve_type(type_name)
        if resolved != type_name:
            return self.transform(resolved, value, visit)
        if resolved in BUILTIN_TYPES:
            return visit(resolved, value)
        if resolved in self.structs:
            result = dict(value)
            for field in self._struct_fields(resolved):
                if field["name"] in result:
                    result[field["name"]] = self.transform(field["type"], result[field["name"]], visit)
            return result
        if resolved in self.variants:
            variant_type, inner = self._split_variant(resolved, value)
            return [variant_type, self.transform(variant_type, inner, visit)]
        raise SerializationError(f"Unknown type '{type_name}'")

    def _struct_fields(self, struct_name: str) -> List[Mapping[str, str]]:
        struct = self.structs[struct_name]
        fields: List[Mapping[str, str]] = []
        base = struct.get("base") or ""
        if base:
            resolved_base = self.resolve_type(base)
            if resolved_base not in self.structs:
                raise SerializationError(f"Base '{base}' of '{struct_name}' is not a struct")
            fields.extend(self._struct_fields(resolved_base))
        fields.extend(struct.get("fields", []))
        return fields

    def _write_struct(self, writer: ByteWriter, struct_name: str, value: Any) -> None:
        if not isinstance(value, Mapping):
            raise SerializationError(f"Expected a mapping for struct '{struct_name}', got {type(value).__name__}")
        fields = self._struct_fields(struct_name)
        for index, field in enumerate(fields):
            name, field_type = field["name"], field["type"]
            if field_type.endswith("$"):
                if value.get(name) is None:
                    # Extensions after a missing one cannot be encoded
                    for later in fields[index + 1:]:
                        if value.get(later["name"]) is not None:
                            raise SerializationError(
                                f"Binary extension '{later['name']}' set after missing '{name}'"
                            )
                    return
            elif name not in value and not field_type.endswith("?"):
                raise SerializationError(f"Missing field '{name}' in struct '{struct_name}'")
            try:
                self.write(writer, field_type, value.get(name))
            except SerializationError as e:
                raise SerializationError(f"{struct_name}.{name}: {e}") from e

    def _read_struct(self, reader: ByteReader, struct_name: str) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        for field in self._struct_fields(struct_name):
            name, field_type = field["name"], field["type"]
            if field_type.endswith("$") and not reader.remaining:
                continue
            try:
                result[name] = self.read(reader, field_type)
            except SerializationError as e:
                raise SerializationError(f"{struct_name}.{name}: {e}") from e
        return result

    def _split_variant(self, variant_name: str, value: Any):
        if not isinstance(value, (list, tuple)) or len(value) != 2:
            raise SerializationError(f"Variant '{variant_name}' value must be a [type, value] pair")
        variant_type, inner = value
        if variant_type not in self.variants[variant_name]:
            raise SerializationError(f"Type '{variant_type}' is not part of variant '{variant_name}'")
        return variant_type, inner

    def _write_variant(self, writer: ByteWriter, variant_name: str, value: Any) -> None:
        variant_type, inner = self._split_variant(variant_name, value)
        writer.write_varuint32(self.variants[variant_name].index(variant_type))
        self.write(writer, variant_type, inner)

    def _read_variant(self, reader: ByteReader, variant_name: str) -> List[Any]:
        index = reader.read_varuint32()
        types = self.variants[variant_name]
        if index >= len(types):
            raise SerializationError(f"Variant index {index} out of range for '{variant_name}'")
        return [types[index], self.read(reader, types[index])]
