"""
Signing request encoding, decoding and resolution.
"""
import copy
import hashlib
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from ..exceptions import AbiFetchError, ChainQueryError, DecodeError, SerializationError
from ..identity.keys import Signature
from ..models import Callback
from ..serializer import Abi, ByteReader, ByteWriter, NULL_TIME, format_time_point_sec, parse_time
from .codec import Codec, DEFAULT_CODEC
from .protocol import (
    ACCEPTED_SCHEMES, CHAIN_ALIASES, COMPRESSED_FLAG, DEFAULT_SCHEME, DEFAULT_VERSION,
    FLAG_BACKGROUND, FLAG_BROADCAST, IDENTITY_ACTION, PLACEHOLDER_AUTH, PLACEHOLDER_NAME,
    PLACEHOLDER_PERMISSION, SUPPORTED_VERSIONS, request_abi
)

logger = logging.getLogger(__name__)

DEFAULT_EXPIRE_SECONDS = 60


def signing_digest(chain_id: str, serialized_transaction: bytes,
                   context_free_data: Optional[bytes] = None) -> bytes:
    """
    Compute the digest a transaction signature commits to.

    Args:
        chain_id: Hex chain id
        serialized_transaction: Packed transaction bytes
        context_free_data: Packed context free data, if any

    Returns:
        sha256(chain_id || transaction || sha256(cfd) or 32 zero bytes)
    """
    cfd_hash = hashlib.sha256(context_free_data).digest() if context_free_data else bytes(32)
    return hashlib.sha256(bytes.fromhex(chain_id) + serialized_transaction + cfd_hash).digest()


def _is_identity_action(action: Mapping[str, Any]) -> bool:
    return action.get("account", "") == "" and action.get("name") == IDENTITY_ACTION


def _empty_header() -> Dict[str, Any]:
    return {
        "expiration": NULL_TIME,
        "ref_block_num": 0,
        "ref_block_prefix": 0,
        "max_net_usage_words": 0,
        "max_cpu_usage_ms": 0,
        "delay_sec": 0,
    }


def _has_empty_tapos(transaction: Mapping[str, Any]) -> bool:
    return (
        format_time_point_sec(parse_time(transaction["expiration"])) == NULL_TIME
        and int(transaction["ref_block_num"]) == 0
        and int(transaction["ref_block_prefix"]) == 0
    )


class SigningRequest:
    """
    A decoded signing request.

    ``data`` holds the ``signing_request`` struct in its decoded form:
    ``chain_id`` and ``req`` are ``[type, value]`` variant pairs and action
    data is a hex string. Instances are treated as immutable.
    """

    def __init__(
        self,
        version: int,
        data: Mapping[str, Any],
        signature: Optional[Mapping[str, str]] = None,
        codec: Codec = DEFAULT_CODEC,
        scheme: str = DEFAULT_SCHEME
    ):
        if version not in SUPPORTED_VERSIONS:
            raise DecodeError(f"Unsupported protocol version: {version}")
        self.version = version
        self.data = copy.deepcopy(dict(data))
        self.signature = dict(signature) if signature else None
        self.codec = codec
        self.scheme = scheme

    @property
    def abi(self) -> Abi:
        return request_abi(self.version)

    # Construction

    @classmethod
    def from_uri(cls, uri: str, codec: Codec = DEFAULT_CODEC) -> "SigningRequest":
        """
        Decode a signing request URI.

        Args:
            uri: ``esr:<payload>``, ``esr://<payload>`` or ``web+esr:`` form
            codec: Compression and text codec

        Returns:
            Decoded SigningRequest

        Raises:
            DecodeError: If the URI is malformed, uses an unknown scheme or
                an unsupported protocol version
        """
        if not isinstance(uri, str):
            raise DecodeError(f"Request URI must be a string, got {type(uri).__name__}")
        scheme, sep, path = uri.strip().partition(":")
        if not sep or scheme not in ACCEPTED_SCHEMES:
            raise DecodeError(f"Invalid signing request scheme: {scheme!r}")
        if path.startswith("//"):
            path = path[2:]
        if not path:
            raise DecodeError("Signing request URI has no payload")
        return cls.from_data(codec.from_base64u(path), codec=codec, scheme=DEFAULT_SCHEME)

    @classmethod
    def from_data(cls, data: bytes, codec: Codec = DEFAULT_CODEC,
                  scheme: str = DEFAULT_SCHEME) -> "SigningRequest":
        """Decode the binary form (header byte followed by the request body)."""
        if not data:
            raise DecodeError("Signing request data is empty")
        header = data[0]
        version = header & ~COMPRESSED_FLAG
        if version not in SUPPORTED_VERSIONS:
            raise DecodeError(f"Unsupported protocol version: {version}")
        body = data[1:]
        if header & COMPRESSED_FLAG:
            body = codec.decompress(body)

        abi = request_abi(version)
        reader = ByteReader(body)
        try:
            request_data = abi.read(reader, "signing_request")
            signature = abi.read(reader, "request_signature") if reader.remaining else None
        except SerializationError as e:
            raise DecodeError(f"Malformed signing request: {e}") from e
        if reader.remaining:
            raise DecodeError(f"{reader.remaining} trailing bytes in signing request")
        return cls(version, request_data, signature=signature, codec=codec, scheme=scheme)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], version: int = DEFAULT_VERSION,
                     codec: Codec = DEFAULT_CODEC) -> "SigningRequest":
        """
        Build a request from a mapping of ``signing_request`` fields.

        The mapping is normalized by packing and unpacking it, so the result
        compares equal to the same request decoded from a URI.
        """
        payload = dict(payload)
        version = int(payload.pop("version", version))
        signature = payload.pop("signature", None)
        if version not in SUPPORTED_VERSIONS:
            raise DecodeError(f"Unsupported protocol version: {version}")
        payload.setdefault("flags", FLAG_BROADCAST)
        payload.setdefault("callback", "")
        payload.setdefault("info", [])
        abi = request_abi(version)
        try:
            normalized = abi.decode("signing_request", abi.encode("signing_request", payload))
            if signature is not None:
                signature = abi.decode("request_signature", abi.encode("request_signature", signature))
        except SerializationError as e:
            raise DecodeError(f"Invalid signing request payload: {e}") from e
        return cls(version, normalized, signature=signature, codec=codec)

    @classmethod
    def create(
        cls,
        *,
        actions: Optional[Sequence[Mapping[str, Any]]] = None,
        transaction: Optional[Mapping[str, Any]] = None,
        identity: Optional[Mapping[str, Any]] = None,
        chain_id: Union[int, str] = 1,
        callback: str = "",
        broadcast: bool = True,
        background: bool = False,
        info: Optional[Mapping[str, Union[str, bytes]]] = None,
        abis: Optional[Mapping[str, Abi]] = None,
        version: int = DEFAULT_VERSION,
        codec: Codec = DEFAULT_CODEC
    ) -> "SigningRequest":
        """
        Create a request from actions, a transaction or an identity.

        Action ``data`` given as a mapping is packed with the contract ABI
        from ``abis``; hex strings and bytes are used as is.

        Args:
            actions: One or more actions
            transaction: Full transaction (header fields optional)
            identity: Identity request fields (``permission``, ``scope`` for v3)
            chain_id: Chain alias number or 64 character hex chain id
            callback: Callback URL template
            broadcast: Whether the signer should broadcast the transaction
            background: Whether the callback is delivered in the background
            info: Extra metadata, string values are utf-8 encoded
            abis: Contract ABIs keyed by account
            version: Protocol version

        Raises:
            DecodeError: If the inputs cannot be packed
        """
        abis = abis or {}
        if sum(x is not None for x in (actions, transaction, identity)) != 1:
            raise ValueError("Exactly one of actions, transaction or identity is required")

        if identity is not None:
            req: List[Any] = ["identity", dict(identity)]
        elif transaction is not None:
            tx = {**_empty_header(), "context_free_actions": [], "transaction_extensions": []}
            tx.update(transaction)
            tx["actions"] = [cls._pack_action(a, abis) for a in transaction.get("actions", [])]
            req = ["transaction", tx]
        else:
            packed = [cls._pack_action(a, abis) for a in actions]
            req = ["action", packed[0]] if len(packed) == 1 else ["action[]", packed]

        flags = (FLAG_BROADCAST if broadcast else 0) | (FLAG_BACKGROUND if background else 0)
        info_pairs = [
            {"key": key, "value": value.encode("utf-8").hex() if isinstance(value, str) else bytes(value).hex()}
            for key, value in (info or {}).items()
        ]
        payload = {
            "chain_id": cls._chain_variant(chain_id),
            "req": req,
            "flags": flags,
            "callback": callback,
            "info": info_pairs,
        }
        return cls.from_payload(payload, version=version, codec=codec)

    @staticmethod
    def _pack_action(action: Mapping[str, Any], abis: Mapping[str, Abi]) -> Dict[str, Any]:
        packed = dict(action)
        data = action.get("data", "")
        if isinstance(data, Mapping):
            abi = abis.get(action["account"])
            if abi is None:
                raise DecodeError(f"No ABI available to pack action data for '{action['account']}'")
            try:
                data = abi.encode(abi.action_type(action["name"]), data)
            except SerializationError as e:
                raise DecodeError(f"Cannot pack data for {action['account']}::{action['name']}: {e}") from e
        packed["data"] = data.hex() if isinstance(data, (bytes, bytearray)) else data
        packed.setdefault("authorization", [PLACEHOLDER_AUTH])
        return packed

    @staticmethod
    def _chain_variant(chain_id: Union[int, str]) -> List[Any]:
        if isinstance(chain_id, int):
            if chain_id not in CHAIN_ALIASES:
                raise DecodeError(f"Unknown chain alias: {chain_id}")
            return ["chain_alias", chain_id]
        for alias, known in CHAIN_ALIASES.items():
            if known == chain_id.lower():
                return ["chain_alias", alias]
        return ["chain_id", chain_id.lower()]

    # Encoding

    def get_data(self) -> bytes:
        """Packed request body, followed by the request signature if present."""
        writer = ByteWriter()
        try:
            self.abi.write(writer, "signing_request", self.data)
            if self.signature:
                self.abi.write(writer, "request_signature", self.signature)
        except SerializationError as e:
            raise DecodeError(f"Cannot encode signing request: {e}") from e
        return writer.getvalue()

    def encode(self, compress: bool = True, slashes: bool = True) -> str:
        """
        Encode the request as a URI.

        Compression is only applied when it makes the body smaller.
        """
        body = self.get_data()
        header = self.version
        if compress:
            compressed = self.codec.compress(body)
            if len(compressed) < len(body):
                header |= COMPRESSED_FLAG
                body = compressed
        encoded = self.codec.to_base64u(bytes([header]) + body)
        return f"{self.scheme}:{'//' if slashes else ''}{encoded}"

    def __str__(self) -> str:
        return self.encode()

    def __repr__(self) -> str:
        return f"SigningRequest(version={self.version}, req={self.data['req'][0]!r})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, SigningRequest):
            return NotImplemented
        return (
            self.version == other.version
            and self.data == other.data
            and self.signature == other.signature
        )

    # Accessors

    @property
    def chain_id(self) -> str:
        kind, value = self.data["chain_id"]
        if kind == "chain_alias":
            try:
                return CHAIN_ALIASES[value]
            except KeyError:
                raise DecodeError(f"Unknown chain alias: {value}")
        return value

    @property
    def callback(self) -> str:
        return self.data.get("callback", "")

    @property
    def flags(self) -> int:
        return int(self.data.get("flags", 0))

    @property
    def broadcast(self) -> bool:
        return bool(self.flags & FLAG_BROADCAST)

    @property
    def background(self) -> bool:
        return bool(self.flags & FLAG_BACKGROUND)

    @property
    def is_identity(self) -> bool:
        return self.data["req"][0] == "identity"

    @property
    def info(self) -> Dict[str, bytes]:
        return {pair["key"]: bytes.fromhex(pair["value"]) for pair in self.data.get("info", [])}

    def get_raw_actions(self) -> List[Dict[str, Any]]:
        """Actions of the request with placeholders still in place."""
        kind, value = self.data["req"]
        if kind == "action":
            return [dict(value)]
        if kind == "action[]":
            return [dict(a) for a in value]
        if kind == "transaction":
            return [dict(a) for a in value["actions"]]

        permission = value.get("permission") or PLACEHOLDER_AUTH
        identity = {"permission": permission}
        if self.version >= 3:
            identity["scope"] = value["scope"]
        return [{
            "account": "",
            "name": IDENTITY_ACTION,
            "authorization": [permission],
            "data": self.abi.encode("identity", identity).hex(),
        }]

    def get_raw_transaction(self) -> Dict[str, Any]:
        kind, value = self.data["req"]
        if kind == "transaction":
            return copy.deepcopy(dict(value))
        return {
            **_empty_header(),
            "context_free_actions": [],
            "actions": self.get_raw_actions(),
            "transaction_extensions": [],
        }

    def get_required_abis(self) -> List[str]:
        """Distinct contract accounts whose ABIs are needed, in action order."""
        accounts: List[str] = []
        for action in self.get_raw_actions():
            if not _is_identity_action(action) and action["account"] not in accounts:
                accounts.append(action["account"])
        return accounts

    # Resolution

    def resolve_actions(self, abis: Mapping[str, Abi], signer: Mapping[str, str]) -> List[Dict[str, Any]]:
        """
        Replace placeholder names in authorizations and action data.

        Raises:
            AbiFetchError: If an ABI needed for an action is missing
            DecodeError: If action data does not match its ABI
        """
        actor, permission = signer["actor"], signer["permission"]

        def replace(type_name: str, value: Any) -> Any:
            if type_name == "name":
                if value == PLACEHOLDER_NAME:
                    return actor
                if value == PLACEHOLDER_PERMISSION:
                    return permission
            return value

        resolved = []
        for action in self.get_raw_actions():
            if _is_identity_action(action):
                abi, type_name = self.abi, "identity"
            else:
                abi = abis.get(action["account"])
                if abi is None:
                    raise AbiFetchError(f"Missing ABI definition for '{action['account']}'")
                type_name = abi.action_type(action["name"])
            try:
                data = abi.decode(type_name, bytes.fromhex(action["data"]))
                data = abi.transform(type_name, data, replace)
                packed = abi.encode(type_name, data)
            except SerializationError as e:
                raise DecodeError(f"Invalid data for {action['account']}::{action['name']}: {e}") from e

            authorization = []
            for auth in action["authorization"]:
                auth_actor = actor if auth["actor"] == PLACEHOLDER_NAME else auth["actor"]
                auth_permission = auth["permission"]
                if auth_permission in (PLACEHOLDER_NAME, PLACEHOLDER_PERMISSION):
                    auth_permission = permission
                authorization.append({"actor": auth_actor, "permission": auth_permission})

            resolved.append({
                "account": action["account"],
                "name": action["name"],
                "authorization": authorization,
                "data": packed.hex(),
            })
        return resolved

    def resolve_transaction(
        self,
        abis: Mapping[str, Abi],
        signer: Mapping[str, str],
        context: Optional[Mapping[str, Any]] = None,
        expire_seconds: int = DEFAULT_EXPIRE_SECONDS
    ) -> Dict[str, Any]:
        """
        Build the concrete transaction for ``signer``.

        An all-zero TAPOS header is filled from ``context``: either explicit
        ``expiration``/``ref_block_num``/``ref_block_prefix`` values or a
        reference block (``block_num``, ``timestamp``, ``ref_block_prefix``).

        Raises:
            ChainQueryError: If the header is empty and the context cannot fill it
        """
        context = context or {}
        transaction = self.get_raw_transaction()
        if not self.is_identity and _has_empty_tapos(transaction):
            if all(context.get(k) is not None for k in ("expiration", "ref_block_num", "ref_block_prefix")):
                transaction["expiration"] = context["expiration"]
                transaction["ref_block_num"] = int(context["ref_block_num"])
                transaction["ref_block_prefix"] = int(context["ref_block_prefix"])
            elif all(context.get(k) is not None for k in ("block_num", "ref_block_prefix", "timestamp")):
                expiration = parse_time(context["timestamp"]) + timedelta(seconds=expire_seconds)
                transaction["expiration"] = format_time_point_sec(expiration)
                transaction["ref_block_num"] = int(context["block_num"]) & 0xFFFF
                transaction["ref_block_prefix"] = int(context["ref_block_prefix"])
            else:
                raise ChainQueryError(
                    "Invalid transaction context, need either a reference block or explicit TAPOS values"
                )
        transaction["actions"] = self.resolve_actions(abis, signer)
        return transaction

    def resolve(
        self,
        abis: Mapping[str, Abi],
        signer: Mapping[str, str],
        context: Optional[Mapping[str, Any]] = None,
        expire_seconds: int = DEFAULT_EXPIRE_SECONDS
    ) -> "ResolvedSigningRequest":
        transaction = self.resolve_transaction(abis, signer, context, expire_seconds)
        try:
            serialized = self.abi.encode("transaction", transaction)
        except SerializationError as e:
            raise DecodeError(f"Cannot serialize resolved transaction: {e}") from e
        transaction["expiration"] = format_time_point_sec(parse_time(transaction["expiration"]))
        return ResolvedSigningRequest(
            request=self,
            signer={"actor": signer["actor"], "permission": signer["permission"]},
            transaction=transaction,
            serialized_transaction=serialized,
        )


@dataclass(frozen=True)
class ResolvedSigningRequest:
    """A request bound to a signer and a reference block."""
    request: SigningRequest
    signer: Dict[str, str]
    transaction: Dict[str, Any] = field(repr=False)
    serialized_transaction: bytes = field(repr=False)

    @property
    def chain_id(self) -> str:
        return self.request.chain_id

    @property
    def transaction_id(self) -> str:
        return hashlib.sha256(self.serialized_transaction).hexdigest()

    @property
    def signing_digest(self) -> bytes:
        return signing_digest(self.chain_id, self.serialized_transaction)

    def get_callback(self, signatures: Iterable[Union[Signature, str]],
                     block_num: Optional[int] = None) -> Callback:
        """
        Build the callback for the first callback descriptor of the request.

        The URL is returned as a template; placeholder substitution is left
        to the dispatcher.

        Args:
            signatures: Signatures over the resolved transaction
            block_num: Block the transaction was included in, if broadcast

        Raises:
            ValueError: If no signatures are given
        """
        signatures = [str(s) for s in signatures]
        if not signatures:
            raise ValueError("Must have at least one signature to build a callback")
        payload = {
            "sig": signatures[0],
            "tx": self.transaction_id,
            "rbn": str(self.transaction["ref_block_num"]),
            "rid": str(self.transaction["ref_block_prefix"]),
            "ex": self.transaction["expiration"],
            "req": self.request.encode(),
            "sa": self.signer["actor"],
            "sp": self.signer["permission"],
        }
        for index, signature in enumerate(signatures[1:]):
            payload[f"sig{index}"] = signature
        if block_num is not None:
            payload["bn"] = str(block_num)
        return Callback(url=self.request.callback, payload=payload, background=self.request.background)
