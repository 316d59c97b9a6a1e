"""Typed data hashing for eth_signTypedData V1, V3 and V4.

V1 is based on an early draft of EIP-712 that lacked later security
improvements: fields are hashed positionally, with no domain separator.

V3 is EIP-712 without arrays or recursive data structures.

V4 is EIP-712 with full support of arrays and recursive data structures.
"""

import logging
import re
from collections.abc import Iterable
from enum import Enum
from typing import Any, Optional, Union

from eth_abi import encode
from eth_abi.exceptions import EncodingError
from eth_abi.packed import encode_packed
from eth_utils import is_hexstr, keccak, to_bytes, to_canonical_address

from remote_signer.signing.base import (
    TypedDataError,
    UnsupportedVersion,
    VersionNotAllowed,
)

logger = logging.getLogger(__name__)

EIP712_DOMAIN = "EIP712Domain"
ZERO_WORD = b"\x00" * 32

_TYPE_NAME = re.compile(r"^\w*")


class TypedDataVersion(str, Enum):
    """Supported eth_signTypedData versions."""
    V1 = "V1"
    V3 = "V3"
    V4 = "V4"

    def __str__(self) -> str:
        return self.value


VersionLike = Union[TypedDataVersion, str]

SUPPORTED_VERSIONS = frozenset(v.value for v in TypedDataVersion)


def validate_version(
    version: VersionLike,
    allowed_versions: Optional[Iterable[VersionLike]] = None,
) -> TypedDataVersion:
    """Validate that the given value is a supported version.

    Args:
        version: Version to validate (exact match, case-sensitive)
        allowed_versions: Optional allow-list. If omitted, all versions are allowed.

    Returns:
        The version as a TypedDataVersion

    Raises:
        UnsupportedVersion: If version is not V1, V3 or V4
        VersionNotAllowed: If version is not in allowed_versions
    """
    if version not in SUPPORTED_VERSIONS:
        raise UnsupportedVersion(f"Invalid version: '{version}'")
    parsed = TypedDataVersion(version)

    if allowed_versions is not None:
        allowed = [validate_version(v) for v in allowed_versions]
        if parsed not in allowed:
            raise VersionNotAllowed(
                f"SignTypedDataVersion not allowed: '{parsed}'. "
                f"Allowed versions are: {', '.join(v.value for v in allowed)}"
            )

    return parsed


# ======================
# Value coercion
# ======================

def _is_integer_type(type_: str) -> bool:
    return type_.startswith("uint") or type_.startswith("int")


def _is_fixed_bytes_type(type_: str) -> bool:
    return type_.startswith("bytes") and type_ != "bytes"


def _number_to_bytes(value: int) -> bytes:
    return value.to_bytes(max(1, (value.bit_length() + 7) // 8), "big")


def _coerce_atomic(type_: str, value: Any) -> Any:
    """Bring JSON-style values into the form eth_abi expects."""
    if type_ == "address":
        return to_canonical_address(value)
    if _is_integer_type(type_):
        if isinstance(value, str):
            return int(value, 0)
        return int(value)
    if _is_fixed_bytes_type(type_) or type_ == "bytes":
        if isinstance(value, str):
            if value.startswith(("0x", "0X")) and is_hexstr(value):
                return to_bytes(hexstr=value)
            return value.encode("utf-8")
        if isinstance(value, int):
            return _number_to_bytes(value)
        return bytes(value)
    if type_ == "bool":
        return bool(value)
    return value


# ======================
# V1
# ======================

def typed_signature_hash(data: list[dict]) -> bytes:
    """Hash V1 typed data: a list of {"type", "name", "value"} entries.

    digest = keccak(keccak(schema) || keccak(values)), both sides packed.
    """
    if not isinstance(data, list) or not data:
        raise TypedDataError("Expect argument to be non-empty array")

    schema = []
    types = []
    values = []
    try:
        for entry in data:
            if not entry.get("name"):
                raise TypedDataError("Expect argument to be non-empty array")
            schema.append(f"{entry['type']} {entry['name']}")
            types.append(entry["type"])
            values.append(_coerce_atomic(entry["type"], entry.get("value")))

        schema_hash = keccak(encode_packed(["string"] * len(schema), schema))
        values_hash = keccak(encode_packed(types, values))
    except TypedDataError:
        raise
    except (EncodingError, TypeError, ValueError) as e:
        raise TypedDataError(f"Cannot encode V1 typed data: {e}") from e

    return keccak(schema_hash + values_hash)


# ======================
# V3 / V4 (EIP-712)
# ======================

def _require_eip712_version(version: VersionLike) -> TypedDataVersion:
    return validate_version(version, [TypedDataVersion.V3, TypedDataVersion.V4])


def find_type_dependencies(primary_type: str, types: dict, results: Optional[list] = None) -> list:
    """Collect primary_type and every struct type it references."""
    if results is None:
        results = []
    match = _TYPE_NAME.match(primary_type)
    primary_type = match.group(0) if match else primary_type
    if primary_type in results or primary_type not in types:
        return results

    results.append(primary_type)
    for field in types[primary_type]:
        find_type_dependencies(field["type"], types, results)
    return results


def encode_type(primary_type: str, types: dict) -> str:
    """Encode a type string, e.g. Mail(Person from,Person to,string contents)Person(...)."""
    deps = find_type_dependencies(primary_type, types)
    deps = [primary_type] + sorted(d for d in deps if d != primary_type)

    result = ""
    for type_ in deps:
        if type_ not in types:
            raise TypedDataError(f"No type definition specified: {type_}")
        fields = ",".join(f"{f['type']} {f['name']}" for f in types[type_])
        result += f"{type_}({fields})"
    return result


def hash_type(primary_type: str, types: dict) -> bytes:
    return keccak(text=encode_type(primary_type, types))


def _encode_field(types: dict, name: str, type_: str, value: Any, version: TypedDataVersion) -> tuple[str, Any]:
    if type_ in types:
        if version is TypedDataVersion.V4 and value is None:
            return "bytes32", ZERO_WORD
        if value is None:
            raise TypedDataError(f"missing value for field {name} of type {type_}")
        return "bytes32", keccak(encode_data(type_, value, types, version))

    if value is None:
        raise TypedDataError(f"missing value for field {name} of type {type_}")

    if type_ == "bytes":
        if isinstance(value, int):
            value = _number_to_bytes(value)
        elif isinstance(value, str) and is_hexstr(value):
            value = to_bytes(hexstr=value)
        elif isinstance(value, str):
            value = value.encode("utf-8")
        return "bytes32", keccak(bytes(value))

    if type_ == "string":
        if isinstance(value, int):
            value = _number_to_bytes(value)
        else:
            value = str(value).encode("utf-8")
        return "bytes32", keccak(value)

    if type_.endswith("]"):
        if version is TypedDataVersion.V3:
            raise TypedDataError("Arrays are unimplemented in encodeData; use V4 extension")
        item_type = type_[: type_.rindex("[")]
        pairs = [_encode_field(types, name, item_type, item, version) for item in value]
        return "bytes32", keccak(encode([t for t, _ in pairs], [v for _, v in pairs]))

    return type_, _coerce_atomic(type_, value)


def encode_data(primary_type: str, data: dict, types: dict, version: VersionLike) -> bytes:
    """ABI-encode a struct instance: typeHash followed by one word per field."""
    version = _require_eip712_version(version)
    if not isinstance(data, dict):
        raise TypedDataError(f"Expected an object for type {primary_type}, got {type(data).__name__}")

    encoded_types = ["bytes32"]
    encoded_values: list[Any] = [hash_type(primary_type, types)]

    try:
        for field in types[primary_type]:
            if version is TypedDataVersion.V3 and field["name"] not in data:
                continue
            type_, value = _encode_field(types, field["name"], field["type"], data.get(field["name"]), version)
            encoded_types.append(type_)
            encoded_values.append(value)

        return encode(encoded_types, encoded_values)
    except TypedDataError:
        raise
    except (EncodingError, TypeError, ValueError) as e:
        raise TypedDataError(f"Cannot encode {primary_type}: {e}") from e


def hash_struct(primary_type: str, data: dict, types: dict, version: VersionLike) -> bytes:
    return keccak(encode_data(primary_type, data, types, version))


def sanitize_data(data: dict) -> dict:
    """Keep only the typed data properties and make sure EIP712Domain is defined."""
    types = dict(data.get("types") or {})
    types.setdefault(EIP712_DOMAIN, [])
    return {
        "types": types,
        "primaryType": data.get("primaryType"),
        "domain": data.get("domain") or {},
        "message": data.get("message") or {},
    }


def eip712_domain_hash(data: dict, version: VersionLike) -> bytes:
    sanitized = sanitize_data(data)
    return hash_struct(EIP712_DOMAIN, sanitized["domain"], sanitized["types"], version)


def eip712_hash(data: dict, version: VersionLike) -> bytes:
    """Hash typed data per EIP-712: keccak(0x1901 || domainSeparator || hashStruct(message))."""
    version = _require_eip712_version(version)
    sanitized = sanitize_data(data)
    primary_type = sanitized["primaryType"]
    if not primary_type:
        raise TypedDataError("Missing primaryType")
    if primary_type not in sanitized["types"]:
        raise TypedDataError(f"No type definition specified: {primary_type}")

    parts = [b"\x19\x01", eip712_domain_hash(sanitized, version)]
    if primary_type != EIP712_DOMAIN:
        parts.append(hash_struct(primary_type, sanitized["message"], sanitized["types"], version))
    return keccak(b"".join(parts))
