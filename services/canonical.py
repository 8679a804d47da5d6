"""
Canonical JSON for credential signatures.

The signature covers these exact bytes, so issuance and verification must
produce them identically. Key order is fixed to sorted order at every level
instead of insertion order: a credential that went through a JSON store or
another serializer comes back with its keys reordered, and must still verify.
"""

import json
from typing import Any, Dict, Mapping


def canonicalize(credential_without_proof: Mapping[str, Any]) -> bytes:
    """
    Serialize a credential (without its proof) to canonical UTF-8 JSON bytes.

    Raises:
        ValueError: NaN or Infinity in the payload.
        TypeError: a value that is not JSON-serializable.
    """
    return json.dumps(
        credential_without_proof,
        sort_keys=True,
        separators=(',', ':'),
        ensure_ascii=False,
        allow_nan=False,
    ).encode('utf-8')


def strip_proof(credential: Mapping[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in credential.items() if k != 'proof'}
