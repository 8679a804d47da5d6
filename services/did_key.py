"""
DID:KEY implementation.

DID:KEY encodes the public key directly in the identifier using multibase
(base58btc with 'z' prefix) and a 2-byte multicodec header:

    0xed 0x01   ed25519-pub     (32-byte raw key)
    0xe7 0x01   secp256k1-pub   (33-byte compressed point)

The DID Document is derived from the key alone. No HTTP request, no server:

    did:key:z6Mk...  ->  derive DID Document  (no network call)
"""

from typing import Any, Dict, Tuple, Union

import base58

from services.crypto import SUITES, KeyPair, KeyType, generate_key_pair, get_suite
from services.errors import InvalidKeyMaterial

DID_KEY_PREFIX = 'did:key:'
MULTIBASE_BASE58BTC = 'z'
DID_CONTEXT = 'https://www.w3.org/ns/did/v1'

VERIFICATION_RELATIONSHIPS = (
    'authentication',
    'assertionMethod',
    'capabilityInvocation',
    'capabilityDelegation',
)


def encode_public_key(key_type: Union[str, KeyType], public_key: bytes) -> str:
    """
    Encode raw public key bytes as a multibase base58btc string.

    Returns:
        'z' + base58btc(multicodec_prefix + public_key), e.g. "z6Mkha..."
    """
    suite = get_suite(key_type)
    if len(public_key) != suite.public_key_len:
        raise InvalidKeyMaterial(
            f"{suite.key_type.value} public key must be {suite.public_key_len} bytes, "
            f"got {len(public_key)}"
        )
    return MULTIBASE_BASE58BTC + base58.b58encode(suite.multicodec_prefix + public_key).decode('utf-8')


def decode_public_key(multibase: str) -> Tuple[KeyType, bytes]:
    """
    Inverse of encode_public_key.

    Returns:
        (key_type, raw_public_key_bytes)

    Raises:
        InvalidKeyMaterial: wrong multibase selector, bad base58, unknown
            multicodec header or wrong key length.
    """
    if not multibase or multibase[0] != MULTIBASE_BASE58BTC:
        raise InvalidKeyMaterial("publicKeyMultibase must use base58btc ('z' prefix)")
    try:
        raw = base58.b58decode(multibase[1:])
    except ValueError as e:
        raise InvalidKeyMaterial(f"publicKeyMultibase is not valid base58btc: {e}") from e

    for suite in SUITES.values():
        prefix = suite.multicodec_prefix
        if raw[:len(prefix)] == prefix:
            public_key = raw[len(prefix):]
            if len(public_key) != suite.public_key_len:
                raise InvalidKeyMaterial(
                    f"{suite.key_type.value} public key must be {suite.public_key_len} bytes, "
                    f"got {len(public_key)}"
                )
            return suite.key_type, public_key

    raise InvalidKeyMaterial(f"Unknown multicodec prefix: {raw[:2].hex()}")


def did_from_public_key(key_type: Union[str, KeyType], public_key: bytes) -> str:
    return DID_KEY_PREFIX + encode_public_key(key_type, public_key)


def key_id_segment(did: str) -> str:
    """The multibase part of a did:key, used as the verification-method fragment."""
    if not did.startswith(DID_KEY_PREFIX):
        raise ValueError(f"Not a did:key: {did}")
    return did[len(DID_KEY_PREFIX):]


def _did_document(did: str, multibase: str, key_type: KeyType) -> Dict[str, Any]:
    vm_id = f"{did}#{multibase}"
    document = {
        "@context": [DID_CONTEXT],
        "id": did,
        "verificationMethod": [
            {
                "id": vm_id,
                "type": SUITES[key_type].verification_key_type,
                "controller": did,
                "publicKeyMultibase": multibase
            }
        ],
    }
    # The single key carries every relationship; there is no rotation or multi-key support.
    for relationship in VERIFICATION_RELATIONSHIPS:
        document[relationship] = [vm_id]
    return document


def build_did_document(key_type: Union[str, KeyType], key_pair: KeyPair) -> Tuple[str, Dict[str, Any]]:
    """
    Derive the DID and its W3C DID Document from a key pair.

    Pure and deterministic: the same public key always yields the same
    DID and document.

    Returns:
        (did_string, did_document)
    """
    key_type = get_suite(key_type).key_type
    did = did_from_public_key(key_type, key_pair.public_key)
    return did, _did_document(did, key_id_segment(did), key_type)


def register_did(key_type: Union[str, KeyType] = KeyType.ED25519) -> Tuple[Dict[str, Any], KeyPair]:
    """
    Generate a new key pair and derive its DID:KEY.

    Returns:
        (response, key_pair)
        response: {"did", "publicKey" (hex), "didDocument", "keyType"}
        key_pair: the generated KeyPair, for the caller to persist
    """
    key_pair = generate_key_pair(key_type)
    did, did_document = build_did_document(key_pair.key_type, key_pair)
    response = {
        "did": did,
        "publicKey": key_pair.public_key_hex,
        "didDocument": did_document,
        "keyType": key_pair.key_type.value,
    }
    return response, key_pair


def resolve_did_key(did: str) -> Dict[str, Any]:
    """
    Derive the DID Document from a DID:KEY string alone.

    Raises:
        ValueError: If the DID is not a did:key string.
        InvalidKeyMaterial: If the key segment cannot be decoded.
    """
    multibase = key_id_segment(did)
    key_type, _ = decode_public_key(multibase)
    return _did_document(did, multibase, key_type)
