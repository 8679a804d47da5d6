"""
Signature suites for did:key credentials.

Two schemes are supported, each bundled as a suite with the same capability:
generate a key pair, sign, verify, and describe itself (multicodec prefix,
verification key type, proof type).

    ed25519    RFC 8032 signatures (64 bytes), raw 32-byte keys
    secp256k1  ECDSA over SHA-256(message), compact 64-byte r||s signature,
               33-byte SEC1 compressed public key, 32-byte private scalar

proofValue encoding: 'z' + base64(signature). The 'z' is the multibase
selector for base58btc but the payload is standard base64; already-issued
credentials depend on this exact form.
"""

import base64
import binascii
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature, encode_dss_signature
from cryptography.hazmat.primitives.serialization import (
    Encoding, PublicFormat, PrivateFormat, NoEncryption
)

from services.errors import InvalidKeyMaterial, KeyGenerationError, UnsupportedKeyType

# Order of the secp256k1 group
SECP256K1_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
SECP256K1_SIGNATURE_LEN = 64

PROOF_VALUE_PREFIX = 'z'


class KeyType(str, Enum):
    ED25519 = 'ed25519'
    SECP256K1 = 'secp256k1'


def parse_key_type(value: Union[str, KeyType]) -> KeyType:
    """Map a scheme tag to KeyType, raising UnsupportedKeyType otherwise."""
    try:
        return KeyType(value)
    except ValueError:
        raise UnsupportedKeyType(f"Unsupported key type: {value!r}") from None


@dataclass(frozen=True)
class KeyPair:
    key_type: KeyType
    public_key: bytes
    private_key: bytes

    @property
    def public_key_hex(self) -> str:
        return self.public_key.hex()

    @property
    def private_key_hex(self) -> str:
        return self.private_key.hex()


class Ed25519Suite:
    key_type = KeyType.ED25519
    multicodec_prefix = b'\xed\x01'
    public_key_len = 32
    verification_key_type = 'Ed25519VerificationKey2020'
    proof_type = 'Ed25519Signature2020'

    def generate(self) -> KeyPair:
        private_key = Ed25519PrivateKey.generate()
        return KeyPair(
            key_type=self.key_type,
            public_key=private_key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw),
            private_key=private_key.private_bytes(Encoding.Raw, PrivateFormat.Raw, NoEncryption()),
        )

    def sign(self, message: bytes, private_key: bytes) -> bytes:
        try:
            key = Ed25519PrivateKey.from_private_bytes(private_key)
        except ValueError as e:
            raise InvalidKeyMaterial(f"Invalid Ed25519 private key: {e}") from e
        return key.sign(message)

    def verify(self, signature: bytes, message: bytes, public_key: bytes) -> bool:
        try:
            Ed25519PublicKey.from_public_bytes(public_key).verify(signature, message)
            return True
        except (InvalidSignature, ValueError, TypeError):
            return False


class Secp256k1Suite:
    key_type = KeyType.SECP256K1
    multicodec_prefix = b'\xe7\x01'
    public_key_len = 33
    verification_key_type = 'EcdsaSecp256k1VerificationKey2019'
    proof_type = 'EcdsaSecp256k1Signature2019'

    def generate(self) -> KeyPair:
        private_key = ec.generate_private_key(ec.SECP256K1())
        return KeyPair(
            key_type=self.key_type,
            public_key=_compressed_point(private_key.public_key()),
            private_key=private_key.private_numbers().private_value.to_bytes(32, 'big'),
        )

    def sign(self, message: bytes, private_key: bytes) -> bytes:
        key = self._load_private_key(private_key)
        r, s = decode_dss_signature(key.sign(message, ec.ECDSA(hashes.SHA256())))
        # low-S form, so every signature has a single compact encoding
        if s > SECP256K1_ORDER // 2:
            s = SECP256K1_ORDER - s
        return r.to_bytes(32, 'big') + s.to_bytes(32, 'big')

    def verify(self, signature: bytes, message: bytes, public_key: bytes) -> bool:
        if len(signature) != SECP256K1_SIGNATURE_LEN:
            return False
        r = int.from_bytes(signature[:32], 'big')
        s = int.from_bytes(signature[32:], 'big')
        try:
            key = ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256K1(), public_key)
            key.verify(encode_dss_signature(r, s), message, ec.ECDSA(hashes.SHA256()))
            return True
        except (InvalidSignature, ValueError, TypeError):
            return False

    @staticmethod
    def _load_private_key(private_key: bytes) -> ec.EllipticCurvePrivateKey:
        if len(private_key) != 32:
            raise InvalidKeyMaterial(
                f"secp256k1 private key must be 32 bytes, got {len(private_key)}"
            )
        value = int.from_bytes(private_key, 'big')
        if not 0 < value < SECP256K1_ORDER:
            raise InvalidKeyMaterial("secp256k1 private key is outside the group order")
        return ec.derive_private_key(value, ec.SECP256K1())


def _compressed_point(public_key: ec.EllipticCurvePublicKey) -> bytes:
    return public_key.public_bytes(Encoding.X962, PublicFormat.CompressedPoint)


SUITES: Dict[KeyType, Union[Ed25519Suite, Secp256k1Suite]] = {
    KeyType.ED25519: Ed25519Suite(),
    KeyType.SECP256K1: Secp256k1Suite(),
}


def get_suite(key_type: Union[str, KeyType]) -> Union[Ed25519Suite, Secp256k1Suite]:
    return SUITES[parse_key_type(key_type)]


def generate_key_pair(key_type: Union[str, KeyType]) -> KeyPair:
    """
    Generate a fresh key pair from the operating system CSPRNG.

    Raises:
        UnsupportedKeyType: unknown scheme tag.
        KeyGenerationError: the underlying generator failed.
    """
    suite = get_suite(key_type)
    try:
        return suite.generate()
    except Exception as e:
        raise KeyGenerationError(f"{suite.key_type.value} key generation failed: {e}") from e


def public_key_from_private(key_type: Union[str, KeyType], private_key: bytes) -> bytes:
    """Derive the raw public key bytes that belong to a private key."""
    suite = get_suite(key_type)
    if suite.key_type is KeyType.ED25519:
        try:
            key = Ed25519PrivateKey.from_private_bytes(private_key)
        except ValueError as e:
            raise InvalidKeyMaterial(f"Invalid Ed25519 private key: {e}") from e
        return key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
    return _compressed_point(Secp256k1Suite._load_private_key(private_key).public_key())


def sign(key_type: Union[str, KeyType], message: bytes, private_key: bytes) -> bytes:
    return get_suite(key_type).sign(message, private_key)


def verify(key_type: Union[str, KeyType], signature: bytes, message: bytes, public_key: bytes) -> bool:
    """Return True only for a valid signature. Malformed input yields False."""
    return get_suite(key_type).verify(signature, message, public_key)


def proof_type_for(key_type: Union[str, KeyType]) -> str:
    return get_suite(key_type).proof_type


def encode_proof_value(signature: bytes) -> str:
    return PROOF_VALUE_PREFIX + base64.b64encode(signature).decode('ascii')


def decode_proof_value(proof_value: str) -> bytes:
    """
    Decode a 'z' + base64 proofValue.

    Raises:
        ValueError: missing prefix or invalid base64 payload.
    """
    if not isinstance(proof_value, str) or not proof_value.startswith(PROOF_VALUE_PREFIX):
        raise ValueError("proofValue must be a string starting with 'z'")
    try:
        return base64.b64decode(proof_value[len(PROOF_VALUE_PREFIX):], validate=True)
    except binascii.Error as e:
        raise ValueError(f"proofValue is not valid base64: {e}") from e
