"""Tests for services/did_key.py — DID:KEY encoding, documents and resolution."""
import pytest
import base58

from services.crypto import KeyPair, KeyType, generate_key_pair
from services.did_key import (
    build_did_document, decode_public_key, did_from_public_key, encode_public_key,
    key_id_segment, register_did, resolve_did_key
)
from services.errors import InvalidKeyMaterial, UnsupportedKeyType

MULTICODEC_ED25519_PREFIX = b'\xed\x01'
MULTICODEC_SECP256K1_PREFIX = b'\xe7\x01'

# RFC 8032 test 1 public key
RFC8032_PUBLIC_KEY = bytes.fromhex('d75a980182b10ab7d54bfed3c964073a0ee172f3daa62325af021a68f707511a')


@pytest.fixture(params=[KeyType.ED25519, KeyType.SECP256K1])
def key_pair(request):
    return generate_key_pair(request.param)


class TestEncodePublicKey:
    def test_ed25519_multibase_decodes_correctly(self):
        pair = generate_key_pair('ed25519')
        multibase = encode_public_key('ed25519', pair.public_key)
        assert multibase[0] == 'z', "Must use base58btc (z prefix)"
        raw = base58.b58decode(multibase[1:])
        assert raw[:2] == MULTICODEC_ED25519_PREFIX
        assert len(raw) == 34, "Prefix (2) + Ed25519 pub key (32)"
        assert multibase.startswith('z6Mk')

    def test_secp256k1_multibase_decodes_correctly(self):
        pair = generate_key_pair('secp256k1')
        multibase = encode_public_key('secp256k1', pair.public_key)
        raw = base58.b58decode(multibase[1:])
        assert raw[:2] == MULTICODEC_SECP256K1_PREFIX
        assert len(raw) == 35, "Prefix (2) + compressed secp256k1 point (33)"
        assert multibase.startswith('zQ3s')

    def test_deterministic(self):
        assert encode_public_key('ed25519', RFC8032_PUBLIC_KEY) == \
            encode_public_key('ed25519', RFC8032_PUBLIC_KEY)

    def test_roundtrip(self, key_pair):
        multibase = encode_public_key(key_pair.key_type, key_pair.public_key)
        assert decode_public_key(multibase) == (key_pair.key_type, key_pair.public_key)

    def test_distinct_keys_distinct_encodings(self):
        other = bytes([RFC8032_PUBLIC_KEY[0] ^ 1]) + RFC8032_PUBLIC_KEY[1:]
        assert encode_public_key('ed25519', RFC8032_PUBLIC_KEY) != encode_public_key('ed25519', other)

    def test_unsupported_key_type(self):
        with pytest.raises(UnsupportedKeyType):
            encode_public_key('rsa', RFC8032_PUBLIC_KEY)

    def test_wrong_length_rejected(self):
        with pytest.raises(InvalidKeyMaterial):
            encode_public_key('ed25519', b'\x01' * 31)


class TestDecodePublicKey:
    def test_rejects_non_base58btc_selector(self):
        with pytest.raises(InvalidKeyMaterial):
            decode_public_key('m' + base58.b58encode(MULTICODEC_ED25519_PREFIX + RFC8032_PUBLIC_KEY).decode())

    def test_rejects_invalid_base58(self):
        with pytest.raises(InvalidKeyMaterial):
            decode_public_key('z0OIl')

    def test_rejects_unknown_multicodec(self):
        encoded = 'z' + base58.b58encode(b'\x12\x00' + RFC8032_PUBLIC_KEY).decode()
        with pytest.raises(InvalidKeyMaterial):
            decode_public_key(encoded)

    def test_rejects_truncated_key(self):
        encoded = 'z' + base58.b58encode(MULTICODEC_ED25519_PREFIX + RFC8032_PUBLIC_KEY[:20]).decode()
        with pytest.raises(InvalidKeyMaterial):
            decode_public_key(encoded)

    def test_empty(self):
        with pytest.raises(InvalidKeyMaterial):
            decode_public_key('')


class TestBuildDidDocument:
    def test_did_format(self, key_pair):
        did, _ = build_did_document(key_pair.key_type, key_pair)
        assert did.startswith('did:key:z')
        assert did == did_from_public_key(key_pair.key_type, key_pair.public_key)

    def test_id_matches(self, key_pair):
        did, doc = build_did_document(key_pair.key_type, key_pair)
        assert doc['id'] == did

    def test_verification_method(self, key_pair):
        did, doc = build_did_document(key_pair.key_type, key_pair)
        vms = doc['verificationMethod']
        assert len(vms) == 1
        vm = vms[0]
        multibase = did[len('did:key:'):]
        assert vm['id'] == f"{did}#{multibase}"
        assert vm['controller'] == did
        assert vm['publicKeyMultibase'] == multibase

    def test_verification_method_type(self):
        ed = generate_key_pair('ed25519')
        k1 = generate_key_pair('secp256k1')
        assert build_did_document('ed25519', ed)[1]['verificationMethod'][0]['type'] == \
            'Ed25519VerificationKey2020'
        assert build_did_document('secp256k1', k1)[1]['verificationMethod'][0]['type'] == \
            'EcdsaSecp256k1VerificationKey2019'

    def test_all_relationships_reference_the_single_key(self, key_pair):
        _, doc = build_did_document(key_pair.key_type, key_pair)
        vm_id = doc['verificationMethod'][0]['id']
        for relationship in ('authentication', 'assertionMethod',
                             'capabilityInvocation', 'capabilityDelegation'):
            assert doc[relationship] == [vm_id]

    def test_context(self, key_pair):
        _, doc = build_did_document(key_pair.key_type, key_pair)
        assert doc['@context'] == ['https://www.w3.org/ns/did/v1']

    def test_deterministic(self):
        pair = KeyPair(KeyType.ED25519, RFC8032_PUBLIC_KEY, b'\x00' * 32)
        assert build_did_document('ed25519', pair) == build_did_document('ed25519', pair)

    def test_uniqueness(self):
        dids = {register_did('ed25519')[0]['did'] for _ in range(20)}
        assert len(dids) == 20


class TestRegisterDid:
    def test_response_shape(self):
        response, pair = register_did('secp256k1')
        assert set(response) == {'did', 'publicKey', 'didDocument', 'keyType'}
        assert response['keyType'] == 'secp256k1'
        assert response['publicKey'] == pair.public_key.hex()
        assert response['didDocument']['id'] == response['did']

    def test_default_is_ed25519(self):
        response, pair = register_did()
        assert pair.key_type is KeyType.ED25519
        assert response['did'].startswith('did:key:z6Mk')

    def test_unsupported_key_type(self):
        with pytest.raises(UnsupportedKeyType):
            register_did('p256')


class TestResolveDidKey:
    def test_matches_built_document(self, key_pair):
        did, doc = build_did_document(key_pair.key_type, key_pair)
        assert resolve_did_key(did) == doc

    def test_public_key_matches(self, key_pair):
        did, _ = build_did_document(key_pair.key_type, key_pair)
        multibase = resolve_did_key(did)['verificationMethod'][0]['publicKeyMultibase']
        assert decode_public_key(multibase)[1] == key_pair.public_key

    def test_invalid_did_raises(self):
        with pytest.raises(ValueError):
            resolve_did_key("did:web:example.com")

    def test_garbage_key_raises(self):
        with pytest.raises(InvalidKeyMaterial):
            resolve_did_key("did:key:zzzz")


class TestKeyIdSegment:
    def test_segment(self):
        assert key_id_segment('did:key:z6MkabcDEF') == 'z6MkabcDEF'

    def test_not_did_key(self):
        with pytest.raises(ValueError):
            key_id_segment('did:example:123')
