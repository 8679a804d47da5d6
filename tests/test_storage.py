"""Tests for services/storage.py — memory store, Supabase store and backend selection."""
from types import SimpleNamespace

import pytest

from config import config
from services.errors import InvalidKeyMaterial
from services.credential import issue_credential
from services.did_key import register_did
from services.storage import (
    CredentialRecord, DidRecord, MemoryStore, SupabaseStore, create_supabase_client, get_store
)


def _did_record(key_type='ed25519'):
    response, key_pair = register_did(key_type)
    return DidRecord(
        did=response['did'],
        key_type=key_type,
        public_key=key_pair.public_key_hex,
        private_key=key_pair.private_key_hex,
        did_document=response['didDocument'],
    )


class FakeQuery:
    """Records the Supabase query builder chain and returns canned rows."""

    def __init__(self, table, rows, count=None):
        self.table = table
        self.rows = rows
        self.count = count
        self.calls = []

    def __getattr__(self, name):
        def method(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            if name == 'insert':
                self.table.inserted.append(args[0])
            return self
        return method

    def execute(self):
        return SimpleNamespace(data=self.rows, count=self.count)


class FakeTable:
    def __init__(self, rows=None, count=None):
        self.rows = rows or []
        self.count = count
        self.inserted = []
        self.queries = []

    def query(self):
        q = FakeQuery(self, self.rows, self.count)
        self.queries.append(q)
        return q


class FakeSupabase:
    def __init__(self, **tables):
        self.tables = tables

    def table(self, name):
        return self.tables[name].query()


@pytest.fixture
def store():
    return MemoryStore()


class TestDidRecord:
    def test_key_material(self):
        record = _did_record('secp256k1')
        material = record.key_material()
        assert material.did == record.did
        assert material.key_type == 'secp256k1'
        assert material.private_key.hex() == record.private_key

    def test_key_material_rejects_mismatched_private_key(self):
        record = _did_record()
        other = _did_record()
        record.private_key = other.private_key
        with pytest.raises(InvalidKeyMaterial):
            record.key_material()

    def test_key_material_rejects_non_hex_private_key(self):
        record = _did_record('secp256k1')
        record.private_key = 'not-hex'
        with pytest.raises(InvalidKeyMaterial):
            record.key_material()

    def test_public_dict_hides_private_key(self):
        record = _did_record()
        public = record.to_public_dict()
        assert 'privateKey' not in public
        assert 'private_key' not in public
        assert public['publicKey'] == record.public_key
        assert public['method'] == 'did:key'


class TestMemoryStore:
    def test_put_and_get_did(self, store):
        record = _did_record()
        store.put_did(record)
        assert store.get_did(record.did) is record
        assert store.get_did('did:key:zUnknown') is None

    def test_any_issuer_is_first_registered(self, store):
        assert store.get_any_issuer() is None
        first, second = _did_record(), _did_record('secp256k1')
        store.put_did(first)
        store.put_did(second)
        assert store.get_any_issuer() is first
        assert store.list_dids() == [first, second]

    def test_put_and_get_credential(self, store):
        issuer = _did_record()
        credential = issue_credential('did:key:z6MkSubject', 'IdentityCredential', {"name": "Ada"},
                                      issuer.key_material())
        record = CredentialRecord.from_credential(credential, 'IdentityCredential', {"name": "Ada"})
        store.put_credential(record)

        fetched = store.get_credential(credential['id'])
        assert fetched.credential == credential
        assert fetched.issuer == issuer.did
        assert fetched.subject == 'did:key:z6MkSubject'
        assert fetched.issuance_date == credential['issuanceDate']
        assert store.get_credential('urn:uuid:missing') is None

    def test_stats(self, store):
        issuer = _did_record()
        store.put_did(issuer)
        store.put_did(_did_record())
        credential = issue_credential('did:key:z6MkSubject', 'T', {}, issuer.key_material())
        store.put_credential(CredentialRecord.from_credential(credential, 'T', {}))
        store.record_verification(True)
        store.record_verification(False)

        assert store.stats() == {"totalDids": 2, "vcsIssued": 1, "verified": 1, "activeKeys": 2}

    def test_verified_count(self, store):
        assert store.verified_count() == 0
        for verified in (True, True, False):
            store.record_verification(verified)
        assert store.verified_count() == 2


class TestSupabaseStore:
    def test_get_did(self):
        record = _did_record()
        dids = FakeTable(rows=[{
            "did": record.did, "key_type": "ed25519", "public_key": record.public_key,
            "private_key": record.private_key, "did_document": record.did_document,
            "method": "did:key", "created_at": "2024-01-01T00:00:00+00:00",
        }])
        store = SupabaseStore(client=FakeSupabase(dids=dids, verifiable_credentials=FakeTable()))

        fetched = store.get_did(record.did)
        assert fetched.did == record.did
        assert fetched.public_key_bytes == bytes.fromhex(record.public_key)
        assert ('eq', ('did', record.did), {}) in dids.queries[0].calls

    def test_get_did_missing(self):
        store = SupabaseStore(client=FakeSupabase(dids=FakeTable(), verifiable_credentials=FakeTable()))
        assert store.get_did('did:key:zNope') is None
        assert store.get_any_issuer() is None

    def test_put_did_inserts_row(self):
        dids = FakeTable()
        store = SupabaseStore(client=FakeSupabase(dids=dids, verifiable_credentials=FakeTable()))
        record = _did_record()
        store.put_did(record)
        assert dids.inserted[0]['did'] == record.did
        assert dids.inserted[0]['private_key'] == record.private_key

    def test_custom_table_names(self):
        creds = FakeTable(count=3)
        store = SupabaseStore(client=FakeSupabase(ids=FakeTable(count=2), vcs=creds),
                              dids_table='ids', credentials_table='vcs')
        assert store.stats() == {"totalDids": 2, "vcsIssued": 3, "verified": 0, "activeKeys": 2}

    def test_get_credential(self):
        credential = {"id": "urn:uuid:1", "issuer": "did:key:z1",
                      "credentialSubject": {"id": "did:key:z2"}, "issuanceDate": "2024-01-01T00:00:00.000Z"}
        creds = FakeTable(rows=[{
            "vc_id": "urn:uuid:1", "issuer": "did:key:z1", "subject": "did:key:z2",
            "credential_type": "T", "claims": {}, "credential": credential,
            "issuance_date": "2024-01-01T00:00:00.000Z",
        }])
        store = SupabaseStore(client=FakeSupabase(dids=FakeTable(), verifiable_credentials=creds))
        assert store.get_credential("urn:uuid:1").credential == credential


class TestCreateSupabaseClient:
    def test_missing_url(self, monkeypatch):
        monkeypatch.setattr(config, 'SUPABASE_URL', '')
        with pytest.raises(ValueError):
            create_supabase_client()

    def test_missing_key(self, monkeypatch):
        monkeypatch.setattr(config, 'SUPABASE_URL', 'https://example.supabase.co')
        monkeypatch.setattr(config, 'SUPABASE_KEY', '')
        with pytest.raises(ValueError):
            create_supabase_client()


class TestGetStore:
    def test_memory(self, monkeypatch):
        monkeypatch.setattr(config, 'STORAGE_BACKEND', 'memory')
        assert isinstance(get_store(), MemoryStore)

    def test_supabase_is_lazy(self, monkeypatch):
        monkeypatch.setattr(config, 'STORAGE_BACKEND', 'supabase')
        assert isinstance(get_store(), SupabaseStore)

    def test_unknown(self, monkeypatch):
        monkeypatch.setattr(config, 'STORAGE_BACKEND', 'redis')
        with pytest.raises(ValueError):
            get_store()
