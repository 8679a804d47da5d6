"""
DID and credential storage.

The credential engine itself never touches storage; the HTTP layer looks up
key material here and hands it to the engine. Two backends:

    MemoryStore     process-local dicts, lost on restart
    SupabaseStore   tables `dids` and `verifiable_credentials`

Private keys are stored as clear hex, exactly as they are generated. Anyone
with read access to the store can sign as every registered DID.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from supabase import Client, create_client

from config import config
from services.credential import IssuerKeyMaterial
from services.crypto import public_key_from_private
from services.errors import InvalidKeyMaterial


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class DidRecord:
    did: str
    key_type: str
    public_key: str
    private_key: str
    did_document: Dict[str, Any]
    method: str = 'did:key'
    created_at: str = field(default_factory=_now_iso)

    @property
    def public_key_bytes(self) -> bytes:
        return bytes.fromhex(self.public_key)

    def key_material(self) -> IssuerKeyMaterial:
        """
        Signing material for this DID.

        Raises:
            InvalidKeyMaterial: the stored private key is not hex, or does not
                belong to the stored public key.
        """
        try:
            private_key = bytes.fromhex(self.private_key)
        except ValueError as e:
            raise InvalidKeyMaterial(f"Stored private key for {self.did} is not hex") from e
        if public_key_from_private(self.key_type, private_key) != self.public_key_bytes:
            raise InvalidKeyMaterial(f"Stored private key does not match the public key of {self.did}")
        return IssuerKeyMaterial(did=self.did, key_type=self.key_type, private_key=private_key)

    def to_public_dict(self) -> Dict[str, Any]:
        return {
            "did": self.did,
            "method": self.method,
            "keyType": self.key_type,
            "publicKey": self.public_key,
            "createdAt": self.created_at,
        }


@dataclass
class CredentialRecord:
    vc_id: str
    issuer: str
    subject: str
    credential_type: str
    claims: Dict[str, Any]
    credential: Dict[str, Any]
    issuance_date: str
    created_at: str = field(default_factory=_now_iso)

    @classmethod
    def from_credential(cls, credential: Dict[str, Any], credential_type: str,
                        claims: Dict[str, Any]) -> 'CredentialRecord':
        return cls(
            vc_id=credential['id'],
            issuer=credential['issuer'],
            subject=credential['credentialSubject']['id'],
            credential_type=credential_type,
            claims=dict(claims),
            credential=credential,
            issuance_date=credential['issuanceDate'],
        )


class Store(ABC):
    """Key-value store for DIDs (by DID string) and credentials (by credential id)."""

    def __init__(self):
        self._verified_lock = threading.Lock()
        self._verified_count = 0

    @abstractmethod
    def get_did(self, did: str) -> Optional[DidRecord]:
        ...

    @abstractmethod
    def put_did(self, record: DidRecord) -> DidRecord:
        ...

    @abstractmethod
    def list_dids(self) -> List[DidRecord]:
        """All DIDs in registration order."""

    @abstractmethod
    def get_credential(self, vc_id: str) -> Optional[CredentialRecord]:
        ...

    @abstractmethod
    def put_credential(self, record: CredentialRecord) -> CredentialRecord:
        ...

    @abstractmethod
    def list_credentials(self) -> List[CredentialRecord]:
        ...

    def get_any_issuer(self) -> Optional[DidRecord]:
        """Fallback issuer when the caller does not pin one: the first registered DID."""
        dids = self.list_dids()
        return dids[0] if dids else None

    def record_verification(self, verified: bool) -> None:
        # Counted per process, not persisted
        if verified:
            with self._verified_lock:
                self._verified_count += 1

    def count_dids(self) -> int:
        return len(self.list_dids())

    def count_credentials(self) -> int:
        return len(self.list_credentials())

    def verified_count(self) -> int:
        with self._verified_lock:
            return self._verified_count

    def stats(self) -> Dict[str, int]:
        total_dids = self.count_dids()
        return {
            "totalDids": total_dids,
            "vcsIssued": self.count_credentials(),
            "verified": self.verified_count(),
            "activeKeys": total_dids,
        }


class MemoryStore(Store):

    def __init__(self):
        super().__init__()
        self._lock = threading.Lock()
        self._dids: Dict[str, DidRecord] = {}
        self._credentials: Dict[str, CredentialRecord] = {}

    def get_did(self, did: str) -> Optional[DidRecord]:
        with self._lock:
            return self._dids.get(did)

    def put_did(self, record: DidRecord) -> DidRecord:
        with self._lock:
            self._dids[record.did] = record
        return record

    def list_dids(self) -> List[DidRecord]:
        with self._lock:
            return list(self._dids.values())

    def get_credential(self, vc_id: str) -> Optional[CredentialRecord]:
        with self._lock:
            return self._credentials.get(vc_id)

    def put_credential(self, record: CredentialRecord) -> CredentialRecord:
        with self._lock:
            self._credentials[record.vc_id] = record
        return record

    def list_credentials(self) -> List[CredentialRecord]:
        with self._lock:
            return list(self._credentials.values())


def create_supabase_client() -> Client:
    if not config.SUPABASE_URL or config.SUPABASE_URL == 'https://your-project.supabase.co':
        raise ValueError(
            "SUPABASE_URL is not configured. "
            "Add your Supabase project URL to .env or set STORAGE_BACKEND=memory"
        )
    if not config.SUPABASE_KEY or config.SUPABASE_KEY == 'your-supabase-service-key':
        raise ValueError(
            "SUPABASE_KEY is not configured. "
            "Add your Supabase service key to .env or set STORAGE_BACKEND=memory"
        )
    return create_client(config.SUPABASE_URL, config.SUPABASE_KEY)


class SupabaseStore(Store):
    """
    Supabase-backed store. Expected schema:

        dids(did text unique, method text, key_type text, public_key text,
             private_key text, did_document jsonb, created_at timestamptz)
        verifiable_credentials(vc_id text unique, issuer text, subject text,
             credential_type text, claims jsonb, credential jsonb,
             issuance_date timestamptz, created_at timestamptz)

    jsonb may reorder keys; signatures still verify because the canonical
    form sorts keys.
    """

    def __init__(self, client=None, dids_table: Optional[str] = None,
                 credentials_table: Optional[str] = None):
        super().__init__()
        self._client = client
        self.dids_table = dids_table or config.SUPABASE_DIDS_TABLE
        self.credentials_table = credentials_table or config.SUPABASE_CREDENTIALS_TABLE

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = create_supabase_client()
        return self._client

    def get_did(self, did: str) -> Optional[DidRecord]:
        result = self.client.table(self.dids_table) \
            .select('*') \
            .eq('did', did) \
            .limit(1) \
            .execute()
        return _did_from_row(result.data[0]) if result.data else None

    def put_did(self, record: DidRecord) -> DidRecord:
        self.client.table(self.dids_table).insert(asdict(record)).execute()
        return record

    def list_dids(self) -> List[DidRecord]:
        result = self.client.table(self.dids_table) \
            .select('*') \
            .order('created_at') \
            .execute()
        return [_did_from_row(row) for row in result.data or []]

    def get_any_issuer(self) -> Optional[DidRecord]:
        result = self.client.table(self.dids_table) \
            .select('*') \
            .order('created_at') \
            .limit(1) \
            .execute()
        return _did_from_row(result.data[0]) if result.data else None

    def get_credential(self, vc_id: str) -> Optional[CredentialRecord]:
        result = self.client.table(self.credentials_table) \
            .select('*') \
            .eq('vc_id', vc_id) \
            .limit(1) \
            .execute()
        return _credential_from_row(result.data[0]) if result.data else None

    def put_credential(self, record: CredentialRecord) -> CredentialRecord:
        self.client.table(self.credentials_table).insert(asdict(record)).execute()
        return record

    def list_credentials(self) -> List[CredentialRecord]:
        result = self.client.table(self.credentials_table) \
            .select('*') \
            .order('created_at') \
            .execute()
        return [_credential_from_row(row) for row in result.data or []]

    def count_dids(self) -> int:
        result = self.client.table(self.dids_table).select('did', count='exact').execute()
        return result.count or 0

    def count_credentials(self) -> int:
        result = self.client.table(self.credentials_table).select('vc_id', count='exact').execute()
        return result.count or 0


def _did_from_row(row: Dict[str, Any]) -> DidRecord:
    return DidRecord(
        did=row['did'],
        key_type=row['key_type'],
        public_key=row['public_key'],
        private_key=row['private_key'],
        did_document=row['did_document'],
        method=row.get('method') or 'did:key',
        created_at=str(row.get('created_at') or ''),
    )


def _credential_from_row(row: Dict[str, Any]) -> CredentialRecord:
    return CredentialRecord(
        vc_id=row['vc_id'],
        issuer=row['issuer'],
        subject=row['subject'],
        credential_type=row['credential_type'],
        claims=row.get('claims') or {},
        credential=row['credential'],
        issuance_date=str(row['issuance_date']),
        created_at=str(row.get('created_at') or ''),
    )


def get_store() -> Store:
    """Build the store selected by STORAGE_BACKEND."""
    backend = config.STORAGE_BACKEND
    if backend == 'memory':
        return MemoryStore()
    if backend == 'supabase':
        return SupabaseStore()
    raise ValueError(f"Unknown STORAGE_BACKEND: {backend!r} (expected 'memory' or 'supabase')")
