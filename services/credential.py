"""
W3C Verifiable Credentials — issuance and verification.

Credentials follow the VC Data Model 1.1 shape:

    {
        "@context": ["https://www.w3.org/2018/credentials/v1"],
        "id": "urn:uuid:{uuid4}",
        "type": ["VerifiableCredential", "{credential_type}"],
        "issuer": "{issuer did:key}",
        "issuanceDate": "{now, ISO-8601 UTC}",
        "credentialSubject": {"id": "{subject did}", ...claims},
        "proof": {
            "type": "Ed25519Signature2020" | "EcdsaSecp256k1Signature2019",
            "created": "{issuanceDate}",
            "verificationMethod": "{issuer did}#{multibase}",
            "proofPurpose": "assertionMethod",
            "proofValue": "z{base64 signature}"
        }
    }

proofValue signs canonicalize(credential without "proof").
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Union

from services import crypto
from services.canonical import canonicalize, strip_proof
from services.crypto import KeyType
from services.did_key import key_id_segment
from services.errors import (
    CredentialEngineError, InvalidSignature, MalformedCredential, MissingProof,
    NoIssuerAvailable, SchemeMismatch, VerificationError
)

logger = logging.getLogger(__name__)

CREDENTIALS_CONTEXT = 'https://www.w3.org/2018/credentials/v1'
BASE_CREDENTIAL_TYPE = 'VerifiableCredential'
PROOF_PURPOSE = 'assertionMethod'
REQUIRED_FIELDS = ('@context', 'type', 'issuer', 'credentialSubject')


@dataclass(frozen=True)
class IssuerKeyMaterial:
    """Signing identity supplied by the caller for one issuance."""
    did: str
    key_type: Union[str, KeyType]
    private_key: bytes


@dataclass
class VerificationResult:
    verified: bool
    issuer: str = ''
    subject: str = ''
    issuance_date: str = ''
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "verified": self.verified,
            "issuer": self.issuer,
            "subject": self.subject,
            "issuanceDate": self.issuance_date,
        }
        if self.errors:
            result["errors"] = list(self.errors)
        return result


def utc_timestamp() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and 'Z' suffix."""
    now = datetime.now(timezone.utc)
    return now.strftime('%Y-%m-%dT%H:%M:%S.') + f"{now.microsecond // 1000:03d}Z"


def issue_credential(
    subject_did: str,
    credential_type: str,
    claims: Optional[Mapping[str, Any]],
    issuer: Optional[IssuerKeyMaterial],
) -> Dict[str, Any]:
    """
    Create and sign a Verifiable Credential.

    Args:
        subject_did: DID of the credential subject.
        credential_type: Appended to the "VerifiableCredential" base type.
        claims: Arbitrary JSON claims merged into credentialSubject. A
            claim named "id" never replaces the subject DID.
        issuer: Key material of the signing DID.

    Returns:
        Signed credential dict (W3C VC with proof).

    Raises:
        NoIssuerAvailable: issuer is None.
        UnsupportedKeyType: unknown issuer key type.
        InvalidKeyMaterial: unusable issuer private key.
        MalformedCredential: empty subject or type, or claims that cannot be
            canonicalized.
    """
    if issuer is None:
        raise NoIssuerAvailable("No issuer DID available. Register a DID first.")
    suite = crypto.get_suite(issuer.key_type)

    if not subject_did:
        raise MalformedCredential("Subject DID is required")
    if not credential_type:
        raise MalformedCredential("Credential type is required")
    try:
        key_segment = key_id_segment(issuer.did)
    except ValueError as e:
        raise MalformedCredential(f"Issuer must be a did:key: {issuer.did!r}") from e

    now = utc_timestamp()
    credential = {
        "@context": [CREDENTIALS_CONTEXT],
        "id": f"urn:uuid:{uuid.uuid4()}",
        "type": [BASE_CREDENTIAL_TYPE, credential_type],
        "issuer": issuer.did,
        "issuanceDate": now,
        "credentialSubject": {**dict(claims or {}), "id": subject_did},
    }

    try:
        message = canonicalize(credential)
    except (TypeError, ValueError) as e:
        raise MalformedCredential(f"Claims are not canonical JSON: {e}") from e

    signature = suite.sign(message, issuer.private_key)

    credential["proof"] = {
        "type": suite.proof_type,
        "created": now,
        # Fragment is taken from the issuer DID as given, not re-derived from the key
        "verificationMethod": f"{issuer.did}#{key_segment}",
        "proofPurpose": PROOF_PURPOSE,
        "proofValue": crypto.encode_proof_value(signature),
    }

    logger.info("Issued %s %s to %s", credential_type, credential["id"], subject_did)
    return credential


def _best_effort_fields(credential: Any) -> Dict[str, str]:
    if not isinstance(credential, Mapping):
        return {"issuer": '', "subject": '', "issuance_date": ''}

    issuer = credential.get('issuer') or ''
    if isinstance(issuer, Mapping):
        issuer = issuer.get('id') or ''
    subject = credential.get('credentialSubject')
    subject_id = subject.get('id') if isinstance(subject, Mapping) else ''
    return {
        "issuer": str(issuer),
        "subject": str(subject_id or ''),
        "issuance_date": str(credential.get('issuanceDate') or ''),
    }


def _check_signature(
    credential: Mapping[str, Any],
    proof_value: str,
    issuer_public_key: bytes,
    key_type: KeyType,
) -> Optional[CredentialEngineError]:
    try:
        message = canonicalize(strip_proof(credential))
        signature = crypto.decode_proof_value(proof_value)
    except (TypeError, ValueError) as e:
        return VerificationError(f"Could not decode credential for verification: {e}")

    if not crypto.verify(key_type, signature, message, issuer_public_key):
        return InvalidSignature("Signature does not match credential content")
    return None


def _collect_problems(
    credential: Any,
    issuer_public_key: bytes,
    key_type: Union[str, KeyType],
) -> List[CredentialEngineError]:
    if not isinstance(credential, Mapping):
        return [MalformedCredential("Credential must be a JSON object")]

    problems: List[CredentialEngineError] = []
    missing = [name for name in REQUIRED_FIELDS if not credential.get(name)]
    if missing:
        problems.append(MalformedCredential(
            f"Invalid credential structure: missing {', '.join(missing)}"
        ))

    proof = credential.get('proof')
    proof_value = proof.get('proofValue') if isinstance(proof, Mapping) else None
    if not proof_value:
        problems.append(MissingProof("Missing or invalid proof"))
        return problems

    try:
        suite = crypto.get_suite(key_type)
    except CredentialEngineError as e:
        problems.append(e)
        return problems

    declared = proof.get('type')
    if declared != suite.proof_type:
        # Fail closed: never fall back to the other scheme
        problems.append(SchemeMismatch(
            f"Proof type {declared!r} does not match issuer key type "
            f"{suite.key_type.value!r} (expected {suite.proof_type!r})"
        ))
        return problems

    problem = _check_signature(credential, proof_value, issuer_public_key, suite.key_type)
    if problem is not None:
        problems.append(problem)
    return problems


def verify_credential(
    credential: Any,
    issuer_public_key: bytes,
    key_type: Union[str, KeyType],
) -> VerificationResult:
    """
    Verify a credential against the issuer's stored public key.

    All problems found are reported together in `errors`. This never raises:
    a credential that fails to verify is a normal outcome, not a fault.
    issuer, subject and issuanceDate are echoed back even on failure.
    """
    try:
        problems = _collect_problems(credential, issuer_public_key, key_type)
    except Exception as e:
        logger.exception("Unexpected error while verifying credential")
        problems = [VerificationError(f"Verification failed: {e}")]

    return VerificationResult(
        verified=not problems,
        errors=[p.describe() for p in problems],
        **_best_effort_fields(credential),
    )
