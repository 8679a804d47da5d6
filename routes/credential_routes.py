"""
Credential endpoints — issuance and verification.

Endpoints:
    POST /api/issue-vc    - Issue a signed Verifiable Credential
    POST /api/verify-vc   - Verify a credential against its issuer's stored key
"""

import logging

from flask import Blueprint, jsonify

from routes.api_routes import BadRequestError, NotFoundError, current_store, handle_errors, request_json
from services.credential import issue_credential, verify_credential
from services.storage import CredentialRecord

logger = logging.getLogger(__name__)

credential_bp = Blueprint('credentials', __name__, url_prefix='/api')


@credential_bp.route('/issue-vc', methods=['POST'])
@handle_errors
def issue():
    """
    Issue a credential.

    Accepts JSON body:
        {
            "subjectDid": "did:key:...",
            "credentialType": "IdentityCredential",
            "claims": {...},
            "issuerDid": "did:key:..."      (optional)
        }

    Without issuerDid the first registered DID signs.
    """
    data = request_json()
    subject_did = data.get('subjectDid')
    credential_type = data.get('credentialType')
    claims = data.get('claims', {})
    issuer_did = data.get('issuerDid')

    if not isinstance(subject_did, str) or not subject_did:
        raise BadRequestError("Subject DID is required")
    if not isinstance(credential_type, str) or not credential_type:
        raise BadRequestError("Credential type is required")
    if not isinstance(claims, dict):
        raise BadRequestError("claims must be a JSON object")

    store = current_store()
    if issuer_did:
        issuer = store.get_did(issuer_did)
        if issuer is None:
            raise NotFoundError("Issuer DID not found")
    else:
        issuer = store.get_any_issuer()

    credential = issue_credential(
        subject_did,
        credential_type,
        claims,
        issuer.key_material() if issuer else None,
    )
    record = store.put_credential(CredentialRecord.from_credential(credential, credential_type, claims))

    return jsonify({"credential": credential, "vcId": record.vc_id})


@credential_bp.route('/verify-vc', methods=['POST'])
@handle_errors
def verify():
    """
    Verify a credential.

    Accepts JSON body: { "credential": { ...W3C VC... } }

    The issuer's public key and key type come from the store, not from the
    credential. A credential that fails verification is still a 200 response
    with "verified": false and the reasons in "errors".
    """
    data = request_json()
    credential = data.get('credential')

    if not isinstance(credential, dict) or not credential:
        raise BadRequestError("No credential provided")

    issuer_did = credential.get('issuer')
    if not issuer_did or not isinstance(issuer_did, str):
        raise BadRequestError("Credential missing issuer")

    store = current_store()
    issuer = store.get_did(issuer_did)
    if issuer is None:
        raise NotFoundError("Issuer DID not found")

    result = verify_credential(credential, issuer.public_key_bytes, issuer.key_type)
    store.record_verification(result.verified)
    if not result.verified:
        logger.info("Credential from %s failed verification: %s", issuer_did, result.errors)

    return jsonify(result.to_dict())
