"""
DID endpoints.

Endpoints:
    POST /api/register        - Generate a did:key (ed25519 or secp256k1) and store it
    GET  /api/resolve/<did>   - DID Document of a registered DID
    GET  /api/dids            - Registered DIDs (public fields only)
"""

import logging

from flask import Blueprint, jsonify

from routes.api_routes import BadRequestError, NotFoundError, current_store, handle_errors, request_json
from services.did_key import register_did
from services.storage import DidRecord

logger = logging.getLogger(__name__)

did_bp = Blueprint('dids', __name__, url_prefix='/api')


@did_bp.route('/register', methods=['POST'])
@handle_errors
def register():
    """
    Register a new DID.

    Accepts JSON body: { "keyType": "ed25519" | "secp256k1", "method": "did:key" }
    Both fields are optional and default to the values shown first.
    """
    data = request_json()
    key_type = data.get('keyType', 'ed25519')
    method = data.get('method', 'did:key')

    if method != 'did:key':
        raise BadRequestError("Only did:key method is currently supported")

    response, key_pair = register_did(key_type)

    current_store().put_did(DidRecord(
        did=response['did'],
        key_type=key_pair.key_type.value,
        public_key=key_pair.public_key_hex,
        private_key=key_pair.private_key_hex,
        did_document=response['didDocument'],
        method=method,
    ))
    logger.info("Registered %s DID %s", key_pair.key_type.value, response['did'])

    return jsonify(response)


@did_bp.route('/resolve/<did>', methods=['GET'])
@handle_errors
def resolve(did: str):
    if not did.startswith('did:'):
        raise BadRequestError("Invalid DID format")

    record = current_store().get_did(did)
    if record is None:
        raise NotFoundError("DID not found")

    return jsonify({
        "didDocument": record.did_document,
        "keyType": record.key_type,
        "publicKey": record.public_key,
    })


@did_bp.route('/dids', methods=['GET'])
@handle_errors
def list_dids():
    return jsonify({"dids": [record.to_public_dict() for record in current_store().list_dids()]})
