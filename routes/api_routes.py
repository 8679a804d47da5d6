"""
Public API endpoints — stored credentials and statistics.

Endpoints:
    GET  /api/stats                          - DID / credential counters
    GET  /api/credentials/<vc_id>            - Get a stored credential
    GET  /api/credentials/<vc_id>/qr         - QR code PNG pointing at the credential
"""

import io
import logging
from functools import wraps

import qrcode
from flask import Blueprint, current_app, jsonify, request, send_file

from services.errors import CredentialEngineError
from services.storage import Store

logger = logging.getLogger(__name__)

api_bp = Blueprint('api', __name__, url_prefix='/api')


class NotFoundError(Exception):
    pass


class BadRequestError(Exception):
    pass


def current_store() -> Store:
    return current_app.config['STORE']


def request_json() -> dict:
    """JSON body as a dict. An empty body is {}; any non-object body is rejected."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise BadRequestError("Invalid request")
    return data


def handle_errors(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except NotFoundError as e:
            return jsonify({"message": str(e)}), 404
        except BadRequestError as e:
            return jsonify({"message": str(e)}), 400
        except CredentialEngineError as e:
            return jsonify({"message": str(e), "error": e.code}), 400
        except Exception:
            logger.exception("API error in %s", f.__name__)
            return jsonify({"message": "Internal server error"}), 500
    return decorated


def _get_credential_record(vc_id: str):
    record = current_store().get_credential(vc_id)
    if record is None:
        raise NotFoundError("Credential not found")
    return record


@api_bp.route('/stats', methods=['GET'])
@handle_errors
def stats():
    return jsonify(current_store().stats())


@api_bp.route('/credentials/<vc_id>', methods=['GET'])
@handle_errors
def get_credential(vc_id: str):
    return jsonify({"credential": _get_credential_record(vc_id).credential})


@api_bp.route('/credentials/<vc_id>/qr', methods=['GET'])
@handle_errors
def credential_qr(vc_id: str):
    _get_credential_record(vc_id)

    credential_url = request.host_url.rstrip('/') + f'/api/credentials/{vc_id}'

    qr = qrcode.QRCode(box_size=8, border=2, error_correction=qrcode.constants.ERROR_CORRECT_M)
    qr.add_data(credential_url)
    qr.make(fit=True)
    img = qr.make_image(fill_color='black', back_color='white')

    buf = io.BytesIO()
    img.save(buf, format='PNG')
    buf.seek(0)
    return send_file(buf, mimetype='image/png')
