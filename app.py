"""
did:key credential service — Flask application entry point.

Registers did:key identifiers (Ed25519 or secp256k1), issues W3C Verifiable
Credentials signed by a registered DID, and verifies them against the
issuer's stored public key.

Usage:
    python app.py
"""

import logging
import os
from typing import Optional

from flask import Flask, jsonify
from flask_cors import CORS

from config import config
from services.storage import Store, get_store

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )


def create_app(store: Optional[Store] = None) -> Flask:
    app = Flask(__name__)
    app.secret_key = config.SECRET_KEY
    app.config['ENV'] = config.ENV
    app.config['DEBUG'] = config.DEBUG
    app.config['STORE'] = store if store is not None else get_store()

    CORS(app, resources={
        r"/api/*": {"origins": config.CORS_ORIGINS}
    })

    from routes.api_routes import api_bp
    from routes.did_routes import did_bp
    from routes.credential_routes import credential_bp

    app.register_blueprint(api_bp)
    app.register_blueprint(did_bp)
    app.register_blueprint(credential_bp)

    @app.route('/health')
    def health():
        return jsonify({
            "status": "ok",
            "storage": type(app.config['STORE']).__name__
        })

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({"message": "Not found"}), 404

    @app.errorhandler(500)
    def internal_error(error):
        logger.error("Unhandled error: %s", error)
        return jsonify({"message": "Internal server error"}), 500

    return app


setup_logging()
app = create_app()

if __name__ == '__main__':
    logger.info("Storage backend: %s", config.STORAGE_BACKEND)
    port = int(os.getenv('PORT', 5000))
    app.run(host='0.0.0.0', port=port, debug=config.DEBUG)
