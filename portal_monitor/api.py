"""Optional local HTTP API for status and manual checks."""

import logging
import threading
import time

from flask import Flask, jsonify

from .scheduler import HybridScheduler
from .status import StatusStore

logger = logging.getLogger(__name__)


def create_app(scheduler: HybridScheduler, status_store: StatusStore) -> Flask:
    """Build the Flask app exposing /status, /health and /check."""
    app = Flask(__name__)

    @app.route('/status', methods=['GET'])
    def status():
        """Get current schedule state and the persisted status record."""
        record = status_store.load()
        last = scheduler.last_result
        return jsonify({
            'schedule': scheduler.state.as_dict(),
            'cycles': scheduler.cycles,
            'last_result': {
                'status': last.status.value,
                'portal_url': last.portal_url,
                'reason': last.reason,
                'attempts': last.attempts,
                'optimistic': last.optimistic,
            } if last else None,
            'last_check_timestamp': record.last_check_timestamp,
            'last_successful_login_timestamp': record.last_successful_login_timestamp,
            'last_portal_detected': record.last_portal_detected,
        })

    @app.route('/health', methods=['GET'])
    def health():
        """Health check endpoint."""
        return jsonify({
            'status': 'stopping' if scheduler.shutdown_requested else 'healthy',
            'timestamp': time.time(),
        })

    @app.route('/check', methods=['POST'])
    def check():
        """Request an immediate portal check."""
        queued = scheduler.request_check('manual')
        if queued:
            logger.info("Manual check requested via HTTP API")
        return jsonify({'status': 'queued' if queued else 'already_pending'}), 202

    return app


def start_api_server(app: Flask, host: str, port: int) -> threading.Thread:
    """Run the Flask app in a daemon thread."""
    def serve():
        logger.info(f"HTTP API listening on {host}:{port}")
        app.run(host=host, port=port, threaded=True, use_reloader=False)

    thread = threading.Thread(target=serve, name='http-api', daemon=True)
    thread.start()
    return thread
