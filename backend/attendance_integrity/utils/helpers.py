"""Helper functions for the application."""
from flask import jsonify, request
from typing import Dict, Any, Optional

def handle_error(error, status_code: int):
    """Handle application errors with consistent format."""
    return jsonify({
        'error': True,
        'message': str(error),
        'status_code': status_code
    }), status_code

def success_response(data: Any = None, message: str = "Success"):
    """Return consistent success response."""
    response = {
        'error': False,
        'message': message
    }

    if data is not None:
        response['data'] = data

    return jsonify(response)

def error_response(message: str, status_code: int = 400, details: Optional[Dict] = None):
    """Return consistent error response."""
    response = {
        'error': True,
        'message': message,
        'status_code': status_code
    }

    if details:
        response['details'] = details

    return jsonify(response), status_code

def client_ip_address() -> Optional[str]:
    """Best-effort client address, honouring proxy headers."""
    forwarded = request.headers.get('X-Forwarded-For')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.headers.get('X-Real-IP') or request.remote_addr
