"""Flask application with route handlers"""
from flask import Flask, jsonify, request
from flask_cors import CORS
from datetime import datetime, timezone
import os
import traceback

from utils.auth import get_clerk_user_id, get_client_ip, get_user_agent
from utils.logger import log_error, log_warning
from utils.rate_limit import init_rate_limiter, RATE_LIMITS
from services import admin_service, spam_monitoring_service, waitlist_service
from services.admission_gate import GateStorageError
from services.waitlist_service import SignupRejectedError

app = Flask(__name__)

cors_origins = [o.strip() for o in os.environ.get(
    'CORS_ORIGINS', 'http://localhost:5173,http://localhost:3000,https://myjobtrack.app'
).split(',') if o.strip()]
CORS(app, resources={
    r"/*": {
        "origins": cors_origins,
        "methods": ["GET", "POST", "OPTIONS"],
        "allow_headers": ["Content-Type", "X-Clerk-User-Id"],
        "supports_credentials": True
    }
})

# Initialize rate limiter
limiter = init_rate_limiter(app)

@app.route('/')
def home():
    return jsonify({
        "message": "My Job Track Waitlist API",
        "status": "running",
        "version": "1.0.0"
    })

@app.route('/health')
@limiter.exempt
def health_check():
    return jsonify({
        "status": "healthy",
        "message": "API is running successfully"
    })

@app.route('/api/waitlist', methods=['POST'])
@limiter.limit(RATE_LIMITS['moderate'])
def join_waitlist():
    """Add email to waitlist"""
    try:
        data = waitlist_service.parse_signup(request.get_json(silent=True))

        result = waitlist_service.join_waitlist(
            data['email'],
            business_type=data.get('businessType'),
            source=data.get('source'),
            ip_address=get_client_ip(),
            user_agent=get_user_agent(),
        )
        status_code = 200 if result.pop('already_exists') else 201
        return jsonify(result), status_code
    except ValueError as e:
        return jsonify({"success": False, "error": str(e)}), 400
    except SignupRejectedError as e:
        return jsonify({"success": False, "error": e.message}), 429
    except GateStorageError as e:
        log_error("Waitlist storage failure", e.__cause__ or e)
        return jsonify({"success": False, "error": "An error occurred processing your request"}), 500
    except Exception as e:
        log_error("Waitlist request error", traceback_str=traceback.format_exc())
        return jsonify({"success": False, "error": "An error occurred processing your request"}), 500

@app.route('/api/admin/spam-stats', methods=['GET'])
@limiter.limit(RATE_LIMITS['strict'])
def get_spam_stats():
    """Blocked-attempt statistics for the waitlist (admin only)"""
    clerk_user_id = get_clerk_user_id()
    if not clerk_user_id:
        return jsonify({"success": False, "error": "User ID required"}), 401
    if not admin_service.is_admin(clerk_user_id):
        log_warning(f"Non-admin user {clerk_user_id} requested spam stats")
        return jsonify({"success": False, "error": "Admin access required"}), 403

    try:
        stats = spam_monitoring_service.get_spam_stats()
        return jsonify({
            "success": True,
            "data": stats,
            "timestamp": datetime.now(timezone.utc).isoformat()
        })
    except Exception as e:
        log_error("Error handling spam monitoring request", e)
        return jsonify({"success": False, "error": "Internal server error"}), 500

@app.errorhandler(429)
def rate_limit_exceeded(e):
    return jsonify({"success": False, "error": "Too many requests. Please slow down."}), 429

if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5000))
    debug = os.environ.get('FLASK_ENV') == 'development'
    app.run(host='0.0.0.0', port=port, debug=debug)
