"""Action claim API.

Routes:
- POST /api/actions/claim     {action, tweet_url?}
- POST /api/actions/checkin   (claims daily_checkin)
- GET  /api/actions/status

Status codes follow the claim outcome: 200 on success, 429 while on
cooldown, 400 for every other refusal.
"""

from flask import Blueprint, current_app, jsonify, request

from action_catalog import DAILY_CHECKIN_KEY
from claim_engine import ClaimErrorKind
from extensions import limiter
from privy_auth import authenticated_user_id


claims_api = Blueprint("claims_api", __name__)


def _engine():
    return current_app.extensions["claim_engine"]


def _claim_response(result):
    if result.success:
        status = 200
    elif result.error_kind == ClaimErrorKind.ON_COOLDOWN:
        status = 429
    else:
        status = 400
    return jsonify(result.to_dict()), status


@claims_api.post("/api/actions/claim")
@limiter.limit("30 per minute")
def claim_action():
    user_id = authenticated_user_id()
    data = request.get_json(silent=True) or {}

    action_key = data.get("action")
    if not isinstance(action_key, str) or not action_key.strip():
        return jsonify({"success": False, "error": "Invalid body: action is required"}), 400

    tweet_url = data.get("tweet_url")
    if tweet_url is not None and not isinstance(tweet_url, str):
        return jsonify({"success": False, "error": "Invalid body: tweet_url must be a string"}), 400

    result = _engine().claim(user_id, action_key.strip(), tweet_url=tweet_url)
    return _claim_response(result)


@claims_api.post("/api/actions/checkin")
@limiter.limit("10 per minute")
def daily_checkin():
    user_id = authenticated_user_id()
    return _claim_response(_engine().claim(user_id, DAILY_CHECKIN_KEY))


@claims_api.get("/api/actions/status")
def action_status():
    user_id = authenticated_user_id()
    return jsonify({"success": True, "status": _engine().cooldown_status(user_id)})
