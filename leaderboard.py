"""Leaderboard + referral lookup API.

Routes:
- GET /api/leaderboard            (auth optional; adds current_user when a valid token is sent)
- GET /api/referral/lookup?code=
"""

from flask import Blueprint, current_app, jsonify, request
from loguru import logger

from errors import InvalidToken
from privy_auth import authenticated_user_id, bearer_token
from rank_engine import TOP_100_CUTOFF, TOP_500_CUTOFF


leaderboard_api = Blueprint("leaderboard_api", __name__)

PRIZES = {
    "pass25": {"label": "$25 Pass", "count": 25, "for_top": TOP_100_CUTOFF},
    "pass5": {"label": "$5 Pass", "count": 100, "for_top": TOP_500_CUTOFF},
}


def _optional_user_id():
    if not bearer_token(request):
        return None
    try:
        return authenticated_user_id()
    except InvalidToken as e:
        logger.debug(f"LEADERBOARD: ignoring bad token: {e}")
        return None


@leaderboard_api.get("/api/leaderboard")
def get_leaderboard():
    ranks = current_app.extensions["rank_engine"]

    current_user = None
    user_id = _optional_user_id()
    if user_id:
        account = current_app.extensions["accounts"].get_account(user_id)
        if account is not None:
            standing = ranks.standing(user_id)
            current_user = {
                "username": account.username,
                "pfp_url": account.pfp_url,
                "points": int(account.points or 0),
                "rank": standing["rank"],
                "reward_tier": standing["reward_tier_label"],
                "tickets": standing["tickets"],
            }

    return jsonify({
        "success": True,
        "top10": [e.to_dict() for e in ranks.leaderboard(10)],
        "cutoff100": ranks.cutoff_points(TOP_100_CUTOFF),
        "cutoff500": ranks.cutoff_points(TOP_500_CUTOFF),
        "current_user": current_user,
        "prizes": PRIZES,
    })


@leaderboard_api.get("/api/referral/lookup")
def referral_lookup():
    code = (request.args.get("code") or "").strip()
    if not code:
        return jsonify({"valid": False, "error": "Missing code parameter"}), 400

    account = current_app.extensions["accounts"].get_by_referral_code(code)
    return jsonify({
        "valid": account is not None,
        "username": account.username if account else None,
    })
