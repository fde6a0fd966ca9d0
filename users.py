"""Account API.

Routes:
- POST /api/users/create          {username, twitter_id? | farcaster_fid?, pfp_url?, referral_code?}
- GET  /api/users/me
- POST /api/users/update-wallet   {wallet_address}
- GET  /api/share                 share texts, card link and referral link for the caller
"""

from urllib.parse import quote, urlencode

from flask import Blueprint, current_app, jsonify, request

from extensions import limiter
from privy_auth import authenticated_user_id


users_api = Blueprint("users_api", __name__)


def _accounts():
    return current_app.extensions["accounts"]


def _social_id_from(data: dict):
    """farcaster_<fid> wins over twitter_id, matching how accounts were first keyed.

    Raises ValueError for a farcaster_fid that is not a whole number.
    """
    fid = data.get("farcaster_fid")
    if fid is not None:
        if isinstance(fid, bool) or not isinstance(fid, (int, float)):
            raise ValueError("Invalid body: farcaster_fid must be an integer")
        if isinstance(fid, float) and not fid.is_integer():
            raise ValueError("Invalid body: farcaster_fid must be an integer")
        return f"farcaster_{int(fid)}"
    twitter_id = data.get("twitter_id")
    if isinstance(twitter_id, str) and twitter_id.strip():
        return twitter_id.strip()
    return None


@users_api.post("/api/users/create")
@limiter.limit("10 per minute")
def create_user():
    user_id = authenticated_user_id()
    data = request.get_json(silent=True) or {}

    username = data.get("username")
    if not isinstance(username, str) or not username.strip():
        return jsonify({"success": False, "error": "Invalid body: username is required"}), 400

    try:
        social_id = _social_id_from(data)
    except ValueError as e:
        return jsonify({"success": False, "error": str(e)}), 400
    if not social_id:
        return jsonify({"success": False, "error": "Either twitter_id or farcaster_fid is required"}), 400

    pfp_url = data.get("pfp_url")
    if pfp_url is not None and not isinstance(pfp_url, str):
        return jsonify({"success": False, "error": "Invalid body: pfp_url must be a string"}), 400

    referral_code = data.get("referral_code")
    if referral_code is not None and not isinstance(referral_code, str):
        referral_code = None

    account, is_new = _accounts().create_account_if_absent(
        user_id,
        social_id=social_id,
        username=username.strip()[:100],
        pfp_url=pfp_url,
        referral_code=referral_code,
        now=current_app.extensions["clock"](),
    )
    return jsonify({"success": True, "user": account.to_dict(), "is_new": is_new})


@users_api.get("/api/users/me")
def me():
    user_id = authenticated_user_id()
    account = _accounts().get_account(user_id)
    if account is None:
        return jsonify({"success": False, "error": "User not found"}), 404

    standing = current_app.extensions["rank_engine"].standing(user_id)
    status = current_app.extensions["claim_engine"].cooldown_status(user_id)
    catalog = current_app.extensions["catalog"]

    actions = []
    for action in catalog:
        item = action.to_dict()
        item["status"] = status.get(action.key) or {"available": True, "cooldown_ends_at": None, "completed": False}
        actions.append(item)

    payload = {
        "success": True,
        "user": account.to_dict(),
        "rank": standing["rank"],
        "reward_tier": standing["reward_tier_label"],
        "tickets": standing["tickets"],
        "actions": actions,
    }
    payload.update(current_app.extensions["capabilities"].to_dict())
    return jsonify(payload)


@users_api.post("/api/users/update-wallet")
@limiter.limit("10 per minute")
def update_wallet():
    user_id = authenticated_user_id()
    data = request.get_json(silent=True) or {}
    wallet = data.get("wallet_address")
    if not isinstance(wallet, str):
        return jsonify({"success": False, "error": "Invalid Ethereum address"}), 400

    try:
        account = _accounts().update_wallet(user_id, wallet)
    except ValueError as e:
        return jsonify({"success": False, "error": str(e)}), 400
    if account is None:
        return jsonify({"success": False, "error": "User not found"}), 404
    return jsonify({"success": True, "user": account.to_dict()})


@users_api.get("/api/share")
def share():
    user_id = authenticated_user_id()
    account = _accounts().get_account(user_id)
    if account is None:
        return jsonify({"success": False, "error": "User not found"}), 404

    standing = current_app.extensions["rank_engine"].standing(user_id)
    rank, tickets = standing["rank"], standing["tickets"]
    handle = current_app.extensions["capabilities"].handle
    origin = (current_app.config.get("PUBLIC_SITE_URL") or request.host_url).rstrip("/")

    card_url = f"{origin}/api/og/card?" + urlencode({
        "username": account.username,
        "pfp": account.pfp_url or "",
        "points": account.points,
        "rank": rank,
        "tickets": tickets,
    }, quote_via=quote)
    referral_link = f"{origin}/?ref={account.referral_code}"

    headline = f"Rank #{rank} | {account.points:,} pts | {tickets} tickets"
    twitter_text = (
        f"Stack points. Win passes. Get Based.\n\n{headline}\n\n"
        f"Join with my code: {account.referral_code}\n{referral_link}\n\n@{handle}"
    )
    farcaster_text = f"Stack points. Win passes. Get Based.\n\n{headline}\n\nJoin: {referral_link}\n\n@{handle}"

    return jsonify({
        "success": True,
        "card_url": card_url,
        "referral_link": referral_link,
        "twitter": {
            "text": twitter_text,
            "intent_url": f"https://twitter.com/intent/tweet?text={quote(twitter_text, safe='')}",
        },
        "farcaster": {
            "text": farcaster_text,
            "compose_url": (
                f"https://warpcast.com/~/compose?text={quote(farcaster_text, safe='')}"
                f"&embeds[]={quote(card_url, safe='')}"
            ),
        },
    })
