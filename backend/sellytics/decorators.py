# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .errors import NotFound
from .extensions import datastore
from .services.context import StoreContext


def _header_int(name: str):
    raw = (request.headers.get(name) or "").strip()
    if not raw:
        return None
    if not raw.isdigit():
        raise ValueError(name)
    return int(raw)


def require_store_context(f):
    """
    Establish the store context for a request.

    STORE-SCOPED: Sets g.store_context (a StoreContext) from
    - X-Store-Id: the store the request acts on - REQUIRED
    - X-User-Id: the acting user, recorded on writes (optional)

    Returns 400 for malformed headers, 401 when X-Store-Id is missing and
    404 when the store does not exist.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            store_id = _header_int("X-Store-Id")
            user_id = _header_int("X-User-Id")
        except ValueError as e:
            return jsonify({"error": f"{e} must be an integer"}), 400

        if store_id is None:
            return jsonify({"error": "Store context required (X-Store-Id header)"}), 401

        if datastore.get("stores", store_id) is None:
            raise NotFound(f"Store {store_id} not found", details={"store_id": store_id})

        g.store_context = StoreContext(store_id=store_id, user_id=user_id)
        return f(*args, **kwargs)

    return decorated_function
