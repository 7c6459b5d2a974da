"""
Helpers for inspecting requests captured by the responses library.
"""

import json
from urllib.parse import parse_qs, urlparse

BASE_URL = "https://abc.mktorest.com"
TOKEN_URL = f"{BASE_URL}/identity/oauth/token"
REST_URL = f"{BASE_URL}/rest/v1"
ASSET_URL = f"{BASE_URL}/rest/asset/v1"
BULK_URL = f"{BASE_URL}/bulk/v1"


def envelope(result=None, **extra):
    """Build a successful Marketo response envelope."""
    data = {"requestId": "e42b#14272d07d78", "success": True, "result": result or []}
    data.update(extra)
    return data


def query_of(call):
    """Query parameters of a captured call as a flat dict."""
    parsed = parse_qs(urlparse(call.request.url).query, keep_blank_values=True)
    return {key: values[0] for key, values in parsed.items()}


def path_of(call):
    return urlparse(call.request.url).path


def json_body(call):
    return json.loads(call.request.body)
