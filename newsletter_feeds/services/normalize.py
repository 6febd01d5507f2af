from __future__ import annotations

from urllib.parse import urlsplit, urlunsplit, parse_qsl, urlencode

TRACKING_KEYS_PREFIXES = ("utm_",)
TRACKING_KEYS_EXACT = {"fbclid", "gclid", "mc_cid", "mc_eid", "igshid"}

def normalize_feed_url(url: str) -> str:
    """Canonical form of a feed URL, used to share the fetch cache across owners."""
    s = url.strip()
    # Missing scheme: assume https
    if not s.startswith(("http://", "https://")):
        s = f"https://{s}"
    parts = urlsplit(s)
    # Strip fragment
    fragmentless = parts._replace(fragment="")
    # Remove tracking query params
    q = []
    for k, v in parse_qsl(fragmentless.query, keep_blank_values=True):
        kl = k.lower()
        if kl in TRACKING_KEYS_EXACT:
            continue
        if any(kl.startswith(p) for p in TRACKING_KEYS_PREFIXES):
            continue
        q.append((k, v))
    new_query = urlencode(q, doseq=True)
    normalized = urlunsplit(fragmentless._replace(query=new_query))
    return normalized
