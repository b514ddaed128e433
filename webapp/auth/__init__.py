"""
Cookie-session authentication for the web backend.

Design goals:
- No server-side session store: credentials travel in signed HttpOnly cookies.
- One HMAC over the full (access token, expiry, refresh token) tuple.
- Stale access tokens are refreshed transparently on the request that notices them.
"""
