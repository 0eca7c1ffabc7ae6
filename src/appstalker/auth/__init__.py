"""Authentication.

Users register with email/username/password and log in for a pair of JWTs:
a short-lived access token for API calls and the websocket handshake, and a
long-lived refresh token. Every protected route resolves the access token
to a verified user id through get_current_user.
"""
