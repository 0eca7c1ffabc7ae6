"""Real-time push — connection registry + WebSocket transport.

Clients hold a websocket open at /ws; the endpoint registers it with the
ConnectionRegistry under the authenticated user's id. Services push through
the registry after persisting a notification. Everything is in-process:
a client only receives pushes produced by the server process it's connected
to, and catches up on anything else through GET /notifications.
"""
