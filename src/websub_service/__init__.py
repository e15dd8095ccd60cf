"""WebSub subscriber service: hub handshake, lease renewal and signed notifications."""
