"""Local HTTP/WebSocket bridge for the presentation layer."""
