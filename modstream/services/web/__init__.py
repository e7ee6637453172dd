"""
Web Service - HTTP/WebSocket front end

Responsibilities:
- Serve the viewer page and static assets
- Route /ws connections to streaming sessions
- Report health
"""

from .service import WebService

__all__ = ["WebService"]
