"""
modstream Services

- Device - Modbus register clients (TCP, RTU)
- Stream - Per-viewer streaming sessions
- Web - HTTP server, viewer UI, /ws endpoint
"""
