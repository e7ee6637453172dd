"""
modstream - Live Modbus register viewer over WebSockets

Polls a Modbus device on a fixed interval and pushes human-readable
register snapshots to each connected browser viewer.
"""

__version__ = "1.0.0"
