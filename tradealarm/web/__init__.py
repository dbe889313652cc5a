"""HTTP control surface for sessions (start, stop, history, summary)."""

from .server import ControlServer, RequestIDMiddleware, StartSessionRequest, StopSessionRequest

__all__ = [
    "ControlServer",
    "RequestIDMiddleware",
    "StartSessionRequest",
    "StopSessionRequest",
]
