"""Session state: pending calls, outbound delivery and the session registry."""

from corebridge.session.manager import SessionManager
from corebridge.session.outbound import OutboundQueue
from corebridge.session.pending import CancelToken, PendingCall, PendingCallTable
from corebridge.session.session import Session

__all__ = ["CancelToken", "OutboundQueue", "PendingCall", "PendingCallTable", "Session", "SessionManager"]
