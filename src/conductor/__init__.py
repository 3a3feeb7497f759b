"""
Conductor -- multi-agent review chat with live streaming.

A user message is answered by a primary agent, reviewed by one or two
reviewer agents depending on the mode, and consolidated, while every step is
streamed to the caller as Server-Sent Events.
"""

__version__ = "0.1.0"
