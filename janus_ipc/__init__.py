"""Unix datagram command protocol: messages, errors, manifests, timeouts and a server."""

__version__ = "2.0.0"

__all__ = ["errors", "messages", "manifest", "manifest_parser", "timeouts", "server"]