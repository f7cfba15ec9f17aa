"""SubTrack: subscription tracking with email-based detection."""

__version__ = "0.1.0"
