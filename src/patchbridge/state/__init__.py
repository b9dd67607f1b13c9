"""State layer.

This package is the single source of truth for the per-channel records
decoded from the device stream and pushed to subscribers.
"""

from patchbridge.state.table import ChannelStateTable

__all__ = ["ChannelStateTable"]
