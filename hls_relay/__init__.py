"""HLS relay that routes playlists and segments back through ``/proxy``."""

__version__ = "0.1.0"
