"""SporeSync - mirror a remote directory tree onto the local disk."""

__version__ = "0.1.0"
