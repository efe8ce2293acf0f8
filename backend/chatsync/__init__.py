"""chatsync: realtime chat client synchronization engine."""

__version__ = "0.1.0"
