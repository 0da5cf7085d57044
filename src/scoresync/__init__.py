"""scoresync - Carcassonne score history with peer-to-peer sync."""

__version__ = "0.1.0"
