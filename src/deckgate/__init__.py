"""DeckGate: share-link access control for pitch decks."""

__version__ = "0.1.0"
