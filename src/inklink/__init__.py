"""inklink - transcribe handwritten note images and link them into a markdown vault."""

__version__ = "0.3.0"
