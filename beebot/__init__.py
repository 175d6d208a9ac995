"""beebot: Matrix room bridge that posts numeric messages to Beeminder."""

__version__ = "0.1.0"
