"""Campus service desk - request ticketing with a local-first sync core"""

__version__ = "1.0.0"
