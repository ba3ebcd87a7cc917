"""Monitor de preços para e-commerces brasileiros"""

__version__ = "0.1.0"
