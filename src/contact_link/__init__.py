"""contact-link: identity reconciliation over partial contact records."""

__version__ = "0.1.0"
