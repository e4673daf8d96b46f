"""Single-date event package reservations with idempotent payment confirmation."""

__version__ = "0.1.0"
