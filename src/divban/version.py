"""Release version of divban, recorded as ``producerVersion`` in archives."""

DIVBAN_VERSION = "0.1.0"
