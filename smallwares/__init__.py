"""In-memory HTTP services, an SMTP session state machine and toy language-model runners."""

__version__ = "0.1.0"