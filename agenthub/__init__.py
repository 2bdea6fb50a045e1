"""Agent Hub authentication core: credentials, sessions, cookies and OAuth connect."""

__version__ = "0.3.0"
