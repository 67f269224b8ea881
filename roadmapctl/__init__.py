"""Structure, status and dependency checks, read models and transition planning for markdown roadmaps read through rootline."""

__version__ = "0.1.0"