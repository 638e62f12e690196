"""gridpilot: reconcile assistant-proposed changes into a spreadsheet grid."""

__version__ = "0.1.0"
