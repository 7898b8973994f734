"""CalAIM portal backend: claims, visits, reminders and member sync."""

__version__ = "0.1.0"
