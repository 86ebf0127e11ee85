"""User-facing interfaces for wikibib."""
