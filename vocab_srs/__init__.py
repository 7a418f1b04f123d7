"""Command-line host for the vocabulary SRS engine."""
