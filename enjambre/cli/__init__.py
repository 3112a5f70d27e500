"""Command-line interface for enjambre."""
