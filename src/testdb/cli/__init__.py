"""Command-line interface (``testdb``)."""
