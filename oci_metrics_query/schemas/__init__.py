"""Wire schemas exchanged with the metrics backend."""
