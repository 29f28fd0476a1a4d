"""Provider payload normalisation."""
