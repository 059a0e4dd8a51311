"""Cross-cutting infrastructure: config, logging, errors, extensions."""
