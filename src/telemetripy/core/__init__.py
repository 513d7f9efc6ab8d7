"""Core domain: models, ports, encoding, aggregation and reporting."""
