"""Application layer: events and services built on the domain and matchers."""
