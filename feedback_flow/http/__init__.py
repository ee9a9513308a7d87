"""HTTP routes exposing the query engine."""
