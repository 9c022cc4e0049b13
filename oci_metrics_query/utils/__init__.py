"""Generic utilities shared across the resolvers."""
