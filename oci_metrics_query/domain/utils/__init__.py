"""Pure helper functions used by the query resolvers."""
