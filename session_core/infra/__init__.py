"""Infrastructure: store connection, primitives, stores, cache and observability."""
