"""Query resolution domain: models, variable resolution, metadata and builders."""
