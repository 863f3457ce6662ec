"""Review job persistence: models, store interface and backends."""
