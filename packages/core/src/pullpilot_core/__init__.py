"""Review job pipeline: diff fetching, analysis providers, orchestration."""
