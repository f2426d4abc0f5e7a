"""Core of the agent: state machine, orchestration, polling and the cache."""
