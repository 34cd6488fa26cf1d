"""CI integration — resolves revision context from Travis CI and runs the
context-sensitive pull/push actions."""
