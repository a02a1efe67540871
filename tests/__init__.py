"""SwarmHealth test suite."""
