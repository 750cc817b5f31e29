"""Restaurant discovery: incremental listing fetch, filtering and ranking."""
