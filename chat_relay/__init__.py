"""Relay between clients and an external chat generation API, with usage accounting."""
