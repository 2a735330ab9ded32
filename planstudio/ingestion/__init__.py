"""Jira REST request builders and payload parsers. Tests are offline."""
