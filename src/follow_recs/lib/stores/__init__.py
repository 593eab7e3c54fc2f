"""Elasticsearch-backed stores for profiles, the follow graph and recommendations."""
