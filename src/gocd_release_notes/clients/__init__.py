"""Clients for the upstream services.

GoCD and Jira are read from; Confluence is written to. Each module ships a
Protocol, the real httpx implementation and a mock for tests and local
development.
"""
