"""GoCD → Jira → Confluence release notes service.

Collects the Jira issues referenced by the commits of a GoCD pipeline run,
extracts the release notes written on those issues and publishes them as a
Confluence blog post.
"""

__version__ = "0.1.0"
