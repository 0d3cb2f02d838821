"""Bulk user import for the container version dashboard.

Reads a user import file, walks each user through a per-user step plan
(instance admin verification, password, Portainer / Docker Hub / Discord
credentials) and commits every user through the dashboard API.
"""

__version__ = "0.3.0"
