"""
ufw-docker - Keep ufw in charge of published Docker container ports.

Adds, lists and removes ufw route rules for the published ports of
Docker containers, and installs the after.rules block that makes
Docker's DOCKER-USER chain honour them.
"""

__version__ = "1.0.0"
