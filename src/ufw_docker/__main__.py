"""Allow running as ``python -m ufw_docker``."""

from ufw_docker.cli import run

if __name__ == "__main__":
    run()
