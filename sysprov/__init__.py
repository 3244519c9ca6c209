"""
sysprov
-------

Small, self-contained system administration commands:

  • provision-key        Generate an SSH key pair without overwriting existing keys
  • provision-account    Create an administrative account with SSH access
  • docker-health-check  Diagnose the local Docker installation
"""

APP_NAME: str = "sysprov"
VERSION: str = "1.0.0"
