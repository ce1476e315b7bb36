"""sshfleet: run shell tasks across a fleet of hosts over ssh."""

__version__ = "0.1.0"
