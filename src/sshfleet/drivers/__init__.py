"""Built-in script drivers.

Every :class:`~sshfleet.drivers.base.DriverPlugin` subclass in this package
is discovered and registered by :func:`sshfleet.bootstrap.init_sshfleet`.
"""
