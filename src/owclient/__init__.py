"""
owclient - client for the OWFS owserver protocol.

This package talks to an owserver process over TCP to list, read and write
1-Wire devices. See :class:`owclient.client.OwClient`.
"""

__version__ = "0.1.0"
