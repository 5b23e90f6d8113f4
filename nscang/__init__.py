"""Client for submitting passive monitoring check results over TLS-PSK.

Provides the ``send_nsca`` command and the ``Notifier`` class.
"""

__version__ = "1.6"