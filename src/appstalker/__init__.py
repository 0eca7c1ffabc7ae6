"""AppStalker — share your installed apps, follow your friends' app lists.

The backend behind the AppStalker mobile client: accounts and profiles,
installed-app sync, follow edges, and real-time notifications when someone
you follow reveals a new app.
"""

__version__ = "0.1.0"
