"""PulseForge — multi-tenant workspace backend.

Tenants (organizations) register, their admins log in with JWT session
tokens, and manage projects, tasks, issues, and forum posts scoped to
their tenant. System admins manage tenants and broadcast platform updates.
"""

__version__ = "0.1.0"
