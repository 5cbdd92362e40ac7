"""Authentication module.

Account sign-up / sign-in through the configured identity provider, member
profiles in the document store, and the in-memory session registry.

Services:
    - AuthService: Registration, login, logout, password reset, profile.
    - SessionStore: Token -> Session registry with TTL and change events.
"""
