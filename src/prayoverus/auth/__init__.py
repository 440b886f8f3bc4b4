"""Authentication — bearer JWTs from the identity provider.

Learn: Login itself (OIDC, social sign-in) happens outside this service.
We only verify the token, and upsert the user row from its claims.
"""
