"""
Authentication Gateway

Bridges HTTP Basic credentials, OIDC resource owner password grants and the
OIDC Authorization Code flow into one opaque bearer-token session usable by
a downstream API.

Packages:
- auth: Authentication endpoints, OIDC flows, claim validation and the
  bearer token stash
- config: Environment-driven settings and the trust configuration
- models: Session, callback and response models
- main: FastAPI application factory
"""

__version__ = "1.0.0"
