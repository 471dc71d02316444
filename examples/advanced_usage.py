#!/usr/bin/env python3
"""
Advanced usage examples for the vaultr SDK
Demonstrates auth backends, cached logins, token roles and response wrapping
"""

import logging
from vaultr_sdk import (
    VaultClient,
    ClientConfig,
    JWTAuth,
    TokenCache,
    ServerError,
    UnsupportedOperation
)

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

ADDR = "http://127.0.0.1:8200"
ROOT_TOKEN = "your-root-token-here"

def auth_backend_example():
    """Enable a userpass backend and log in through it"""
    logger.info("=== Auth Backend Example ===")

    with VaultClient(ADDR) as admin:
        admin.login(token=ROOT_TOKEN)

        # Enable userpass at a custom mount
        admin.auth.enable("userpass", description="Team logins", path="team")
        for mount in admin.auth.list():
            logger.info(f"{mount.path:<12} {mount.type:<10} {mount.description}")

        try:
            admin.auth.list(detailed=True)
        except UnsupportedOperation as e:
            logger.warning(str(e))

        # Create a user and a policy for them
        admin.policy.write("dev", 'path "secret/dev/*" { capabilities = ["read", "list"] }')
        team = admin.auth.userpass.custom_mount("team")
        team.write("alice", "correct-horse", policies=["dev"])

        # Log in as that user with a separate client
        with VaultClient(ADDR) as user:
            token = user.login(method="userpass", mount="team", username="alice", password="correct-horse")
            logger.info(f"Logged in as alice with policies {token.policies}")

            # Already logged in: no request is made
            user.login(method="userpass", mount="team", username="alice", password="correct-horse")

        admin.auth.disable("team")

def cached_login_example():
    """Share one login between several clients"""
    logger.info("=== Cached Login Example ===")

    cache = TokenCache()
    config = ClientConfig(addr=ADDR, token=ROOT_TOKEN)

    first = VaultClient(config=config, cache=cache)
    second = VaultClient(config=config, cache=cache)
    try:
        t1 = first.login(use_cache=True)
        t2 = second.login(use_cache=True)  # served from the cache
        logger.info(f"Both clients share one token: {t1 == t2}")
    finally:
        first.close()
        second.close()

def token_role_example():
    """Create tokens against a token role, and wrap them for hand-off"""
    logger.info("=== Token Role Example ===")

    with VaultClient(ADDR) as client:
        client.login(token=ROOT_TOKEN)

        client.token.role_write(
            "nomad",
            allowed_policies=["dev", "ops"],
            orphan=True,
            period="72h"
        )
        logger.info(f"Token roles: {client.token.role_list()}")

        # Create a token and hand it off wrapped
        wrapped = client.token.create(role_name="nomad", policies=["dev"], wrap_ttl="5m")
        logger.info(f"Wrapping token valid for {wrapped.info.ttl}s")

        token = client.unwrap_token(wrapped)
        logger.info(f"Unwrapped token with policies {token.policies}")

        # Tokens can be managed by accessor without knowing the token itself
        client.token.revoke_accessor(token.accessor)
        try:
            client.token.lookup_accessor(token.accessor)
        except ServerError as e:
            logger.info(f"Token is gone: {e}")

        client.token.role_delete("nomad")

def jwt_login_example():
    """Log in with a locally signed JWT"""
    logger.info("=== JWT Login Example ===")

    with VaultClient(ADDR) as client:
        assertion = JWTAuth.sign(
            "your-hmac-signing-key",
            {"sub": "ci-pipeline", "aud": "vault"},
            expires_in=60
        )
        token = client.login(method="jwt", role="ci", jwt=assertion)
        logger.info(f"JWT login gave policies {token.policies}")

def main():
    """Run all examples"""
    examples = [
        auth_backend_example,
        cached_login_example,
        token_role_example,
        jwt_login_example,
    ]

    for example in examples:
        try:
            example()
        except Exception as e:
            logger.error(f"Example {example.__name__} failed: {e}")
        print()

if __name__ == "__main__":
    main()
