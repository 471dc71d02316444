#!/usr/bin/env python3
"""
Basic usage example for the vaultr SDK
"""

from vaultr_sdk import VaultClient, ClientConfig

def main():
    # Configure client; addr and token default to VAULT_ADDR and VAULT_TOKEN
    config = ClientConfig(
        addr="http://127.0.0.1:8200",
        timeout=30,
        verify_ssl=True
    )

    with VaultClient(config=config) as client:
        # Log in with a token
        client.login(token="your-root-token-here")

        # Create a child token
        token = client.token.create(
            policies=["dev"],
            ttl="1h",
            display_name="example"
        )
        print(f"Created token with accessor {token.accessor}")

        # Look it up through its accessor
        info = client.token.lookup_accessor(token.accessor)
        print(f"Token policies: {info.policies}, ttl: {info.ttl}s")

        # Check what it may do
        caps = client.token.capabilities("secret/app", token)
        print(f"Capabilities on secret/app: {caps['secret/app']}")

        # Renew, then revoke
        renewed = client.token.renew(token, increment="2h")
        print(f"Renewed for {renewed.lease_duration}s")
        client.token.revoke(token)
        print("Revoked token")

if __name__ == "__main__":
    main()
