"""
FIDO Metadata Service (MDS) synchronisation service.

Fetches the signed MDS BLOB, verifies its signer against a configured trust
anchor and keeps a local cache of FIDO2 authenticator metadata up to date.
"""

__version__ = "1.0.0"
