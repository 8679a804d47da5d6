"""
Generate a new DID:KEY identity offline.

    python generate_keys.py                 # ed25519
    python generate_keys.py secp256k1

Output:
    - DID:KEY identifier (public, safe to share)
    - public and private key as hex, the form the store keeps them in
    - the derived DID Document

Warning: the private key is printed in clear. Anyone holding it can issue
credentials as this DID.
"""

import argparse
import json
import os
import sys

sys.path.insert(0, os.path.dirname(__file__))

from services.crypto import KeyType
from services.did_key import register_did, resolve_did_key
from services.errors import CredentialEngineError


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Generate a did:key identity")
    parser.add_argument('key_type', nargs='?', default=KeyType.ED25519.value,
                        choices=[k.value for k in KeyType])
    args = parser.parse_args(argv)

    try:
        response, key_pair = register_did(args.key_type)
    except CredentialEngineError as e:
        print(f"Error: {e.describe()}", file=sys.stderr)
        return 1

    if resolve_did_key(response["did"]) != response["didDocument"]:
        print(f"Error: DID Document for {response['did']} does not resolve back from the DID", file=sys.stderr)
        return 1

    print("=" * 60)
    print(f"{key_pair.key_type.value} DID:KEY generated successfully")
    print("=" * 60)
    print()
    print("DID (public identifier):")
    print(f"  {response['did']}")
    print()
    print(f"Public key (hex):  {key_pair.public_key_hex}")
    print(f"Private key (hex): {key_pair.private_key_hex}")
    print()
    print("DID Document:")
    print(json.dumps(response['didDocument'], indent=2))
    print()
    print("Keep the private key secret.")
    print("=" * 60)
    return 0


if __name__ == '__main__':
    sys.exit(main())
