"""
Error taxonomy for the DID / Verifiable Credential engine.

Issuance-path errors are raised. Verification-path errors are never raised to
the caller: they are collected into VerificationResult.errors as
"<code>: <reason>" strings.
"""


class CredentialEngineError(Exception):
    """Base class. `code` is the stable, machine-readable error name."""

    code = 'CredentialEngineError'

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        cls.code = cls.__name__

    def describe(self) -> str:
        return f"{self.code}: {self}"


class UnsupportedKeyType(CredentialEngineError):
    pass


class KeyGenerationError(CredentialEngineError):
    pass


class InvalidKeyMaterial(CredentialEngineError):
    pass


class NoIssuerAvailable(CredentialEngineError):
    pass


class MalformedCredential(CredentialEngineError):
    pass


class MissingProof(CredentialEngineError):
    pass


class SchemeMismatch(CredentialEngineError):
    pass


class InvalidSignature(CredentialEngineError):
    pass


class VerificationError(CredentialEngineError):
    pass
