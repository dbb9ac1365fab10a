class DiligentError(Exception):
    """Root of all errors raised by diligent."""


# ----------------------------
# Run-level preconditions (fatal)
# ----------------------------

class CredentialsError(DiligentError):
    pass


class StoreError(DiligentError):
    pass


class CatalogError(DiligentError):
    pass


class ConfigError(DiligentError):
    pass


# ----------------------------
# Oracle failures (absorbed per check)
# ----------------------------

class OracleError(DiligentError):
    pass


class OracleTransportError(OracleError):
    """The request never produced model text (network, auth, throttling)."""


class OracleSchemaError(OracleError):
    """The model replied, but not with a bare Verdict JSON object."""
