from .errors import (
    BuildError,
    CommandError,
    ConfigurationError,
    ContainerError,
    FetchError,
    InconsistentLayoutError,
    InvalidTemplateError,
    LaunchError,
    LedgerError,
    MPICompatError,
    SetupError,
    ShellError,
    UnsupportedFormatError,
)
