"""PHRP exceptions."""


class PHRPError(Exception):
    """Generic PHRP error."""

    pass


class PHRPConfigurationError(PHRPError):
    """Invalid PHRP configuration."""

    pass


class ResultsFileParsingError(PHRPError):
    """Search tool results file parsing error."""

    pass


class ModificationParsingError(ResultsFileParsingError):
    """Modification definitions could not be parsed."""

    pass


class ParameterFileError(PHRPError):
    """Search tool parameter file is missing or unreadable."""

    pass
