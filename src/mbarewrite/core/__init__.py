"""
mbarewrite.core: foundational utilities shared by the solver and front ends.

Modules:
    bits    - Width tables and BitVectorRing (exact arithmetic over Z/2^w)
    config  - MBAConfiguration and ObfuscationDefaults
    logging - MBALogger with MDC support, configure_loggers
"""

# Bit-vector ring
from .bits import (
    MASK_TABLE,
    MODULUS_TABLE,
    MSB_TABLE,
    BitVectorRing,
    Width,
    signed_to_unsigned,
    unsigned_to_signed,
)

# Logging
from .logging import (
    LevelFlag,
    LoggerConfigurator,
    MBALogger,
    configure_loggers,
    getLogger,
)

# Configuration
from .config import (
    ConfigConstants,
    MBAConfiguration,
    ObfuscationDefaults,
)

__all__ = [
    "MASK_TABLE",
    "MODULUS_TABLE",
    "MSB_TABLE",
    "BitVectorRing",
    "Width",
    "signed_to_unsigned",
    "unsigned_to_signed",
    "LevelFlag",
    "LoggerConfigurator",
    "MBALogger",
    "configure_loggers",
    "getLogger",
    "ConfigConstants",
    "MBAConfiguration",
    "ObfuscationDefaults",
]
