# Importing the modules registers every table on Base.metadata
from .base import Base  # noqa: F401
from . import account, profile, driver, order, complaint, finance, setting, rating  # noqa: F401
