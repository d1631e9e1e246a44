from importlib.metadata import PackageNotFoundError
from importlib.metadata import version

try:
    __version__ = version("stampcard")
except PackageNotFoundError:
    # Running from a source checkout without an install.
    __version__ = "0.0.0"
