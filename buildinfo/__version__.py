"""Version information for buildinfo."""
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version


def get_version() -> str:
    """Version of the installed distribution, or a dev marker when running from source."""
    try:
        return version('buildinfo')
    except PackageNotFoundError:
        return '0.0.0-dev'


__version__ = get_version()
