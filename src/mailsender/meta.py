"""Package metadata for mailsender."""

__app_name__ = "mailsender"
__version__ = "1.0.0"
__author__ = "Christophe Deleray"
__license__ = "MIT"

__all__ = ["__app_name__", "__author__", "__license__", "__version__"]
