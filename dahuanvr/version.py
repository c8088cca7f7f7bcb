# flake8: noqa
__version__ = "0.1.0"
