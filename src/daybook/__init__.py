"""daybook: personal schedule keeper with timed reminder delivery."""

__version__ = "0.1.0"
