"""Client library for Elite robot controllers: RTSI, primary port and external control servers."""

__version__ = "0.1.0"