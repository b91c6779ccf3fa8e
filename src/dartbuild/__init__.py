"""dartbuild - incremental dart2js compilation and Dart test orchestration."""

__version__ = "0.1.0"
