"""Uniform pipelines: inner release pipeline assembly, template macros and old pipeline cleanup."""

__version__ = "0.1.0"
