"""Core layer: configuration, constants, exceptions, logging, audit log."""
