"""snapbuild command line interface."""
