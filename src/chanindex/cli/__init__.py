"""chanindex command-line interface."""
