"""sfs-serve command line interface."""
