"""Command handlers for the dfupack CLI. Each module exposes run(args)."""
